"""
famsim/resolution.py
~~~~~~~~~~~~~~~~~~~~
Applying a chosen event outcome and the trigger cascade that follows it.

Resolution order for one choice:

1. a dynamic effect, if any, is rolled and laid over the static effect;
2. stat deltas go to the character (or every living member for
   ``applyToAll``) and the fund delta to the family fund;
3. the effect's action, if any, returns a patch merged in one atomic step;
4. a log entry is written;
5. each trigger is rolled on its own and survivors are queued FIFO.

Queued events are not resolved here. :func:`drain_trigger_queue` promotes
the queue head to the active event once nothing else is on screen.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from famsim.catalog import EventChoice, EventEffect, GameEvent, TriggeredEvent
from famsim.context import EngineContext
from famsim.effects import ACTIONS, DYNAMIC_EFFECTS
from famsim.errors import CatalogIntegrityError, InvariantViolation
from famsim.models import NON_WORKING_PHASES, Character, GameState, LogEntry, QueuedEvent, clamp_stat
from famsim.patch import merge_patch

logger = logging.getLogger(__name__)


class ResolutionResult(NamedTuple):
    next_state: GameState
    log_entry: Optional[LogEntry]
    queued_triggers: list[QueuedEvent]


# ------------------------------------------------------------------
#  Helpers
# ------------------------------------------------------------------


def combine_effects(static: EventEffect, dynamic: EventEffect) -> EventEffect:
    """Fields the dynamic outcome sets win; stat changes are merged key by key."""
    overrides = {name: getattr(dynamic, name) for name in dynamic.model_fields_set}
    overrides["statChanges"] = {**static.statChanges, **dynamic.statChanges}
    overrides["dynamic"] = None
    return static.model_copy(update=overrides)


def apply_stat_changes(character: Character, changes: dict[str, float], clamp: bool) -> dict[str, float]:
    """Add deltas to a living character's stats; returns what was applied."""
    applied: dict[str, float] = {}
    if not character.is_alive:
        return applied
    for stat, delta in changes.items():
        if stat == "skill" and character.phase in NON_WORKING_PHASES:
            continue
        value = character.stats.get(stat) + delta
        if clamp:
            value = clamp_stat(stat, value)
        character.stats.set(stat, value)
        applied[stat] = delta
    return applied


def trigger_target(state: GameState, character: Character, trigger: TriggeredEvent) -> Optional[str]:
    if trigger.reTarget is None:
        return character.id
    if trigger.reTarget == "parents":
        for parent_id in character.parents_ids:
            parent = state.family_members.get(parent_id)
            if parent is not None and parent.is_alive:
                return parent.id
        return None
    if trigger.reTarget == "partner":
        partner = state.family_members.get(character.partner_id) if character.partner_id else None
        return partner.id if partner is not None and partner.is_alive else None
    living = state.living_members()
    return living[0].id if living else None


def check_victory(state: GameState, ctx: EngineContext) -> bool:
    if state.game_over_reason is not None:
        return False
    target = ctx.settings.victoryGeneration
    if any(c.generation >= target for c in state.family_members.values()):
        state.game_over_reason = "victory"
        logger.info("Generation %d reached: victory.", target)
        return True
    return False


# ------------------------------------------------------------------
#  Resolution
# ------------------------------------------------------------------


def apply_choice(
    state: GameState,
    character_id: str,
    event: GameEvent,
    choice: EventChoice,
    ctx: EngineContext,
) -> tuple[Optional[LogEntry], list[QueuedEvent]]:
    """Resolve ``choice`` into ``state`` in place. See :func:`resolve_choice`."""
    if state.active_event is not None and state.active_event.event_id == event.id and state.active_event.character_id == character_id:
        state.active_event = None

    character = state.family_members.get(character_id)
    if character is None or not character.is_alive:
        logger.warning("Event %s offered to missing or deceased character %s; ignored.", event.id, character_id)
        return None, []

    effect = choice.effect
    if effect.dynamic is not None:
        dynamic = DYNAMIC_EFFECTS[effect.dynamic.kind](state, character_id, effect.dynamic.params, ctx)
        effect = combine_effects(effect, dynamic)

    if not effect.logKey:
        message = f"Event '{event.id}' choice '{choice.textKey}' has no logKey."
        if ctx.settings.strict:
            raise CatalogIntegrityError(message)
        logger.warning("%s Effect skipped.", message)
        return None, []

    # Stats and fund.
    clamp = ctx.settings.clampEventStats
    if effect.applyToAll:
        targets = state.living_members()
        state.event_queue = [q for q in state.event_queue if q.event_id != event.id]
    else:
        targets = [character]
    applied: dict[str, float] = {}
    for target in targets:
        result = apply_stat_changes(target, effect.statChanges, clamp)
        if target is character:
            applied = result
    state.family_fund += effect.fundChange

    if event.happens_once:
        if event.id not in character.completed_one_time_events:
            character.completed_one_time_events.append(event.id)
    if event.cooldownYears is not None:
        character.event_cooldowns[event.id] = state.current_date.year + event.cooldownYears

    # Structural change.
    if effect.action is not None:
        patch = ACTIONS[effect.action.kind](state, character_id, effect.action.params, ctx)
        try:
            merge_patch(state, patch)
        except InvariantViolation as e:
            logger.warning("Rejected %s from event %s: %s", effect.action.kind.value, event.id, e)

    log_entry: Optional[LogEntry] = None
    if not event.quiet:
        log_entry = state.log(effect.logKey, character)
        log_entry.fund_change = effect.fundChange
        log_entry.stat_changes = applied

    # Cascade.
    queued: list[QueuedEvent] = []
    for trigger in effect.triggers:
        if not ctx.rng.roll(trigger.chance):
            continue
        if ctx.catalog.event(trigger.eventId) is None:
            logger.warning("Event %s triggers unknown event %s; skipped.", event.id, trigger.eventId)
            continue
        target_id = trigger_target(state, character, trigger)
        if target_id is None:
            logger.debug("No target for trigger %s from %s.", trigger.eventId, event.id)
            continue
        queued.append(QueuedEvent(event_id=trigger.eventId, character_id=target_id))
    state.event_queue.extend(queued)

    check_victory(state, ctx)
    return log_entry, queued


def resolve_choice(
    state: GameState,
    character_id: str,
    event: GameEvent,
    choice: EventChoice,
    ctx: EngineContext,
) -> ResolutionResult:
    """Resolve one choice against a copy of ``state``; the input is untouched."""
    next_state = state.model_copy(deep=True)
    log_entry, queued = apply_choice(next_state, character_id, event, choice, ctx)
    return ResolutionResult(next_state, log_entry, queued)


def pop_next_event(state: GameState, ctx: EngineContext) -> Optional[QueuedEvent]:
    """Promote the queue head to the active event, in place."""
    if state.active_event is not None:
        return state.active_event
    while state.event_queue:
        queued = state.event_queue.pop(0)
        target = state.family_members.get(queued.character_id)
        if ctx.catalog.event(queued.event_id) is None:
            logger.warning("Queued unknown event %s; skipped.", queued.event_id)
            continue
        if target is None or not target.is_alive:
            logger.debug("Queued event %s for unavailable character %s; skipped.", queued.event_id, queued.character_id)
            continue
        state.active_event = queued
        return queued
    return None


def drain_trigger_queue(state: GameState, ctx: EngineContext) -> tuple[GameState, Optional[QueuedEvent]]:
    next_state = state.model_copy(deep=True)
    return next_state, pop_next_event(next_state, ctx)
