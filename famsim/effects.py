"""
famsim/effects.py
~~~~~~~~~~~~~~~~~
Dispatch tables for the behaviour catalog events can name but not contain.

``ACTIONS`` maps an ``ActionKind`` to a function returning a ``StatePatch``;
``DYNAMIC_EFFECTS`` maps a ``DynamicEffectKind`` to a function that decides,
at resolution time, an ``EventEffect`` to lay over the choice's static one.
Both take ``(state, character_id, params, ctx)`` and never mutate ``state``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from famsim import milestones
from famsim.catalog import ActionKind, DynamicEffectKind, EventEffect
from famsim.context import EngineContext
from famsim.models import STAT_CEILINGS, CharacterStatus, GameState, Pet, PetType, clamp_stat
from famsim.patch import StatePatch

logger = logging.getLogger(__name__)

Action = Callable[[GameState, str, dict[str, Any], EngineContext], StatePatch]
DynamicEffect = Callable[[GameState, str, dict[str, Any], EngineContext], EventEffect]


# ------------------------------------------------------------------
#  Helpers
# ------------------------------------------------------------------


def _shifted_stats(current: dict[str, float], changes: dict[str, float], sign: int = 1) -> dict[str, float]:
    return {stat: clamp_stat(stat, current[stat] + sign * delta) for stat, delta in changes.items()}


# ------------------------------------------------------------------
#  Actions
# ------------------------------------------------------------------


def adopt_pet(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    owner = state.family_members[character_id]
    if owner.pet_id is not None:
        return patch.add_log(state, "log_pet_already_owned", owner)

    pet_type = PetType(params["type"]) if "type" in params else ctx.rng.choice(list(PetType))
    definition = ctx.catalog.pet(pet_type)
    if definition is None:
        logger.warning("No pet definition for %s; adoption skipped.", pet_type.value)
        return patch

    pet = Pet(
        id=ctx.rng.uuid(),
        name=ctx.rng.choice(definition.names),
        type=pet_type,
        owner_id=owner.id,
        adopted_year=state.current_date.year,
    )
    patch.pets[pet.id] = pet
    patch.update(owner.id, pet_id=pet.id, stats=_shifted_stats(owner.stats.model_dump(), definition.effects))
    return patch.add_log(state, "log_pet_adopted", owner, pet=pet.name, type=pet_type.value)


def remove_pet(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    owner = state.family_members[character_id]
    pet = state.family_pets.get(owner.pet_id) if owner.pet_id else None
    if pet is None:
        return patch

    definition = ctx.catalog.pet(pet.type)
    effects = definition.effects if definition is not None else {}
    patch.pets[pet.id] = None
    patch.update(owner.id, pet_id=None, stats=_shifted_stats(owner.stats.model_dump(), effects, sign=-1))
    return patch.add_log(state, params.get("logKey", "log_pet_gone"), owner, pet=pet.name)


def lose_job(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    character = state.family_members[character_id]
    if character.status != CharacterStatus.WORKING:
        return patch
    return patch.update(
        character_id,
        status=CharacterStatus.UNEMPLOYED,
        career_track=None,
        career_level=0,
        career_penalty=0.0,
        months_in_job_level=0,
        months_unemployed=0,
    )


def partner_stats(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    character = state.family_members[character_id]
    partner = state.family_members.get(character.partner_id) if character.partner_id else None
    if partner is None or not partner.is_alive:
        return patch
    return patch.update(partner.id, stats=_shifted_stats(partner.stats.model_dump(), params.get("statChanges", {})))


def household_stats(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    """Apply the same clamped stat change to a character and a living partner."""
    patch = StatePatch()
    character = state.family_members[character_id]
    changes = params.get("statChanges", {})
    patch.update(character.id, stats=_shifted_stats(character.stats.model_dump(), changes))
    partner = state.family_members.get(character.partner_id) if character.partner_id else None
    if partner is not None and partner.is_alive:
        patch.update(partner.id, stats=_shifted_stats(partner.stats.model_dump(), changes))
    return patch


def chance_bonus(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> StatePatch:
    patch = StatePatch()
    if not ctx.rng.roll(params.get("chance", 0.0)):
        return patch
    amount = int(params.get("amount", 0))
    patch.fund_delta = amount
    return patch.add_log(state, params.get("logKey", "log_bonus"), state.family_members[character_id], amount=amount)


ACTIONS: dict[ActionKind, Action] = {
    ActionKind.MARRY: milestones.marry,
    ActionKind.CONCEIVE_CHILD: milestones.conceive_child,
    ActionKind.DIE_OF_OLD_AGE: milestones.die_of_old_age,
    ActionKind.ADOPT_PET: adopt_pet,
    ActionKind.REMOVE_PET: remove_pet,
    ActionKind.LOSE_JOB: lose_job,
    ActionKind.PARTNER_STATS: partner_stats,
    ActionKind.HOUSEHOLD_STATS: household_stats,
    ActionKind.CHANCE_BONUS: chance_bonus,
}


# ------------------------------------------------------------------
#  Dynamic effects
# ------------------------------------------------------------------


def gamble(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> EventEffect:
    """Fixed-odds outcome, e.g. a pregnancy attempt that works 70 % of the time."""
    branch = "success" if ctx.rng.roll(params["chance"]) else "failure"
    return EventEffect.model_validate(params[branch])


def stat_check(state: GameState, character_id: str, params: dict[str, Any], ctx: EngineContext) -> EventEffect:
    """Outcome odds proportional to one of the character's stats."""
    stat = params["stat"]
    character = state.family_members[character_id]
    chance = character.stats.get(stat) / STAT_CEILINGS[stat]
    branch = "success" if ctx.rng.roll(chance) else "failure"
    return EventEffect.model_validate(params[branch])


DYNAMIC_EFFECTS: dict[DynamicEffectKind, DynamicEffect] = {
    DynamicEffectKind.GAMBLE: gamble,
    DynamicEffectKind.STAT_CHECK: stat_check,
}
