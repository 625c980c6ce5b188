"""
famsim/evaluator.py
~~~~~~~~~~~~~~~~~~~
Which catalog events could happen to a character right now.

Evaluation never mutates the state. Its only side effect is consuming draws
from the random source when an event's conditions include a roll.
"""

from __future__ import annotations

from typing import Iterable

from famsim.catalog import ContentCatalog, GameEvent
from famsim.conditions import condition_holds
from famsim.models import Character, GameState
from famsim.rng import RandomSource


def is_event_eligible(event: GameEvent, state: GameState, character: Character, rng: RandomSource) -> bool:
    if event.isTriggerOnly or not character.is_alive:
        return False
    if character.phase not in event.phases:
        return False
    if event.allowedRelationshipStatuses is not None and character.relationship_status not in event.allowedRelationshipStatuses:
        return False
    if event.happens_once and event.id in character.completed_one_time_events:
        return False
    return condition_holds(state, character, event, rng)


def evaluate_eligible_events(
    state: GameState,
    character: Character,
    catalog: ContentCatalog,
    rng: RandomSource,
    include_milestones: bool = True,
) -> list[GameEvent]:
    events: Iterable[GameEvent] = catalog.events
    if not include_milestones:
        events = (e for e in events if not e.isMilestone)
    return [e for e in events if is_event_eligible(e, state, character, rng)]


def first_milestone_candidate(
    event: GameEvent, state: GameState, rng: RandomSource
) -> Character | None:
    """The first living member, in family order, for whom a milestone fires."""
    for character in state.living_members():
        if state.has_pending_for(character.id):
            continue
        if is_event_eligible(event, state, character, rng):
            return character
    return None
