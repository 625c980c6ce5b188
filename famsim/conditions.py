"""
famsim/conditions.py
~~~~~~~~~~~~~~~~~~~~
Registry of event condition predicates, keyed by ``ConditionKind``.

An event's ``conditions`` list is a conjunction evaluated left to right with
short-circuiting, so random rolls (``chance``, ``age_hazard``) should come
last: they only consume randomness once the deterministic clauses pass.
"""

from __future__ import annotations

from typing import Callable

from famsim.catalog import Condition, ConditionKind, GameEvent
from famsim.models import Character, GameState
from famsim.rng import RandomSource

Predicate = Callable[[GameState, Character, Condition, GameEvent, RandomSource], bool]

CONDITIONS: dict[ConditionKind, Predicate] = {}


def register(kind: ConditionKind) -> Callable[[Predicate], Predicate]:
    def decorator(func: Predicate) -> Predicate:
        CONDITIONS[kind] = func
        return func

    return decorator


@register(ConditionKind.AGE_AT_LEAST)
def _age_at_least(state, character, condition, event, rng) -> bool:
    return character.age >= condition.value


@register(ConditionKind.AGE_AT_MOST)
def _age_at_most(state, character, condition, event, rng) -> bool:
    return character.age <= condition.value


@register(ConditionKind.AGE_EQUALS)
def _age_equals(state, character, condition, event, rng) -> bool:
    return character.age == condition.value


@register(ConditionKind.NOT_COMPLETED)
def _not_completed(state, character, condition, event, rng) -> bool:
    return (condition.eventId or event.id) not in character.completed_one_time_events


@register(ConditionKind.COMPLETED)
def _completed(state, character, condition, event, rng) -> bool:
    return (condition.eventId or event.id) in character.completed_one_time_events


@register(ConditionKind.HAS_PET)
def _has_pet(state, character, condition, event, rng) -> bool:
    return character.pet_id is not None


@register(ConditionKind.NO_PET)
def _no_pet(state, character, condition, event, rng) -> bool:
    return character.pet_id is None


@register(ConditionKind.STATUS_IS)
def _status_is(state, character, condition, event, rng) -> bool:
    return character.status.value == condition.value


@register(ConditionKind.CAREER_LEVEL_IS)
def _career_level_is(state, character, condition, event, rng) -> bool:
    return character.career_track is not None and character.career_level == condition.value


@register(ConditionKind.RELATIONSHIP_IS)
def _relationship_is(state, character, condition, event, rng) -> bool:
    return character.relationship_status.value == condition.value


@register(ConditionKind.GENDER_IS)
def _gender_is(state, character, condition, event, rng) -> bool:
    return character.gender.value == condition.value


@register(ConditionKind.HAS_LIVING_PARTNER)
def _has_living_partner(state, character, condition, event, rng) -> bool:
    partner = state.family_members.get(character.partner_id) if character.partner_id else None
    return partner is not None and partner.is_alive


@register(ConditionKind.CHILDREN_BELOW)
def _children_below(state, character, condition, event, rng) -> bool:
    return len(character.children_ids) < condition.value


@register(ConditionKind.HAS_CHILDREN)
def _has_children(state, character, condition, event, rng) -> bool:
    return bool(character.children_ids)


@register(ConditionKind.STAT_AT_LEAST)
def _stat_at_least(state, character, condition, event, rng) -> bool:
    return character.stats.get(condition.stat) >= condition.value


@register(ConditionKind.STAT_BELOW)
def _stat_below(state, character, condition, event, rng) -> bool:
    return character.stats.get(condition.stat) < condition.value


@register(ConditionKind.FUND_AT_LEAST)
def _fund_at_least(state, character, condition, event, rng) -> bool:
    return state.family_fund >= condition.value


@register(ConditionKind.COOLDOWN_CLEAR)
def _cooldown_clear(state, character, condition, event, rng) -> bool:
    until = character.event_cooldowns.get(condition.eventId or event.id)
    return until is None or state.current_date.year >= until


@register(ConditionKind.HAS_MAJOR)
def _has_major(state, character, condition, event, rng) -> bool:
    if condition.value is None:
        return character.major is not None
    return character.major == condition.value


@register(ConditionKind.CHANCE)
def _chance(state, character, condition, event, rng) -> bool:
    return rng.roll(condition.value)


@register(ConditionKind.AGE_HAZARD)
def _age_hazard(state, character, condition, event, rng) -> bool:
    """Roll ``(age - onset) * rate``: zero at onset, growing every year after."""
    onset = condition.value["onset"]
    rate = condition.value["rate"]
    return character.age > onset and rng.roll((character.age - onset) * rate)


def condition_holds(state: GameState, character: Character, event: GameEvent, rng: RandomSource) -> bool:
    for condition in event.conditions:
        predicate = CONDITIONS[condition.kind]
        if not predicate(state, character, condition, event, rng):
            return False
    return True
