"""
famsim/lifecycle.py
~~~~~~~~~~~~~~~~~~~
Character lifecycle: creation, birth, ageing, life phases, off-screen
careers for characters who join the family as adults, and death.

Every random draw goes through the ``RandomSource`` on the engine context.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from famsim.avatar import generate_avatar
from famsim.context import EngineContext
from famsim.models import (
    STAT_CEILINGS,
    STAT_NAMES,
    Character,
    CharacterStatus,
    GameDate,
    GameState,
    Gender,
    LifePhase,
    Stats,
    clamp_stat,
)
from famsim.patch import StatePatch

logger = logging.getLogger(__name__)

# Oldest age (inclusive) for each phase; anything older is Retired.
PHASE_MAX_AGE: tuple[tuple[LifePhase, int], ...] = (
    (LifePhase.NEWBORN, 5),
    (LifePhase.ELEMENTARY, 11),
    (LifePhase.MIDDLE_SCHOOL, 15),
    (LifePhase.HIGH_SCHOOL, 18),
    (LifePhase.UNIVERSITY, 22),
    (LifePhase.POST_GRADUATION, 59),
)

WORKFORCE_ENTRY_AGE = 23
# Years in the workforce after which an NPC has climbed one more career level.
SENIORITY_STEPS = (5, 12, 20)

ADJECTIVES: tuple[tuple[str, int, tuple[str, str]], ...] = (
    ("iq", 130, ("intelligent", "brilliant")),
    ("happiness", 85, ("happy", "joyful")),
    ("eq", 85, ("confident", "brave")),
    ("health", 90, ("healthy", "vigorous")),
)


def get_life_phase(age: int) -> LifePhase:
    for phase, max_age in PHASE_MAX_AGE:
        if age <= max_age:
            return phase
    return LifePhase.RETIRED


def display_adjective(stats: Stats, ctx: EngineContext) -> str:
    for stat, threshold, words in ADJECTIVES:
        if stats.get(stat) > threshold:
            return ctx.rng.choice(words)
    return "normal"


def opposite_gender(gender: Gender) -> Gender:
    return Gender.FEMALE if gender == Gender.MALE else Gender.MALE


# ------------------------------------------------------------------
#  Creation
# ------------------------------------------------------------------


def create_initial_character(ctx: EngineContext, year: int, language: Optional[str] = None) -> Character:
    """The founder of the family: a newborn player character."""
    rng = ctx.rng
    gender = Gender.MALE if rng.random() < 0.5 else Gender.FEMALE
    stats = Stats(
        iq=rng.randint(0, 100),
        happiness=rng.randint(0, 100),
        eq=rng.randint(0, 100),
        health=30 + rng.randint(0, 70),
        skill=0,
    )
    character = Character(
        id=rng.uuid(),
        name=ctx.names.random_name(language or ctx.settings.language, gender, rng),
        gender=gender,
        generation=0,
        is_player_character=True,
        birth_date=GameDate(day=1, year=year),
        age=0,
        stats=stats,
        phase=LifePhase.NEWBORN,
        avatar=generate_avatar(ctx.catalog.avatar, 0, gender, rng),
    )
    character.adjective = display_adjective(character.stats, ctx)
    return character


def handle_birth(
    ctx: EngineContext,
    parent1: Character,
    parent2: Character,
    date: GameDate,
    language: Optional[str] = None,
) -> Character:
    """
    Create a child of two parents.

    Each stat is the parents' average scaled by a multiplier drawn from
    [0.8, 1.4) and floored; health gets +10 before the ceiling is applied.
    Skill always starts at 0.
    """
    rng = ctx.rng
    gender = Gender.MALE if rng.random() < 0.5 else Gender.FEMALE

    values: dict[str, float] = {}
    for stat in STAT_NAMES:
        if stat == "skill":
            values[stat] = 0
            continue
        average = (parent1.stats.get(stat) + parent2.stats.get(stat)) / 2
        value = math.floor(average * (0.8 + rng.random() * 0.6))
        if stat == "health":
            value += 10
        values[stat] = max(0, min(STAT_CEILINGS[stat], value))

    child = Character(
        id=rng.uuid(),
        name=ctx.names.random_name(language or ctx.settings.language, gender, rng),
        gender=gender,
        generation=parent1.generation + 1,
        is_player_character=parent1.is_player_character or parent2.is_player_character,
        birth_date=GameDate(day=rng.randint(1, ctx.settings.daysInYear), year=date.year),
        age=0,
        stats=Stats(**values),
        phase=LifePhase.NEWBORN,
        parents_ids=[parent1.id, parent2.id],
        avatar=generate_avatar(ctx.catalog.avatar, 0, gender, rng),
    )
    child.adjective = display_adjective(child.stats, ctx)
    return child


def assign_npc_career(ctx: EngineContext, character: Character) -> dict[str, Any]:
    """
    Field updates giving an off-screen adult a plausible education and job.

    Returned as a partial so callers decide how to merge it.
    """
    rng = ctx.rng
    catalog = ctx.catalog

    if character.age < WORKFORCE_ENTRY_AGE:
        return {"education": LifePhase.HIGH_SCHOOL.value, "status": CharacterStatus.UNEMPLOYED}
    if character.age >= ctx.settings.retirementAge:
        return {"status": CharacterStatus.RETIRED, "career_track": None, "career_level": 0}

    major = None
    if rng.random() < 0.5 and catalog.majors:
        major = rng.choice(catalog.majors).id

    tracks = [t for t in catalog.career_tracks if t.requiredMajor is None or t.requiredMajor == major]
    if not tracks:
        tracks = catalog.unconditioned_tracks()
    track = rng.choice(tracks)

    years_working = character.age - WORKFORCE_ENTRY_AGE
    level = sum(1 for step in SENIORITY_STEPS if years_working > step)
    level = min(level, len(track.levels) - 1)

    stats = character.stats.model_copy(update={"skill": rng.uniform(0, 50)})
    return {
        "major": major,
        "education": "university" if major else LifePhase.HIGH_SCHOOL.value,
        "career_track": track.id,
        "career_level": level,
        "status": CharacterStatus.WORKING,
        "stats": stats,
        "avatar": generate_avatar(catalog.avatar, character.age, character.gender, rng),
    }


# ------------------------------------------------------------------
#  Ageing
# ------------------------------------------------------------------


def age_one_year(ctx: EngineContext, character: Character) -> Optional[LifePhase]:
    """Birthday bookkeeping. Returns the new phase if it changed."""
    if not character.is_alive:
        return None
    character.age += 1
    character.events_this_year = 0
    character.adjective = display_adjective(character.stats, ctx)

    phase = get_life_phase(character.age)
    if phase == character.phase:
        return None
    character.phase = phase
    character.avatar = generate_avatar(ctx.catalog.avatar, character.age, character.gender, ctx.rng)
    return phase


def daily_decay(character: Character, year: int) -> None:
    """Mourning and old-age health loss for one simulated day."""
    if not character.is_alive:
        return
    if character.mourning_until_year is not None and year <= character.mourning_until_year:
        character.stats.happiness = clamp_stat("happiness", character.stats.happiness - 0.1)

    decay = 0.0
    if character.age > 50:
        decay += 0.005
    if character.age > 70:
        decay += 0.01
    if decay:
        character.stats.health = max(0.0, character.stats.health - decay)


# ------------------------------------------------------------------
#  Death
# ------------------------------------------------------------------


def death_patch(
    ctx: EngineContext,
    state: GameState,
    character_id: str,
    log_key: str = "log_died",
    on: Optional[GameDate] = None,
) -> StatePatch:
    """
    Mark a character dead and put every other living member into mourning.

    ``on`` dates the death when it happens away from the family clock, as in
    :func:`famsim.simulation.advance_character`. Business slots are vacated by
    the merge step once the death is committed.
    """
    patch = StatePatch()
    character = state.family_members.get(character_id)
    if character is None or not character.is_alive:
        return patch

    date = on or state.current_date
    patch.update(character_id, is_alive=False, death_date=GameDate(day=date.day, year=date.year))
    patch.add_log(state, log_key, character, on=date, age=character.age)

    settings = ctx.settings
    for other in state.living_members():
        if other.id == character_id:
            continue
        patch.update(
            other.id,
            stats={"happiness": clamp_stat("happiness", other.stats.happiness - settings.mourningPenalty)},
            mourning_until_year=date.year + settings.mourningYears,
        )
    logger.info("%s died at age %s in year %s.", character.name, character.age, date.year)
    return patch
