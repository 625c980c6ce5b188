"""
famsim/scenarios.py
~~~~~~~~~~~~~~~~~~~
Starting positions for a new game.

  - classic        a single newborn founder and the configured starting funds
  - alone          an adult founder with a degree, waiting on a career choice
  - preset_family  a married couple with three children and a dog
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from famsim.avatar import generate_avatar
from famsim.choices import open_career_choice
from famsim.context import EngineContext
from famsim.lifecycle import (
    assign_npc_career,
    create_initial_character,
    display_adjective,
    get_life_phase,
    handle_birth,
    opposite_gender,
)
from famsim.models import (
    Character,
    CharacterStatus,
    GameDate,
    GameState,
    Gender,
    LifePhase,
    Pet,
    PetType,
    RelationshipStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_START_YEAR = 2024
ALONE_AGE = 24
ALONE_FUNDS = 50000


def _grow_up(ctx: EngineContext, character: Character, age: int, start_year: int) -> Character:
    """Return ``character`` as it would be at ``age`` in ``start_year``."""
    birth = GameDate(day=character.birth_date.day, year=start_year - age)
    grown = character.model_copy(
        update={
            "age": age,
            "birth_date": birth,
            "phase": get_life_phase(age),
            "avatar": generate_avatar(ctx.catalog.avatar, age, character.gender, ctx.rng),
        }
    )
    grown.adjective = display_adjective(grown.stats, ctx)
    return grown


def _empty_state(ctx: EngineContext, scenario: str, start_year: int, language: str, funds: int) -> GameState:
    state = GameState(
        current_date=GameDate(day=1, year=start_year),
        family_fund=funds,
        language=language,
        scenario=scenario,
    )
    state.event_cooldown_until = ctx.day_index(1, start_year) + ctx.settings.firstEventDelayDays
    return state


def classic(ctx: EngineContext, start_year: int, language: str) -> GameState:
    state = _empty_state(ctx, "classic", start_year, language, ctx.settings.initialFunds)
    founder = create_initial_character(ctx, start_year, language)
    state.family_members[founder.id] = founder
    state.log("log_first_generation", founder)
    return state


def alone(ctx: EngineContext, start_year: int, language: str) -> GameState:
    state = _empty_state(ctx, "alone", start_year, language, ALONE_FUNDS)
    founder = _grow_up(ctx, create_initial_character(ctx, start_year, language), ALONE_AGE, start_year)
    if ctx.catalog.majors:
        founder.major = ctx.rng.choice(ctx.catalog.majors).id
        founder.education = "university"
    state.family_members[founder.id] = founder
    state.log("log_started_alone", founder)
    open_career_choice(state, founder)
    return state


def preset_family(ctx: EngineContext, start_year: int, language: str) -> GameState:
    state = _empty_state(ctx, "preset_family", start_year, language, ctx.settings.initialFunds)

    head = _grow_up(ctx, create_initial_character(ctx, start_year, language), 30, start_year)
    head = head.model_copy(update=assign_npc_career(ctx, head))
    spouse_seed = create_initial_character(ctx, start_year, language)
    spouse_gender = opposite_gender(head.gender)
    spouse = _grow_up(ctx, spouse_seed.model_copy(update={"gender": spouse_gender}), 28, start_year)
    spouse = spouse.model_copy(
        update={
            "name": ctx.names.random_name(language, spouse_gender, ctx.rng),
            "is_player_character": False,
            **assign_npc_career(ctx, spouse),
        }
    )
    head.relationship_status = spouse.relationship_status = RelationshipStatus.MARRIED
    head.partner_id, spouse.partner_id = spouse.id, head.id

    mother, father = (head, spouse) if head.gender == Gender.FEMALE else (spouse, head)
    for age in (8, 5, 2):
        child = handle_birth(ctx, mother, father, GameDate(day=1, year=start_year - age), language)
        child = _grow_up(ctx, child, age, start_year)
        if child.phase == LifePhase.ELEMENTARY:
            child.education = LifePhase.ELEMENTARY.value
            child.status = CharacterStatus.IN_EDUCATION
            child.school_id = "elementary_public"
            child.status_end_year = start_year + 12 - age
        state.family_members[child.id] = child
        for parent in (mother, father):
            parent.children_ids.append(child.id)
    state.total_children_born = 3

    dog = ctx.catalog.pet(PetType.DOG)
    pet = Pet(
        id=ctx.rng.uuid(),
        name=ctx.rng.choice(dog.names) if dog is not None else "Buddy",
        type=PetType.DOG,
        owner_id=head.id,
        adopted_year=start_year,
    )
    head.pet_id = pet.id
    state.family_pets[pet.id] = pet

    state.family_members[head.id] = head
    state.family_members[spouse.id] = spouse
    state.log("log_preset_family", head, partner=spouse.name)
    return state


SCENARIOS: dict[str, Callable[[EngineContext, int, str], GameState]] = {
    "classic": classic,
    "alone": alone,
    "preset_family": preset_family,
}


def new_game(
    ctx: EngineContext,
    scenario: str = "classic",
    start_year: int = DEFAULT_START_YEAR,
    language: Optional[str] = None,
) -> GameState:
    builder = SCENARIOS.get(scenario)
    if builder is None:
        raise ValueError(f"Unknown scenario '{scenario}'. Choose from: {', '.join(SCENARIOS)}.")
    state = builder(ctx, start_year, language or ctx.settings.language)
    logger.info("New %s game started in %s with %d member(s).", scenario, start_year, len(state.family_members))
    return state
