"""Shared fixtures: an engine context over the shipped config and small state builders."""

import pytest

from famsim.context import EngineContext
from famsim.models import (
    Character,
    CharacterStatus,
    GameDate,
    GameState,
    Gender,
    RelationshipStatus,
    Stats,
)
from famsim.lifecycle import get_life_phase

START_YEAR = 2024


@pytest.fixture
def ctx():
    return EngineContext.from_config(seed=1234)


@pytest.fixture
def make_character():
    counter = {"n": 0}

    def _make(age=30, gender=Gender.MALE, **fields):
        counter["n"] += 1
        stats = fields.pop("stats", None) or Stats(iq=100, happiness=70, eq=70, health=80, skill=0)
        defaults = dict(
            id=f"char-{counter['n']}",
            name=f"Person {counter['n']}",
            gender=gender,
            birth_date=GameDate(day=1, year=START_YEAR - age),
            age=age,
            phase=get_life_phase(age),
            stats=stats,
            is_player_character=True,
        )
        defaults.update(fields)
        return Character(**defaults)

    return _make


@pytest.fixture
def make_state():
    def _make(*characters, fund=100000, day=2, year=START_YEAR):
        return GameState(
            family_members={c.id: c for c in characters},
            family_fund=fund,
            current_date=GameDate(day=day, year=year),
            # Keep random events out of the way unless a test wants them.
            event_cooldown_until=10**9,
        )

    return _make


@pytest.fixture
def married_couple(make_character):
    husband = make_character(age=30, gender=Gender.MALE, status=CharacterStatus.WORKING)
    wife = make_character(age=28, gender=Gender.FEMALE, is_player_character=False)
    husband.partner_id, wife.partner_id = wife.id, husband.id
    husband.relationship_status = wife.relationship_status = RelationshipStatus.MARRIED
    return husband, wife
