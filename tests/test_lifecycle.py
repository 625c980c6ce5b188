"""Tests for famsim.lifecycle: phases, creation, birth, NPC careers, ageing and death."""

import math

import pytest

from famsim.lifecycle import (
    age_one_year,
    assign_npc_career,
    create_initial_character,
    daily_decay,
    death_patch,
    get_life_phase,
    handle_birth,
)
from famsim.models import STAT_CEILINGS, STAT_NAMES, CharacterStatus, GameDate, Gender, LifePhase, Stats
from famsim.patch import merge_patch
from famsim.rng import RandomSource


class TestLifePhase:
    @pytest.mark.parametrize(
        "age, phase",
        [
            (0, LifePhase.NEWBORN),
            (5, LifePhase.NEWBORN),
            (6, LifePhase.ELEMENTARY),
            (11, LifePhase.ELEMENTARY),
            (12, LifePhase.MIDDLE_SCHOOL),
            (15, LifePhase.MIDDLE_SCHOOL),
            (16, LifePhase.HIGH_SCHOOL),
            (18, LifePhase.HIGH_SCHOOL),
            (19, LifePhase.UNIVERSITY),
            (22, LifePhase.UNIVERSITY),
            (23, LifePhase.POST_GRADUATION),
            (59, LifePhase.POST_GRADUATION),
            (60, LifePhase.RETIRED),
            (104, LifePhase.RETIRED),
        ],
    )
    def test_phase_boundaries(self, age, phase):
        assert get_life_phase(age) == phase


class TestCreation:
    def test_initial_character_is_a_newborn_player(self, ctx):
        founder = create_initial_character(ctx, 2024)
        assert founder.age == 0
        assert founder.phase == LifePhase.NEWBORN
        assert founder.is_player_character
        assert founder.generation == 0
        assert founder.birth_date == GameDate(day=1, year=2024)
        assert founder.stats.skill == 0
        assert 0 <= founder.stats.iq <= 100
        assert 30 <= founder.stats.health <= 100

    def test_same_seed_same_founder(self):
        from famsim.context import EngineContext

        first = create_initial_character(EngineContext.from_config(seed=7), 2024)
        second = create_initial_character(EngineContext.from_config(seed=7), 2024)
        assert first == second


class TestBirth:
    def test_child_links_and_generation(self, ctx, married_couple):
        father, mother = married_couple
        child = handle_birth(ctx, mother, father, GameDate(day=10, year=2030))
        assert child.parents_ids == [mother.id, father.id]
        assert child.generation == mother.generation + 1
        assert child.age == 0
        assert child.birth_date.year == 2030
        assert child.is_player_character

    def test_stats_stay_within_inheritance_range(self, ctx, make_character):
        stats = Stats(iq=100, happiness=50, eq=60, health=90, skill=40)
        mother = make_character(gender=Gender.FEMALE, stats=stats)
        father = make_character(gender=Gender.MALE, stats=stats.model_copy())
        for _ in range(200):
            child = handle_birth(ctx, mother, father, GameDate(day=1, year=2030))
            assert 80 <= child.stats.iq < 140
            assert 40 <= child.stats.happiness < 70
            assert 48 <= child.stats.eq < 84
            assert math.floor(90 * 0.8) + 10 <= child.stats.health <= 100
            assert child.stats.skill == 0

    def test_ceilings_hold_across_random_parent_pairs(self, ctx, make_character):
        draws = RandomSource(2024)
        reached = set()
        for n in range(1000):
            # Every other pair sits at the top of each range.
            low = 0.75 if n % 2 else 0.0
            parents = [
                make_character(
                    gender=gender,
                    stats=Stats(**{stat: draws.uniform(low * STAT_CEILINGS[stat], STAT_CEILINGS[stat]) for stat in STAT_NAMES}),
                )
                for gender in (Gender.FEMALE, Gender.MALE)
            ]
            child = handle_birth(ctx, parents[0], parents[1], GameDate(day=1, year=2030))
            for stat in STAT_NAMES:
                value = child.stats.get(stat)
                assert 0 <= value <= STAT_CEILINGS[stat]
                if value == STAT_CEILINGS[stat]:
                    reached.add(stat)
        assert {"iq", "happiness", "eq", "health"} <= reached


class TestNpcCareer:
    def test_young_adult_is_unemployed(self, ctx, make_character):
        updates = assign_npc_career(ctx, make_character(age=20))
        assert updates["status"] == CharacterStatus.UNEMPLOYED
        assert updates["education"] == LifePhase.HIGH_SCHOOL.value

    def test_senior_is_retired(self, ctx, make_character):
        updates = assign_npc_career(ctx, make_character(age=65))
        assert updates["status"] == CharacterStatus.RETIRED
        assert updates["career_track"] is None

    def test_working_adult_gets_a_consistent_track(self, ctx, make_character):
        for _ in range(50):
            updates = assign_npc_career(ctx, make_character(age=45))
            track = ctx.catalog.career_track(updates["career_track"])
            assert updates["status"] == CharacterStatus.WORKING
            assert track.requiredMajor is None or track.requiredMajor == updates["major"]
            assert 0 <= updates["career_level"] < len(track.levels)
            assert 0 <= updates["stats"].skill <= 50


class TestAgeing:
    def test_birthday_moves_phase(self, ctx, make_character):
        child = make_character(age=5)
        assert age_one_year(ctx, child) == LifePhase.ELEMENTARY
        assert child.age == 6
        assert child.phase == LifePhase.ELEMENTARY

    def test_birthday_without_phase_change(self, ctx, make_character):
        adult = make_character(age=30, events_this_year=2)
        assert age_one_year(ctx, adult) is None
        assert adult.events_this_year == 0

    def test_old_age_health_decay(self, make_character):
        elder = make_character(age=75)
        before = elder.stats.health
        daily_decay(elder, 2024)
        assert elder.stats.health == pytest.approx(before - 0.015)

    def test_mourning_lowers_happiness(self, make_character):
        widow = make_character(age=30, mourning_until_year=2025)
        daily_decay(widow, 2024)
        assert widow.stats.happiness == pytest.approx(69.9)
        daily_decay(widow, 2026)
        assert widow.stats.happiness == pytest.approx(69.9)


class TestDeath:
    def test_death_marks_and_mourns(self, ctx, make_state, married_couple):
        husband, wife = married_couple
        state = make_state(husband, wife)
        merge_patch(state, death_patch(ctx, state, husband.id))

        dead = state.family_members[husband.id]
        widow = state.family_members[wife.id]
        assert not dead.is_alive
        assert dead.death_date == state.current_date
        assert widow.is_alive
        assert widow.stats.happiness == 50
        assert widow.mourning_until_year == 2024 + ctx.settings.mourningYears
        # The survivor stays linked to the deceased partner.
        assert widow.partner_id == husband.id
        assert state.game_log[-1].message_key == "log_died"

    def test_dead_character_yields_empty_patch(self, ctx, make_state, make_character):
        ghost = make_character(is_alive=False)
        state = make_state(ghost)
        assert death_patch(ctx, state, ghost.id).is_empty()
