"""Tests for the clock, the reducer and the headless driver."""

import pytest

from famsim.choices import open_university_choice
from famsim.context import EngineContext
from famsim.errors import InvariantViolation, PendingChoiceError
from famsim.models import CharacterStatus, Loan, PendingKind, Stats
from famsim.scenarios import new_game
from famsim.simulation import (
    ActionType,
    GameAction,
    Simulation,
    advance_character,
    advance_days,
    draw_event,
    is_blocked,
    reduce,
    tick_day,
)


def _retiree(make_character, **fields):
    # Retired members draw a pension and are never offered school or work.
    fields.setdefault("age", 30)
    return make_character(status=CharacterStatus.RETIRED, **fields)


class TestClock:
    def test_time_stops_while_a_choice_is_pending(self, ctx, make_state, make_character):
        student = make_character(age=19, education="HighSchool")
        state = make_state(student)
        open_university_choice(state, student)
        assert is_blocked(state)

        after = advance_days(state, 30, ctx)
        assert after.current_date == state.current_date

    def test_month_end_books_income_and_expenses(self, ctx, make_state, make_character):
        state = make_state(_retiree(make_character), day=30)
        tick_day(state, ctx)
        # Pension 4200/12 against post-graduation living costs of 4800/12.
        assert state.current_date.day == 31
        assert state.family_fund == 100000 - 50

    def test_negative_fund_offers_a_loan(self, ctx, make_state, make_character):
        state = make_state(_retiree(make_character), fund=10, day=30)
        tick_day(state, ctx)
        assert state.family_fund == -40
        assert PendingKind.LOAN in state.pending
        assert "decline" in state.pending[PendingKind.LOAN].options

    def test_due_loan_is_repaid_at_new_year(self, ctx, make_state, make_character):
        state = make_state(_retiree(make_character), day=360, year=2028)
        state.loans = [Loan(amount=50000, due_year=2029)]
        tick_day(state, ctx)

        assert state.current_date.year == 2029
        assert state.loans == []
        assert state.family_fund == 100000 - 50 - 50000
        assert "log_loan_repaid" in [entry.message_key for entry in state.game_log]

    def test_unpaid_loan_ends_the_game(self, ctx, make_state, make_character):
        state = make_state(_retiree(make_character), fund=1000, day=360, year=2028)
        state.loans = [Loan(amount=50000, due_year=2029)]
        tick_day(state, ctx)
        assert state.game_over_reason == "debt"
        assert is_blocked(state)

    def test_last_death_ends_the_line(self, ctx, make_state, make_character):
        sick = _retiree(make_character, stats=Stats(iq=100, happiness=70, eq=70, health=0, skill=0))
        state = make_state(sick)
        tick_day(state, ctx)

        assert not state.family_members[sick.id].is_alive
        assert state.game_over_reason == "extinct"

    def test_illness_death_queues_mourning(self, ctx, make_state, make_character):
        sick = _retiree(make_character, stats=Stats(iq=100, happiness=70, eq=70, health=0, skill=0))
        widow = make_character(age=30, is_player_character=False)
        state = make_state(sick, widow)
        tick_day(state, ctx)

        assert not state.family_members[sick.id].is_alive
        assert state.active_event.event_id == "milestone_mourning"
        assert state.active_event.character_id == widow.id

    def test_six_year_old_is_offered_a_school(self, ctx, make_state, make_character):
        child = make_character(age=6, is_player_character=False)
        state = make_state(_retiree(make_character, age=36), child, day=30)
        tick_day(state, ctx)

        pending = state.pending[PendingKind.SCHOOL]
        assert pending.character_id == child.id
        assert all(option.startswith("elementary_") for option in pending.options)

    def test_event_draw_sets_the_cooldown(self, ctx, make_state, make_character):
        character = make_character(age=30)
        state = make_state(character)
        state.event_cooldown_until = 0

        drawn = draw_event(state, ctx)

        assert drawn is not None and drawn.character_id == character.id
        assert state.active_event == drawn
        assert state.family_members[character.id].events_this_year == 1
        assert state.event_cooldown_until == ctx.day_index(2, 2024) + ctx.settings.smallFamilyCooldownDays
        assert draw_event(state, ctx) is None


class TestAdvanceCharacter:
    def test_ages_one_member_without_moving_the_clock(self, ctx, make_state, make_character):
        character = make_character(age=30)
        state = make_state(character)

        after = advance_character(state, character.id, 360, ctx)

        assert after.family_members[character.id].age == 31
        assert after.current_date == state.current_date
        assert state.family_members[character.id].age == 30

    def test_death_is_dated_by_the_members_own_calendar(self, ctx, make_state, make_character):
        # Old-age decay of 0.015 a day takes 0.5 health to zero on the 34th day.
        elder = make_character(age=80, stats=Stats(iq=100, happiness=70, eq=70, health=0.5, skill=0))
        son = make_character(age=50, is_player_character=False)
        state = make_state(elder, son, day=350)

        after = advance_character(state, elder.id, 400, ctx)

        dead = after.family_members[elder.id]
        assert not dead.is_alive
        assert (dead.death_date.day, dead.death_date.year) == (24, 2025)
        assert after.current_date == state.current_date
        assert after.family_members[son.id].mourning_until_year == 2025 + ctx.settings.mourningYears
        death_log = [e for e in after.game_log if e.message_key == "log_died_of_illness"]
        assert [(e.day, e.year) for e in death_log] == [(24, 2025)]

    def test_unknown_member(self, ctx, make_state):
        with pytest.raises(InvariantViolation):
            advance_character(make_state(), "ghost", 10, ctx)


class TestReducer:
    def test_input_state_is_never_modified(self, ctx, make_state, make_character):
        state = make_state(_retiree(make_character), day=30)
        before = state.model_dump()

        after = reduce(state, GameAction(type=ActionType.ADVANCE, days=40), ctx)

        assert state.model_dump() == before
        assert after.current_date.day == 70

    def test_missing_action_field(self, ctx, make_state):
        with pytest.raises(ValueError):
            reduce(make_state(), GameAction(type=ActionType.CHOOSE), ctx)

    def test_choose_without_an_active_event(self, ctx, make_state):
        with pytest.raises(PendingChoiceError):
            reduce(make_state(), GameAction(type=ActionType.CHOOSE, choice_index=0), ctx)


class TestSimulation:
    def test_seeded_runs_are_reproducible(self):
        def run():
            ctx = EngineContext.from_config(seed=7)
            state = new_game(ctx, "classic", 2024)
            return Simulation(ctx, state).run(5)

        first, second = run(), run()
        assert first.model_dump() == second.model_dump()
        assert first.game_over_reason is not None or first.current_date.year == 2029

    def test_days_until(self, ctx, make_state):
        simulation = Simulation(ctx, make_state(day=31))
        assert simulation.days_until(2025) == 360 - 30
