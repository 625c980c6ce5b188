"""Tests for pending choices: school, club, university, major, career, loans and promotions."""

import pytest

from famsim.choices import (
    MAX_CAREER_OPTIONS,
    MISMATCH_PENALTY,
    generate_career_choices,
    open_career_choice,
    open_loan_choice,
    open_pending,
    open_promotion,
    open_school_choice,
    open_university_choice,
    resolve_pending_choice,
)
from famsim.errors import PendingChoiceError
from famsim.models import CharacterStatus, LifePhase, PendingKind, Stats


def _answer(state, kind, character, value, ctx):
    return resolve_pending_choice(state, kind, character.id, value, ctx)


class TestPendingSlots:
    def test_one_slot_per_kind(self, make_state, make_character):
        first, second = make_character(), make_character()
        state = make_state(first, second)
        open_career_choice(state, first)
        with pytest.raises(PendingChoiceError):
            open_career_choice(state, second)

    def test_wrong_character_cannot_answer(self, ctx, make_state, make_character):
        first, second = make_character(), make_character()
        state = make_state(first, second)
        open_career_choice(state, first)
        with pytest.raises(PendingChoiceError):
            _answer(state, PendingKind.CAREER, second, "job", ctx)

    def test_value_must_be_an_option(self, ctx, make_state, make_character):
        adult = make_character()
        state = make_state(adult)
        open_university_choice(state, adult)
        with pytest.raises(PendingChoiceError):
            _answer(state, PendingKind.UNIVERSITY, adult, "maybe", ctx)

    def test_nothing_pending(self, ctx, make_state, make_character):
        adult = make_character()
        with pytest.raises(PendingChoiceError):
            _answer(make_state(adult), PendingKind.LOAN, adult, "decline", ctx)

    def test_answer_does_not_touch_input(self, ctx, make_state, make_character):
        adult = make_character()
        state = make_state(adult)
        open_university_choice(state, adult)
        _answer(state, PendingKind.UNIVERSITY, adult, "no", ctx)
        assert PendingKind.UNIVERSITY in state.pending


class TestSchool:
    def test_enrolment(self, ctx, make_state, make_character):
        child = make_character(age=6)
        state = make_state(child, fund=50000)
        open_school_choice(state, child, LifePhase.ELEMENTARY, ctx)

        after = _answer(state, PendingKind.SCHOOL, child, "elementary_private", ctx)

        enrolled = after.family_members[child.id]
        assert after.family_fund == 30000
        assert enrolled.status == CharacterStatus.IN_EDUCATION
        assert enrolled.education == LifePhase.ELEMENTARY.value
        assert enrolled.school_id == "elementary_private"
        assert enrolled.status_end_year == 2024 + 6
        assert enrolled.stats.iq == 110
        assert after.game_log[-1].message_key == "log_enrolled_private_elementary"

    def test_middle_school_opens_club_choice(self, ctx, make_state, make_character):
        child = make_character(age=12, stats=Stats(iq=150, happiness=90, eq=90, health=90, skill=0))
        state = make_state(child)
        open_school_choice(state, child, LifePhase.MIDDLE_SCHOOL, ctx)

        after = _answer(state, PendingKind.SCHOOL, child, "middle_public", ctx)

        club = after.pending[PendingKind.CLUB]
        assert club.character_id == child.id
        assert 0 < len(club.options) <= 4

        joined = _answer(after, PendingKind.CLUB, child, club.options[0], ctx)
        assert joined.family_members[child.id].club_id == club.options[0]
        assert joined.game_log[-1].message_key == "log_joined_club"


class TestUniversity:
    def test_yes_opens_major_choice(self, ctx, make_state, make_character):
        graduate = make_character(age=19, education=LifePhase.HIGH_SCHOOL.value)
        state = make_state(graduate)
        open_university_choice(state, graduate)

        after = _answer(state, PendingKind.UNIVERSITY, graduate, "yes", ctx)
        majors = after.pending[PendingKind.MAJOR].options
        assert 0 < len(majors) <= 5

        enrolled = _answer(after, PendingKind.MAJOR, graduate, majors[0], ctx)
        student = enrolled.family_members[graduate.id]
        assert student.major == majors[0]
        assert student.education == "university"
        assert student.status == CharacterStatus.IN_EDUCATION
        assert student.status_end_year == 2028
        assert enrolled.family_fund == 100000 - ctx.catalog.major(majors[0]).cost

    def test_no_goes_to_career_choice(self, ctx, make_state, make_character):
        graduate = make_character(age=19)
        state = make_state(graduate)
        open_university_choice(state, graduate)
        after = _answer(state, PendingKind.UNIVERSITY, graduate, "no", ctx)
        assert after.pending[PendingKind.CAREER].options == ["job", "internship", "vocational"]
        assert after.game_log[-1].message_key == "log_skipped_university"


class TestCareer:
    def test_options_put_matching_tracks_first(self, ctx, make_character):
        artist = make_character(major="arts")
        options = generate_career_choices(artist, ctx)
        assert options[0] == "Arts"
        assert len(options) <= MAX_CAREER_OPTIONS
        assert len(set(options)) == len(options)

    def test_no_major_only_unconditioned_tracks(self, ctx, make_character):
        options = generate_career_choices(make_character(), ctx)
        assert all(ctx.catalog.career_track(t).requiredMajor is None for t in options)

    def test_job_path_offers_tracks(self, ctx, make_state, make_character):
        adult = make_character()
        state = make_state(adult)
        open_career_choice(state, adult)
        after = _answer(state, PendingKind.CAREER, adult, "job", ctx)
        assert set(after.pending[PendingKind.CAREER].options) <= {"Unskilled", "Trade"}

    def test_qualified_hire(self, ctx, make_state, make_character):
        artist = make_character(major="arts", stats=Stats(iq=120, happiness=70, eq=90, health=80, skill=10))
        state = make_state(artist)
        open_career_choice(state, artist, ["Arts"])

        hired = _answer(state, PendingKind.CAREER, artist, "Arts", ctx).family_members[artist.id]

        assert hired.status == CharacterStatus.WORKING
        assert hired.career_track == "Arts"
        assert hired.career_level == 0
        assert hired.career_penalty == 0
        assert hired.stats.skill == 0

    def test_wrong_major_is_penalised(self, ctx, make_state, make_character):
        medic = make_character(major="medicine", stats=Stats(iq=150, happiness=70, eq=95, health=80, skill=0))
        state = make_state(medic)
        open_career_choice(state, medic, ["Arts"])
        after = _answer(state, PendingKind.CAREER, medic, "Arts", ctx)
        assert after.family_members[medic.id].career_penalty == MISMATCH_PENALTY
        assert after.game_log[-1].message_key == "log_accepted_mismatched_job"

    def test_matching_major_but_weak_stats_asks_about_traineeship(self, ctx, make_state, make_character):
        artist = make_character(major="arts", stats=Stats(iq=60, happiness=70, eq=40, health=80, skill=0))
        state = make_state(artist)
        open_career_choice(state, artist, ["Arts"])

        after = _answer(state, PendingKind.CAREER, artist, "Arts", ctx)
        assert after.pending[PendingKind.UNDERQUALIFIED].options == ["trainee", "job"]

        trainee = _answer(after, PendingKind.UNDERQUALIFIED, artist, "trainee", ctx).family_members[artist.id]
        assert trainee.status == CharacterStatus.TRAINEE
        assert trainee.trainee_for_track == "Arts"

        penalised = _answer(after, PendingKind.UNDERQUALIFIED, artist, "job", ctx).family_members[artist.id]
        assert penalised.status == CharacterStatus.WORKING
        # iq 40 % short of 100 and eq 50 % short of 80, averaged.
        assert penalised.career_penalty == pytest.approx((0.4 + 0.5) / 2)

    def test_no_degree_and_weak_stats_caps_penalty(self, ctx, make_state, make_character):
        dropout = make_character(stats=Stats(iq=1, happiness=70, eq=1, health=80, skill=0))
        state = make_state(dropout)
        open_career_choice(state, dropout, ["Medicine"])
        after = _answer(state, PendingKind.CAREER, dropout, "Medicine", ctx)
        assert after.family_members[dropout.id].career_penalty == pytest.approx(0.9)
        assert after.game_log[-1].message_key == "log_accepted_severely_underqualified_job"

    def test_internship_and_vocational(self, ctx, make_state, make_character):
        adult = make_character()
        state = make_state(adult)
        open_career_choice(state, adult)

        intern = _answer(state, PendingKind.CAREER, adult, "internship", ctx).family_members[adult.id]
        assert intern.status == CharacterStatus.INTERNSHIP
        assert intern.status_end_year == 2024 + ctx.catalog.internship.duration

        after = _answer(state, PendingKind.CAREER, adult, "vocational", ctx)
        trainee = after.family_members[adult.id]
        assert trainee.status == CharacterStatus.VOCATIONAL_TRAINING
        assert trainee.education == "vocational"
        assert after.family_fund == 100000 - ctx.catalog.vocational_training.cost


class TestLoanAndPromotion:
    def test_loan_options_and_acceptance(self, ctx, make_state, make_character):
        head = make_character()
        state = make_state(head, fund=-100)
        pending = open_loan_choice(state, ctx)
        assert "decline" in pending.options
        assert "50000:5" in pending.options

        after = _answer(state, PendingKind.LOAN, head, "50000:5", ctx)
        assert after.family_fund == 49900
        assert after.loans[0].amount == 50000
        assert after.loans[0].due_year == 2029

    def test_declined_loan_changes_nothing_but_the_prompt(self, ctx, make_state, make_character):
        head = make_character()
        state = make_state(head, fund=-100)
        open_loan_choice(state, ctx)
        after = _answer(state, PendingKind.LOAN, head, "decline", ctx)
        assert after.family_fund == -100
        assert after.pending == {}

    def test_promotion(self, ctx, make_state, make_character):
        worker = make_character(status=CharacterStatus.WORKING, career_track="Trade", months_in_job_level=9)
        state = make_state(worker)
        open_promotion(state, worker, 1, "career_trade_2")

        promoted = _answer(state, PendingKind.PROMOTION, worker, "accept", ctx).family_members[worker.id]
        assert promoted.career_level == 1
        assert promoted.months_in_job_level == 0
        assert promoted.stats.happiness == 90
        assert promoted.stats.eq == 75

        declined = _answer(state, PendingKind.PROMOTION, worker, "decline", ctx)
        assert declined.family_members[worker.id].career_level == 0
        assert declined.game_log[-1].message_key == "log_declined_promotion"

    def test_dead_character_cannot_answer(self, ctx, make_state, make_character):
        ghost = make_character(is_alive=False)
        state = make_state(ghost)
        open_pending(state, PendingKind.CAREER, ghost.id, ["job"])
        with pytest.raises(PendingChoiceError):
            _answer(state, PendingKind.CAREER, ghost, "job", ctx)
