"""
famsim/choices.py
~~~~~~~~~~~~~~~~~
Pending choices: the questions the simulation stops for (which school,
which major, which job, take a loan, accept a promotion...).

``open_*`` functions create a pending slot on the working state; ``handle_*``
functions consume one. Only one pending choice of each kind exists at a time,
and the orchestrator does not offer events to a character with one open.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from famsim.catalog import CareerTrack
from famsim.context import EngineContext
from famsim.errors import PendingChoiceError
from famsim.lifecycle import PHASE_MAX_AGE
from famsim.models import (
    Character,
    CharacterStatus,
    GameState,
    LifePhase,
    Loan,
    PendingChoice,
    PendingKind,
    clamp_stat,
)
from famsim.resolution import apply_stat_changes

logger = logging.getLogger(__name__)

MAX_CAREER_OPTIONS = 5
MAX_MAJOR_OPTIONS = 5
MAX_CLUB_OPTIONS = 4
UNIVERSITY_YEARS = 4
MISMATCH_PENALTY = 0.30
MAX_PENALTY = 0.9
CAREER_PATHS = ["job", "internship", "vocational"]

PHASE_LAST_AGE = dict(PHASE_MAX_AGE)


# ------------------------------------------------------------------
#  Opening
# ------------------------------------------------------------------


def open_pending(state: GameState, kind: PendingKind, character_id: str, options: list[str], **data) -> PendingChoice:
    existing = state.pending.get(kind)
    if existing is not None and existing.character_id != character_id:
        raise PendingChoiceError(f"A {kind.value} choice is already pending for {existing.character_id}.")
    pending = PendingChoice(kind=kind, character_id=character_id, options=options, data=data)
    state.pending[kind] = pending
    return pending


def open_school_choice(state: GameState, character: Character, phase: LifePhase, ctx: EngineContext) -> Optional[PendingChoice]:
    options = [s.id for s in ctx.catalog.schools_for(phase)]
    if not options:
        logger.warning("No schools configured for %s.", phase.value)
        return None
    return open_pending(state, PendingKind.SCHOOL, character.id, options, phase=phase.value)


def open_club_choice(state: GameState, character: Character, ctx: EngineContext) -> Optional[PendingChoice]:
    eligible = []
    for club in ctx.catalog.clubs:
        prerequisites = club.prerequisites
        if prerequisites.age is not None and character.age < prerequisites.age:
            continue
        if any(character.stats.get(stat) < value for stat, value in prerequisites.stats.items()):
            continue
        eligible.append(club.id)
    options = ctx.rng.shuffled(eligible)[:MAX_CLUB_OPTIONS]
    if not options:
        return None
    return open_pending(state, PendingKind.CLUB, character.id, options)


def open_university_choice(state: GameState, character: Character) -> PendingChoice:
    return open_pending(state, PendingKind.UNIVERSITY, character.id, ["yes", "no"])


def open_career_choice(state: GameState, character: Character, options: Optional[list[str]] = None) -> PendingChoice:
    return open_pending(state, PendingKind.CAREER, character.id, options or list(CAREER_PATHS))


def open_loan_choice(state: GameState, ctx: EngineContext) -> Optional[PendingChoice]:
    if PendingKind.LOAN in state.pending:
        return None
    borrower = state.player_character()
    if borrower is None:
        return None
    economy = ctx.settings.economy
    options = [f"{amount}:{term}" for amount in economy.loanAmounts for term in economy.loanTerms]
    return open_pending(state, PendingKind.LOAN, borrower.id, options + ["decline"])


def open_promotion(state: GameState, character: Character, new_level: int, title_key: str) -> PendingChoice:
    return open_pending(
        state, PendingKind.PROMOTION, character.id, ["accept", "decline"], new_level=new_level, title_key=title_key
    )


def generate_career_choices(character: Character, ctx: EngineContext) -> list[str]:
    """Tracks matching the character's major first, then the rest shuffled."""
    tracks = ctx.catalog.career_tracks
    matching = [t.id for t in tracks if character.major is not None and t.requiredMajor == character.major]
    if character.major is not None:
        others = [t.id for t in tracks if t.id not in matching]
    else:
        others = [t.id for t in tracks if t.requiredMajor is None]
    options = matching + ctx.rng.shuffled(others)
    if not options:
        options = [ctx.catalog.unconditioned_tracks()[0].id]
    return options[:MAX_CAREER_OPTIONS]


# ------------------------------------------------------------------
#  Helpers
# ------------------------------------------------------------------


def _low_stat_penalty(character: Character, track: CareerTrack) -> float:
    """Average relative shortfall over the stats that fall short."""
    shortfalls = []
    for required, actual in ((track.iqRequired, character.stats.iq), (track.eqRequired, character.stats.eq)):
        deficit = max(0.0, required - actual)
        if deficit > 0:
            shortfalls.append(deficit / required)
    return sum(shortfalls) / len(shortfalls) if shortfalls else 0.0


def start_job(state: GameState, character: Character, track: CareerTrack, penalty: float, log_key: str) -> None:
    character.career_track = track.id
    character.trainee_for_track = None
    character.career_level = 0
    character.career_penalty = penalty
    character.status = CharacterStatus.WORKING
    character.stats.skill = 0
    character.months_in_job_level = 0
    character.months_unemployed = 0
    character.status_end_year = None
    state.log(log_key, character, title=track.levels[0].titleKey)


def _take(state: GameState, kind: PendingKind, character_id: str, value: Optional[str]) -> PendingChoice:
    pending = state.pending.get(kind)
    if pending is None:
        raise PendingChoiceError(f"No {kind.value} choice is pending.")
    if pending.character_id != character_id:
        raise PendingChoiceError(f"The pending {kind.value} choice belongs to {pending.character_id}.")
    if value is not None and pending.options and value not in pending.options:
        raise PendingChoiceError(f"'{value}' is not an option for the pending {kind.value} choice.")
    del state.pending[kind]
    return pending


# ------------------------------------------------------------------
#  Handlers (in place on a working state)
# ------------------------------------------------------------------


def handle_school_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    pending = _take(state, PendingKind.SCHOOL, character_id, value)
    character = state.family_members[character_id]
    option = next((s for s in ctx.catalog.schools if s.id == value), None)
    if option is None:
        raise PendingChoiceError(f"Unknown school '{value}'.")

    state.family_fund -= option.cost
    apply_stat_changes(character, option.effects, clamp=True)
    character.status = CharacterStatus.IN_EDUCATION
    character.school_id = option.id
    character.education = option.phase.value
    character.status_end_year = state.current_date.year + PHASE_LAST_AGE[option.phase] + 1 - character.age
    entry = state.log(option.logKey, character)
    entry.fund_change = -option.cost
    entry.stat_changes = dict(option.effects)

    if LifePhase(pending.data.get("phase", option.phase.value)) == LifePhase.MIDDLE_SCHOOL:
        open_club_choice(state, character, ctx)


def handle_club_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    _take(state, PendingKind.CLUB, character_id, value)
    character = state.family_members[character_id]
    if value is None:
        return
    club = ctx.catalog.club(value)
    if club is None:
        raise PendingChoiceError(f"Unknown club '{value}'.")
    character.club_id = club.id
    apply_stat_changes(character, club.effects, clamp=True)
    state.log("log_joined_club", character, club=club.nameKey)


def handle_university_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    _take(state, PendingKind.UNIVERSITY, character_id, value)
    character = state.family_members[character_id]
    if value == "yes":
        options = [m.id for m in ctx.rng.shuffled(ctx.catalog.majors)[:MAX_MAJOR_OPTIONS]]
        open_pending(state, PendingKind.MAJOR, character_id, options)
    else:
        state.log("log_skipped_university", character)
        open_career_choice(state, character)


def handle_major_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    _take(state, PendingKind.MAJOR, character_id, value)
    character = state.family_members[character_id]
    major = ctx.catalog.major(value)
    if major is None:
        raise PendingChoiceError(f"Unknown major '{value}'.")

    state.family_fund -= major.cost
    apply_stat_changes(character, major.effects, clamp=True)
    character.major = major.id
    character.education = "university"
    character.status = CharacterStatus.IN_EDUCATION
    character.status_end_year = state.current_date.year + UNIVERSITY_YEARS
    entry = state.log("log_started_university", character, major=major.nameKey)
    entry.fund_change = -major.cost


def handle_career_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    _take(state, PendingKind.CAREER, character_id, value)
    character = state.family_members[character_id]
    year = state.current_date.year

    if value == "job":
        open_career_choice(state, character, generate_career_choices(character, ctx))
        return
    if value == "internship":
        program = ctx.catalog.internship
        character.status = CharacterStatus.INTERNSHIP
        character.status_end_year = year + program.duration
        state.log("log_started_internship", character)
        return
    if value == "vocational":
        program = ctx.catalog.vocational_training
        character.status = CharacterStatus.VOCATIONAL_TRAINING
        character.status_end_year = year + program.duration
        character.education = "vocational"
        state.family_fund -= program.cost
        entry = state.log("log_enrolled_vocational", character)
        entry.fund_change = -program.cost
        return

    track = ctx.catalog.career_track(value)
    if track is None:
        raise PendingChoiceError(f"Unknown career track '{value}'.")

    major_match = track.requiredMajor is not None and character.major == track.requiredMajor
    no_major_required = track.requiredMajor is None
    has_degree = character.major is not None
    stat_qualified = character.stats.iq >= track.iqRequired and character.stats.eq >= track.eqRequired

    if major_match and not stat_qualified:
        open_pending(state, PendingKind.UNDERQUALIFIED, character_id, ["trainee", "job"], track=track.id)
        return
    if (major_match or no_major_required) and stat_qualified:
        start_job(state, character, track, 0.0, "log_found_job")
    elif has_degree and not major_match and stat_qualified:
        start_job(state, character, track, MISMATCH_PENALTY, "log_accepted_mismatched_job")
    else:
        mismatch = MISMATCH_PENALTY if track.requiredMajor is not None and not major_match else 0.0
        penalty = min(MAX_PENALTY, mismatch + _low_stat_penalty(character, track))
        log_key = "log_accepted_severely_underqualified_job" if mismatch else "log_accepted_penalized_job"
        start_job(state, character, track, penalty, log_key)


def handle_underqualified_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    pending = _take(state, PendingKind.UNDERQUALIFIED, character_id, value)
    character = state.family_members[character_id]
    track = ctx.catalog.career_track(pending.data["track"])
    if track is None:
        raise PendingChoiceError(f"Unknown career track '{pending.data['track']}'.")

    if value == "trainee":
        character.status = CharacterStatus.TRAINEE
        character.trainee_for_track = track.id
        character.career_track = None
        character.career_level = 0
        character.career_penalty = 0.0
        character.stats.skill = 0
        character.months_in_job_level = 0
        state.log("log_became_trainee", character, career=track.nameKey)
    else:
        start_job(state, character, track, _low_stat_penalty(character, track), "log_accepted_penalized_job")


def handle_loan_choice(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    _take(state, PendingKind.LOAN, character_id, value)
    if value is None or value == "decline":
        return
    amount_text, term_text = value.split(":")
    amount, term = int(amount_text), int(term_text)
    owed = round(amount * (1 + ctx.settings.economy.loanInterestRate))
    state.loans.append(Loan(amount=owed, due_year=state.current_date.year + term))
    state.family_fund += amount
    entry = state.log("log_loan_taken", state.family_members.get(character_id), amount=amount, term=term)
    entry.fund_change = amount


def handle_promotion(state: GameState, character_id: str, value: Optional[str], ctx: EngineContext) -> None:
    pending = _take(state, PendingKind.PROMOTION, character_id, value)
    character = state.family_members[character_id]
    if value == "decline":
        state.log("log_declined_promotion", character)
        return
    character.career_level = pending.data["new_level"]
    character.months_in_job_level = 0
    character.stats.happiness = clamp_stat("happiness", character.stats.happiness + 20)
    character.stats.eq = clamp_stat("eq", character.stats.eq + 5)
    entry = state.log("log_promoted", character, title=pending.data["title_key"])
    entry.stat_changes = {"happiness": 20, "eq": 5}


HANDLERS: dict[PendingKind, Callable[[GameState, str, Optional[str], EngineContext], None]] = {
    PendingKind.SCHOOL: handle_school_choice,
    PendingKind.CLUB: handle_club_choice,
    PendingKind.UNIVERSITY: handle_university_choice,
    PendingKind.MAJOR: handle_major_choice,
    PendingKind.CAREER: handle_career_choice,
    PendingKind.UNDERQUALIFIED: handle_underqualified_choice,
    PendingKind.LOAN: handle_loan_choice,
    PendingKind.PROMOTION: handle_promotion,
}


def resolve_pending_choice(
    state: GameState, kind: PendingKind, character_id: str, value: Optional[str], ctx: EngineContext
) -> GameState:
    """Answer a pending choice against a copy of ``state``."""
    next_state = state.model_copy(deep=True)
    character = next_state.family_members.get(character_id)
    if character is None or not character.is_alive:
        raise PendingChoiceError(f"Character {character_id} cannot answer a choice.")
    HANDLERS[kind](next_state, character_id, value, ctx)
    return next_state
