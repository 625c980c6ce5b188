"""
famsim/simulation.py
~~~~~~~~~~~~~~~~~~~~
The game-state reducer and the clock that drives it.

``reduce(state, action, ctx)`` is the one entry point a front end needs: it
never mutates its input and returns the next state. Time advances a day at
a time; every day runs the daily step, every 30th day the monthly budget and
career step, and day 1 of each year the yearly step. Time stops whenever the
family is waiting on the player (an active event or a pending choice).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

from famsim import business as business_ops
from famsim import choices
from famsim.context import EngineContext
from famsim.economy import (
    businesses_net_income,
    calculate_employee_salary,
    career_salary_monthly,
    cost_of_living_monthly,
    pet_expenses_monthly,
)
from famsim.errors import InvariantViolation, PendingChoiceError
from famsim.evaluator import evaluate_eligible_events, first_milestone_candidate
from famsim.lifecycle import PHASE_MAX_AGE, age_one_year, daily_decay, death_patch, get_life_phase
from famsim.models import (
    UNSKILLED,
    Character,
    CharacterStatus,
    GameDate,
    GameState,
    LifePhase,
    PendingKind,
    QueuedEvent,
    clamp_stat,
)
from famsim.patch import merge_patch, vacate_business_slots
from famsim.resolution import ResolutionResult, check_victory, pop_next_event, resolve_choice

logger = logging.getLogger(__name__)

MOURNING_EVENT = "milestone_mourning"
STAGNATION_HAPPINESS_LOSS = 3


# ------------------------------------------------------------------
#  Actions
# ------------------------------------------------------------------


class ActionType(str, Enum):
    ADVANCE = "advance"
    DRAIN = "drain"
    CHOOSE = "choose"
    PENDING = "pending"
    PURCHASE_ASSET = "purchase_asset"
    BUY_BUSINESS = "buy_business"
    UPGRADE_BUSINESS = "upgrade_business"
    ASSIGN_SLOT = "assign_slot"


class GameAction(BaseModel):
    type: ActionType
    days: int = Field(default=1, ge=1)
    choice_index: Optional[int] = None
    kind: Optional[PendingKind] = None
    character_id: Optional[str] = None
    value: Optional[str] = None
    asset_id: Optional[str] = None
    definition_id: Optional[str] = None
    business_id: Optional[str] = None
    slot_index: Optional[int] = None
    worker_id: Optional[str] = None


def is_blocked(state: GameState) -> bool:
    return state.game_over_reason is not None or state.active_event is not None or bool(state.pending)


# ------------------------------------------------------------------
#  Daily step
# ------------------------------------------------------------------


def _kill(
    state: GameState, character_id: str, ctx: EngineContext, log_key: str, on: Optional[GameDate] = None
) -> None:
    """Commit a death and hand the mourning choice to the first survivor."""
    try:
        merge_patch(state, death_patch(ctx, state, character_id, log_key=log_key, on=on))
    except InvariantViolation as e:
        logger.warning("Death of %s rejected: %s", character_id, e)
        return
    if state.family_members[character_id].is_alive:
        return
    survivors = state.living_members()
    if survivors and ctx.catalog.event(MOURNING_EVENT) is not None:
        state.event_queue.append(QueuedEvent(event_id=MOURNING_EVENT, character_id=survivors[0].id))


def _character_day(state: GameState, character: Character, date: GameDate, ctx: EngineContext) -> None:
    if not character.is_alive:
        return
    if date.day == character.birth_date.day and date.year > character.birth_date.year:
        new_phase = age_one_year(ctx, character)
        state.log("log_birthday", character, age=character.age)
        if new_phase is not None:
            state.log("log_new_phase", character, phase=new_phase.value)

    if character.mourning_until_year is not None and date.year > character.mourning_until_year:
        character.mourning_until_year = None
    daily_decay(character, date.year)

    if character.stats.health <= 0:
        _kill(state, character.id, ctx, "log_died_of_illness", on=date)


def _living_ids(state: GameState) -> list[str]:
    return [c.id for c in state.living_members()]


def _daily_step(state: GameState, ctx: EngineContext) -> None:
    # Deaths replace member records, so look each one up afresh.
    for character_id in _living_ids(state):
        _character_day(state, state.family_members[character_id], state.current_date, ctx)


# ------------------------------------------------------------------
#  Monthly step
# ------------------------------------------------------------------


def _skill_gain(character: Character) -> float:
    return min(1.0, (character.stats.iq / 200) * (character.stats.eq / 100))


def _school_due(character: Character, ctx: EngineContext) -> Optional[LifePhase]:
    """The school phase a child of this age should be enrolled in, if not already."""
    due = None
    for age, phase in sorted(ctx.settings.schoolAges.items()):
        if character.age >= age:
            due = phase
    if due is None or character.age > dict(PHASE_MAX_AGE)[LifePhase.HIGH_SCHOOL]:
        return None
    if character.education == due.value:
        return None
    return due


def _offer_next_step(state: GameState, character: Character, ctx: EngineContext) -> None:
    """Open the education or career choice a character is due for, if its slot is free."""
    if state.has_pending_for(character.id) or not character.is_alive:
        return
    if character.age >= ctx.settings.retirementAge:
        return

    school_phase = _school_due(character, ctx)
    if school_phase is not None:
        if PendingKind.SCHOOL not in state.pending:
            choices.open_school_choice(state, character, school_phase, ctx)
        return

    if character.status != CharacterStatus.IDLE or character.age < ctx.settings.universityAge:
        return
    if character.education == LifePhase.HIGH_SCHOOL.value:
        if PendingKind.UNIVERSITY not in state.pending:
            choices.open_university_choice(state, character)
    elif PendingKind.CAREER not in state.pending:
        choices.open_career_choice(state, character)


def _promotion_threshold(character: Character, skill_required: float, required_major: Optional[str]) -> float:
    threshold = skill_required
    if character.major is None and character.education != "vocational":
        threshold *= 1.5
    if required_major is not None and character.major != required_major:
        threshold *= 1.5
    return threshold * (1 + character.career_penalty)


def _career_month(state: GameState, character: Character, ctx: EngineContext) -> None:
    track = ctx.catalog.career_track(character.career_track)
    if track is None:
        logger.warning("%s works in unknown career track %s.", character.name, character.career_track)
        return

    gain = _skill_gain(character)
    if track.requiredMajor is not None and character.major != track.requiredMajor:
        gain *= 0.5
    gain *= 1 - character.career_penalty
    character.stats.skill = clamp_stat("skill", character.stats.skill + gain)
    character.months_in_job_level += 1

    next_level = character.career_level + 1
    if next_level < len(track.levels):
        level = track.levels[next_level]
        threshold = _promotion_threshold(character, level.skillRequired, track.requiredMajor)
        if character.stats.skill >= threshold and PendingKind.PROMOTION not in state.pending:
            choices.open_promotion(state, character, next_level, level.titleKey)
        if character.months_in_job_level == ctx.settings.stagnationMonths:
            character.stats.happiness = clamp_stat(
                "happiness", character.stats.happiness - STAGNATION_HAPPINESS_LOSS
            )
            state.log("log_happiness_no_promotion", character, title=track.levels[character.career_level].titleKey)


def _trainee_month(state: GameState, character: Character, ctx: EngineContext) -> None:
    track = ctx.catalog.career_track(character.trainee_for_track)
    if track is None:
        logger.warning("%s trains for unknown career track %s.", character.name, character.trainee_for_track)
        return
    if character.stats.iq < track.iqRequired:
        character.stats.iq = min(track.iqRequired, character.stats.iq + 0.5)
    if character.stats.eq < track.eqRequired:
        character.stats.eq = min(track.eqRequired, character.stats.eq + 0.5)
    if character.stats.iq >= track.iqRequired and character.stats.eq >= track.eqRequired:
        choices.start_job(state, character, track, 0.0, "log_promoted_from_trainee")


def _unemployed_month(state: GameState, character: Character, ctx: EngineContext) -> None:
    settings = ctx.settings
    character.months_unemployed += 1
    character.stats.happiness = clamp_stat("happiness", character.stats.happiness - 1)
    character.stats.eq = clamp_stat("eq", character.stats.eq - 1)
    if character.months_unemployed <= settings.unemploymentGraceMonths:
        return
    if PendingKind.CAREER in state.pending or state.has_pending_for(character.id):
        return
    if ctx.rng.roll(settings.unemploymentCareerChance):
        choices.open_career_choice(state, character, choices.generate_career_choices(character, ctx))
        state.log("log_unemployed_seeking_job", character)


def _monthly_step(state: GameState, ctx: EngineContext) -> None:
    economy = ctx.settings.economy
    catalog = ctx.catalog
    business_ops.clear_ineligible_workers(state, ctx)

    # 1. Business net income, from the slots as they stand before skills move.
    income = businesses_net_income(state, catalog, economy)
    expenses = pet_expenses_monthly(state, catalog)

    # 2. Per-member income, costs and progression.
    for character in state.living_members():
        expenses += cost_of_living_monthly(character.phase, economy)
        held = state.business_of(character.id)
        status = character.status

        if held is not None:
            held_business, index = held
            gain = _skill_gain(character)
            required = held_business.slots[index].required_major
            if required != UNSKILLED and character.major != required:
                gain *= 0.5
            character.stats.skill = clamp_stat("skill", character.stats.skill + gain)
            income += calculate_employee_salary(character, economy)
        elif status == CharacterStatus.WORKING and character.career_track is not None:
            income += career_salary_monthly(character, catalog)
            _career_month(state, character, ctx)
        elif status == CharacterStatus.TRAINEE:
            income += economy.traineeSalaryAnnual / 12
            _trainee_month(state, character, ctx)
        elif status == CharacterStatus.RETIRED:
            income += economy.pensionAnnual / 12
        elif status == CharacterStatus.INTERNSHIP:
            income += catalog.internship.stipend / 12
        elif status == CharacterStatus.VOCATIONAL_TRAINING:
            program = catalog.vocational_training
            months = program.duration * 12
            for stat, total in program.effects.items():
                character.stats.set(stat, clamp_stat(stat, character.stats.get(stat) + total / months))
        elif status == CharacterStatus.UNEMPLOYED:
            _unemployed_month(state, character, ctx)

        _offer_next_step(state, character, ctx)

    # 3. Budget.
    net = round(income - expenses)
    state.family_fund += net
    logger.debug("Month closed on day %s of %s: net %s, fund %s.", state.current_date.day, state.current_date.year, net, state.family_fund)
    if state.family_fund < 0:
        choices.open_loan_choice(state, ctx)


# ------------------------------------------------------------------
#  Yearly step
# ------------------------------------------------------------------


def _status_expired(state: GameState, character: Character, ctx: EngineContext) -> None:
    character.status_end_year = None
    if character.status == CharacterStatus.VOCATIONAL_TRAINING:
        state.log("log_finished_vocational", character)
    elif character.status == CharacterStatus.INTERNSHIP:
        state.log("log_finished_internship", character)
    elif character.education == "university":
        state.log("log_graduated", character, major=character.major)
    character.status = CharacterStatus.IDLE
    if character.education not in (LifePhase.ELEMENTARY.value, LifePhase.MIDDLE_SCHOOL.value, LifePhase.HIGH_SCHOOL.value):
        # Finished post-school training; the next step is always work.
        if PendingKind.CAREER not in state.pending and not state.has_pending_for(character.id):
            choices.open_career_choice(state, character)
            return
    _offer_next_step(state, character, ctx)


def _retire(state: GameState, character: Character) -> None:
    character.status = CharacterStatus.RETIRED
    character.career_track = None
    character.trainee_for_track = None
    character.career_level = 0
    character.career_penalty = 0.0
    character.status_end_year = None
    vacate_business_slots(state, character.id)
    state.log("log_retired", character)


def _settle_loans(state: GameState) -> None:
    year = state.current_date.year
    remaining = []
    for loan in state.loans:
        if loan.due_year > year:
            remaining.append(loan)
            continue
        if state.family_fund < loan.amount:
            state.game_over_reason = "debt"
            state.log("log_game_over_debt", None, amount=loan.amount)
            logger.info("Loan of %s due in %s could not be repaid: game over.", loan.amount, year)
            remaining.append(loan)
            continue
        state.family_fund -= loan.amount
        entry = state.log("log_loan_repaid", None, amount=loan.amount)
        entry.fund_change = -loan.amount
    state.loans = remaining


def _queue_milestones(state: GameState, ctx: EngineContext) -> None:
    queued = {(q.event_id, q.character_id) for q in state.event_queue}
    for event in ctx.catalog.milestones():
        if event.isTriggerOnly:
            continue
        character = first_milestone_candidate(event, state, ctx.rng)
        if character is None or (event.id, character.id) in queued:
            continue
        state.event_queue.append(QueuedEvent(event_id=event.id, character_id=character.id))
        logger.debug("Milestone %s queued for %s.", event.id, character.name)


def _yearly_step(state: GameState, ctx: EngineContext) -> None:
    settings = ctx.settings

    # 1. Deaths from a second year in a row of very low happiness or health.
    for character_id in _living_ids(state):
        character = state.family_members[character_id]
        if not character.is_alive:
            continue
        low = character.stats.happiness < settings.lowStatThreshold or character.stats.health < settings.lowStatThreshold
        character.low_stat_years = character.low_stat_years + 1 if low else 0
        if character.low_stat_years >= settings.lowStatYearsToDeath:
            _kill(state, character.id, ctx, "log_died_low_stats")

    # 2. Education and training that ends this year, then retirement.
    for character in state.living_members():
        if character.status_end_year is not None and state.current_date.year >= character.status_end_year:
            _status_expired(state, character, ctx)
        if character.age >= settings.retirementAge and character.status != CharacterStatus.RETIRED:
            _retire(state, character)

    # 3. Debts.
    _settle_loans(state)

    # 4. Milestones.
    _queue_milestones(state, ctx)

    check_victory(state, ctx)


# ------------------------------------------------------------------
#  Event draw
# ------------------------------------------------------------------


def draw_event(state: GameState, ctx: EngineContext) -> Optional[QueuedEvent]:
    """Offer a random eligible event to a random available member, in place."""
    if is_blocked(state) or state.event_queue:
        return None
    settings = ctx.settings
    today = ctx.day_index(state.current_date.day, state.current_date.year)
    if today < state.event_cooldown_until:
        return None

    living = state.living_members()
    available = [
        c for c in living if c.events_this_year < settings.maxEventsPerYear and not state.has_pending_for(c.id)
    ]
    if not available:
        return None
    character = ctx.rng.choice(available)
    events = evaluate_eligible_events(state, character, ctx.catalog, ctx.rng, include_milestones=False)
    if not events:
        return None

    event = ctx.rng.choice(events)
    state.active_event = QueuedEvent(event_id=event.id, character_id=character.id)
    character.events_this_year += 1
    small = len(living) <= settings.smallFamilyMax
    state.event_cooldown_until = today + (settings.smallFamilyCooldownDays if small else settings.largeFamilyCooldownDays)
    logger.debug("Event %s offered to %s.", event.id, character.name)
    return state.active_event


# ------------------------------------------------------------------
#  Clock
# ------------------------------------------------------------------


def _drop_orphaned_pending(state: GameState) -> None:
    for kind, pending in list(state.pending.items()):
        character = state.family_members.get(pending.character_id)
        if character is None or not character.is_alive:
            del state.pending[kind]


def tick_day(state: GameState, ctx: EngineContext) -> None:
    """Advance the clock by one day, in place."""
    if state.game_over_reason is not None:
        return
    settings = ctx.settings
    date = state.current_date
    date.day += 1
    if date.day > settings.daysInYear:
        date.day = 1
        date.year += 1

    _daily_step(state, ctx)
    if date.day % settings.daysInMonth == 1:
        _monthly_step(state, ctx)
    if date.day == 1:
        _yearly_step(state, ctx)

    _drop_orphaned_pending(state)
    if not state.living_members() and state.game_over_reason is None:
        state.game_over_reason = "extinct"
        state.log("log_game_over_extinct", None)
        logger.info("The family line has ended in %s.", date.year)
        return

    pop_next_event(state, ctx)
    draw_event(state, ctx)


def advance_days(state: GameState, days: int, ctx: EngineContext) -> GameState:
    """Run up to ``days`` days, stopping early as soon as the player is needed."""
    next_state = state.model_copy(deep=True)
    pop_next_event(next_state, ctx)
    for _ in range(days):
        if is_blocked(next_state):
            break
        tick_day(next_state, ctx)
    return next_state


def advance_character(state: GameState, character_id: str, elapsed_days: int, ctx: EngineContext) -> GameState:
    """
    Age a single character by ``elapsed_days`` without moving the family clock.

    Runs the same daily ageing, mourning, decay and death rules the full tick
    does, plus the low-stat check on each new year, against a private date
    cursor.
    """
    next_state = state.model_copy(deep=True)
    character = next_state.family_members.get(character_id)
    if character is None:
        raise InvariantViolation(f"Unknown character {character_id}.")
    settings = ctx.settings
    cursor = next_state.current_date.model_copy()
    for _ in range(elapsed_days):
        if not character.is_alive:
            break
        cursor.day += 1
        if cursor.day > settings.daysInYear:
            cursor.day = 1
            cursor.year += 1
        _character_day(next_state, character, cursor, ctx)
        character = next_state.family_members[character_id]
        if cursor.day == 1 and character.is_alive:
            stats = character.stats
            low = stats.happiness < settings.lowStatThreshold or stats.health < settings.lowStatThreshold
            character.low_stat_years = character.low_stat_years + 1 if low else 0
            if character.low_stat_years >= settings.lowStatYearsToDeath:
                _kill(next_state, character_id, ctx, "log_died_low_stats", on=cursor)
                character = next_state.family_members[character_id]
    character.phase = get_life_phase(character.age) if character.is_alive else character.phase
    return next_state


# ------------------------------------------------------------------
#  Choices
# ------------------------------------------------------------------


def choose_result(state: GameState, choice_index: int, ctx: EngineContext) -> ResolutionResult:
    """Resolve the active event with the given choice and surface the next queued one."""
    active = state.active_event
    if active is None:
        raise PendingChoiceError("No event is waiting for a choice.")
    event = ctx.catalog.event(active.event_id)
    if event is None:
        raise PendingChoiceError(f"Active event {active.event_id} is not in the catalog.")
    if not 0 <= choice_index < len(event.choices):
        raise PendingChoiceError(f"Event {event.id} has no choice {choice_index}.")

    result = resolve_choice(state, active.character_id, event, event.choices[choice_index], ctx)
    result.next_state.active_event = None
    pop_next_event(result.next_state, ctx)
    return result


def choose(state: GameState, choice_index: int, ctx: EngineContext) -> GameState:
    return choose_result(state, choice_index, ctx).next_state


# ------------------------------------------------------------------
#  Reducer
# ------------------------------------------------------------------


def _require(action: GameAction, *names: str) -> None:
    missing = [name for name in names if getattr(action, name) is None]
    if missing:
        raise ValueError(f"Action {action.type.value} needs {', '.join(missing)}.")


def reduce(state: GameState, action: GameAction, ctx: EngineContext) -> GameState:
    """``(state, action) -> state``; the input state is never modified."""
    kind = action.type
    if kind == ActionType.ADVANCE:
        return advance_days(state, action.days, ctx)
    if kind == ActionType.DRAIN:
        next_state = state.model_copy(deep=True)
        pop_next_event(next_state, ctx)
        return next_state
    if kind == ActionType.CHOOSE:
        _require(action, "choice_index")
        return choose(state, action.choice_index, ctx)
    if kind == ActionType.PENDING:
        _require(action, "kind", "character_id")
        return choices.resolve_pending_choice(state, action.kind, action.character_id, action.value, ctx)
    if kind == ActionType.PURCHASE_ASSET:
        _require(action, "asset_id")
        return business_ops.purchase_asset(state, action.asset_id, ctx)
    if kind == ActionType.BUY_BUSINESS:
        _require(action, "definition_id")
        return business_ops.buy_business(state, action.definition_id, ctx)
    if kind == ActionType.UPGRADE_BUSINESS:
        _require(action, "business_id")
        return business_ops.upgrade_business(state, action.business_id, ctx)
    if kind == ActionType.ASSIGN_SLOT:
        _require(action, "business_id", "slot_index")
        return business_ops.assign_business_slot(state, action.business_id, action.slot_index, action.worker_id, ctx)
    raise ValueError(f"Unsupported action {kind}.")


# ------------------------------------------------------------------
#  Headless driver
# ------------------------------------------------------------------


Policy = Callable[[GameState, EngineContext], GameAction]


def random_policy(state: GameState, ctx: EngineContext) -> GameAction:
    """Answer whatever the game is waiting on with a random option."""
    if state.active_event is not None:
        event = ctx.catalog.event(state.active_event.event_id)
        count = len(event.choices) if event is not None else 1
        return GameAction(type=ActionType.CHOOSE, choice_index=ctx.rng.randint(0, count - 1))
    pending = next(iter(state.pending.values()))
    value = ctx.rng.choice(pending.options) if pending.options else None
    return GameAction(type=ActionType.PENDING, kind=pending.kind, character_id=pending.character_id, value=value)


class Simulation:
    """Runs a game without a front end, answering every prompt with a policy."""

    def __init__(self, ctx: EngineContext, state: GameState, policy: Policy = random_policy) -> None:
        self.ctx = ctx
        self.state = state
        self.policy = policy
        self.decisions = 0

    def days_until(self, year: int) -> int:
        date = self.state.current_date
        return (year - date.year) * self.ctx.settings.daysInYear - (date.day - 1)

    def run(self, years: int) -> GameState:
        end_year = self.state.current_date.year + years
        logger.info("Simulating %d years from %s.", years, self.state.current_date.year)
        while self.state.game_over_reason is None:
            remaining = self.days_until(end_year)
            if remaining <= 0:
                break
            if is_blocked(self.state):
                self.step(self.policy(self.state, self.ctx))
                continue
            self.step(GameAction(type=ActionType.ADVANCE, days=remaining))
        logger.info(
            "Stopped in %s after %d decisions (%s).",
            self.state.current_date.year,
            self.decisions,
            self.state.game_over_reason or "time limit",
        )
        return self.state

    def step(self, action: GameAction) -> None:
        try:
            self.state = reduce(self.state, action, self.ctx)
        except PendingChoiceError as e:
            # An unanswerable prompt would stall the run.
            logger.warning("Dropping prompt after failed %s: %s", action.type.value, e)
            self.state = self.state.model_copy(deep=True)
            self.state.active_event = None
            if action.kind is not None:
                self.state.pending.pop(action.kind, None)
        if action.type != ActionType.ADVANCE:
            self.decisions += 1
