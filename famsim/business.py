"""
famsim/business.py
~~~~~~~~~~~~~~~~~~
Spending the family fund: assets, businesses, upgrades and staffing.

Every public function takes a state and returns a new one. Requests that
cannot be honoured because of the game rules (not enough money, asset
already owned, unknown id) leave the state unchanged and are logged;
requests that would break a structural rule (a worker in two slots, a dead
or under-age worker) raise :class:`InvariantViolation`.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from famsim.context import EngineContext
from famsim.errors import InvariantViolation
from famsim.models import (
    ROBOT,
    UNSKILLED,
    Business,
    BusinessSlot,
    CharacterStatus,
    GameState,
    PurchasedAsset,
    clamp_stat,
)
from famsim.patch import check_business_assignments, vacate_business_slots

logger = logging.getLogger(__name__)

MIN_WORKING_AGE = 18


def _slots(definitions) -> list[BusinessSlot]:
    return [BusinessSlot(role=s.roleKey, required_major=s.requiredMajor) for s in definitions]


# ------------------------------------------------------------------
#  Assets
# ------------------------------------------------------------------


def purchase_asset(state: GameState, asset_id: str, ctx: EngineContext) -> GameState:
    asset = ctx.catalog.asset(asset_id)
    if asset is None:
        logger.warning("Unknown asset %s; purchase ignored.", asset_id)
        return state
    if any(owned.id == asset_id for owned in state.purchased_assets):
        logger.info("Asset %s is already owned.", asset_id)
        return state
    if state.family_fund < asset.cost:
        logger.info("Cannot afford asset %s (%s < %s).", asset_id, state.family_fund, asset.cost)
        return state

    next_state = state.model_copy(deep=True)
    next_state.family_fund -= asset.cost
    next_state.purchased_assets.append(PurchasedAsset(id=asset_id, purchase_year=state.current_date.year))

    # Asset bonuses are proportional, e.g. +1 % happiness.
    owner = next_state.player_character()
    changes: dict[str, float] = {}
    if owner is not None:
        for stat, ratio in asset.effects.items():
            before = owner.stats.get(stat)
            owner.stats.set(stat, clamp_stat(stat, before * (1 + ratio)))
            changes[stat] = owner.stats.get(stat) - before
    entry = next_state.log("log_asset_purchased", owner, asset=asset.nameKey)
    entry.fund_change = -asset.cost
    entry.stat_changes = changes
    return next_state


# ------------------------------------------------------------------
#  Businesses
# ------------------------------------------------------------------


def buy_business(state: GameState, definition_id: str, ctx: EngineContext) -> GameState:
    definition = ctx.catalog.business(definition_id)
    if definition is None:
        logger.warning("Unknown business %s; purchase ignored.", definition_id)
        return state
    if state.family_fund < definition.cost:
        logger.info("Cannot afford business %s (%s < %s).", definition_id, state.family_fund, definition.cost)
        return state

    next_state = state.model_copy(deep=True)
    business = Business(id=ctx.rng.uuid(), definition_id=definition.id, level=1, slots=_slots(definition.slots))
    next_state.businesses[business.id] = business
    next_state.family_fund -= definition.cost
    entry = next_state.log("log_business_purchased", next_state.player_character(), business=definition.nameKey)
    entry.fund_change = -definition.cost
    return next_state


def upgrade_cost(definition_cost: int, ctx: EngineContext) -> int:
    return math.floor(definition_cost * ctx.settings.economy.upgradeCostRatio)


def upgrade_business(state: GameState, business_id: str, ctx: EngineContext) -> GameState:
    business = state.businesses.get(business_id)
    if business is None:
        logger.warning("Unknown business instance %s; upgrade ignored.", business_id)
        return state
    definition = ctx.catalog.business(business.definition_id)
    if definition is None:
        logger.warning("Business %s has unknown definition %s.", business_id, business.definition_id)
        return state
    if business.level >= ctx.settings.economy.maxBusinessLevel:
        logger.info("Business %s is already at the maximum level.", business_id)
        return state

    next_state = state.model_copy(deep=True)
    cost = upgrade_cost(definition.cost, ctx)
    if next_state.family_fund < cost:
        next_state.log("log_business_upgrade_fail", None, business=definition.nameKey, cost=cost)
        return next_state

    upgraded = next_state.businesses[business_id]
    upgraded.level += 1
    upgraded.slots.extend(_slots(definition.upgradeSlots))
    next_state.family_fund -= cost
    entry = next_state.log("log_business_upgraded", None, business=definition.nameKey, level=upgraded.level)
    entry.fund_change = -cost
    return next_state


def assign_business_slot(
    state: GameState,
    business_id: str,
    slot_index: int,
    worker_id: Optional[str],
    ctx: EngineContext,
) -> GameState:
    """
    Put a family member, a robot or nobody into one slot.

    The slot's previous human occupant becomes unemployed. A worker moving in
    from another slot leaves that slot first, so nobody holds two. Joining a
    business ends any outside career; skill restarts from zero when the
    slot needs a major the worker does not have.
    """
    business = state.businesses.get(business_id)
    if business is None:
        raise InvariantViolation(f"Unknown business {business_id}.")
    if not 0 <= slot_index < len(business.slots):
        raise InvariantViolation(f"Business {business_id} has no slot {slot_index}.")

    next_state = state.model_copy(deep=True)
    slot = next_state.businesses[business_id].slots[slot_index]
    previous = slot.assigned_worker_id
    if previous == worker_id:
        return state

    if worker_id is not None and worker_id != ROBOT:
        worker = next_state.family_members.get(worker_id)
        if worker is None or not worker.is_alive:
            raise InvariantViolation(f"{worker_id} is not a living family member.")
        if not MIN_WORKING_AGE <= worker.age < ctx.settings.retirementAge:
            raise InvariantViolation(f"{worker.name} is not of working age ({worker.age}).")

        vacate_business_slots(next_state, worker_id)
        if worker.career_track is not None or worker.status == CharacterStatus.WORKING:
            next_state.log("log_quit_job_for_business", worker)
        worker.status = CharacterStatus.WORKING
        worker.career_track = None
        worker.trainee_for_track = None
        worker.career_level = 0
        worker.career_penalty = 0.0
        worker.months_in_job_level = 0
        worker.months_unemployed = 0
        if slot.required_major != UNSKILLED and worker.major != slot.required_major:
            worker.stats.skill = 0
        definition = ctx.catalog.business(business.definition_id)
        next_state.log("log_started_at_business", worker, business=definition.nameKey if definition else business_id)

    if previous is not None and previous != ROBOT:
        occupant = next_state.family_members.get(previous)
        if occupant is not None and occupant.is_alive:
            occupant.status = CharacterStatus.UNEMPLOYED
            occupant.months_unemployed = 0

    slot.assigned_worker_id = worker_id
    check_business_assignments(next_state)
    return next_state


def clear_ineligible_workers(state: GameState, ctx: EngineContext) -> list[str]:
    """Free slots held by the dead or by anyone outside working age, in place."""
    cleared: list[str] = []
    for business in state.businesses.values():
        for slot in business.slots:
            worker_id = slot.assigned_worker_id
            if worker_id is None or worker_id == ROBOT:
                continue
            worker = state.family_members.get(worker_id)
            if worker is None or not worker.is_alive or not MIN_WORKING_AGE <= worker.age < ctx.settings.retirementAge:
                slot.assigned_worker_id = None
                cleared.append(worker_id)
    if cleared:
        logger.debug("Cleared business slots for %s.", ", ".join(cleared))
    return cleared
