"""
famsim/economy.py
~~~~~~~~~~~~~~~~~
Salaries and business profit. All functions here are pure: a business's net
income is always recomputed from its current slots, worker skills and
catalog definition, never stored.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from famsim.catalog import BusinessDefinition, ContentCatalog
from famsim.config_loader import EconomySettings
from famsim.models import ROBOT, Business, Character, GameState, LifePhase

logger = logging.getLogger(__name__)


def calculate_employee_salary(character: Character, economy: EconomySettings) -> float:
    """Monthly wage of a family member working in a family business."""
    return economy.workerBaseSalary + character.stats.skill * economy.workerSkillMultiplier


def calculate_business_monthly_net_income(
    business: Business,
    definition: BusinessDefinition,
    family_members: Mapping[str, Character],
    economy: EconomySettings,
) -> float:
    """
    Net monthly income of one business.

    With nothing staffed the business only burns its fixed cost. Otherwise
    revenue scales with the share of slots filled and with average worker
    skill (robots count at a fixed skill), and from gross we take cost of
    goods sold, robot hire, fixed cost and every human wage.
    """
    human_skills: list[float] = []
    salaries = 0.0
    robots = 0
    for slot in business.slots:
        worker_id = slot.assigned_worker_id
        if worker_id is None:
            continue
        if worker_id == ROBOT:
            robots += 1
            continue
        worker = family_members.get(worker_id)
        if worker is None or not worker.is_alive:
            continue
        human_skills.append(worker.stats.skill)
        salaries += calculate_employee_salary(worker, economy)

    filled = len(human_skills) + robots
    if filled == 0:
        return -definition.fixedMonthlyCost

    average_skill = (sum(human_skills) + robots * economy.robotSkill) / filled
    multiplier = 1 + average_skill / 200
    scaled_revenue = definition.baseRevenue * (filled / len(business.slots))
    gross = scaled_revenue * multiplier
    return (
        gross
        - gross * definition.costOfGoodsSold
        - robots * economy.robotHireCost
        - definition.fixedMonthlyCost
        - salaries
    )


def cost_of_living_monthly(phase: LifePhase, economy: EconomySettings) -> float:
    return economy.costOfLiving.get(phase, 0) / 12


def career_salary_monthly(character: Character, catalog: ContentCatalog) -> float:
    track = catalog.career_track(character.career_track)
    if track is None:
        return 0.0
    level = min(character.career_level, len(track.levels) - 1)
    return track.levels[level].salary / 12


def pet_expenses_monthly(state: GameState, catalog: ContentCatalog) -> float:
    total = 0.0
    for pet in state.family_pets.values():
        definition = catalog.pet(pet.type)
        if definition is not None:
            total += definition.monthlyCost
    return total


def businesses_net_income(state: GameState, catalog: ContentCatalog, economy: EconomySettings) -> float:
    total = 0.0
    for business in state.businesses.values():
        definition = business_definition(business, catalog)
        if definition is None:
            logger.warning("Business %s has unknown definition %s; skipped.", business.id, business.definition_id)
            continue
        total += calculate_business_monthly_net_income(business, definition, state.family_members, economy)
    return total


def business_definition(business: Business, catalog: ContentCatalog) -> Optional[BusinessDefinition]:
    return catalog.business(business.definition_id)
