"""Tests for famsim.economy: wages, business net income and household costs."""

import pytest

from famsim.catalog import BusinessDefinition, SlotDefinition
from famsim.config_loader import EconomySettings
from famsim.economy import (
    businesses_net_income,
    calculate_business_monthly_net_income,
    calculate_employee_salary,
    career_salary_monthly,
    cost_of_living_monthly,
    pet_expenses_monthly,
)
from famsim.models import ROBOT, Business, BusinessSlot, LifePhase, Pet, PetType, Stats


@pytest.fixture
def economy():
    return EconomySettings()


@pytest.fixture
def shop():
    return BusinessDefinition(
        id="corner_shop",
        type="culinary",
        tier=1,
        nameKey="business_corner_shop",
        cost=50000,
        baseRevenue=10000,
        costOfGoodsSold=0.4,
        fixedMonthlyCost=500,
        slots=[SlotDefinition(roleKey=f"role_{i}") for i in range(4)],
    )


def _business(*workers):
    slots = [BusinessSlot(role=f"role_{i}") for i in range(4)]
    for slot, worker in zip(slots, workers):
        slot.assigned_worker_id = worker
    return Business(id="b1", definition_id="corner_shop", slots=slots)


class TestEmployeeSalary:
    def test_salary_grows_with_skill(self, economy, make_character):
        worker = make_character(stats=Stats(iq=100, happiness=50, eq=50, health=50, skill=50))
        assert calculate_employee_salary(worker, economy) == 500 + 50 * 15


class TestBusinessNetIncome:
    def test_half_staffed_with_one_robot(self, economy, shop, make_character):
        worker = make_character(stats=Stats(iq=100, happiness=50, eq=50, health=50, skill=50))
        business = _business(worker.id, ROBOT)
        net = calculate_business_monthly_net_income(business, shop, {worker.id: worker}, economy)
        # revenue 5000 * (1 + 40/200) = 6000; minus 2400 goods, 700 robot, 500 fixed, 1250 wage
        assert net == 1150

    def test_empty_business_burns_fixed_cost(self, economy, shop):
        assert calculate_business_monthly_net_income(_business(), shop, {}, economy) == -500

    def test_fully_robotic(self, economy, shop):
        business = _business(ROBOT, ROBOT, ROBOT, ROBOT)
        net = calculate_business_monthly_net_income(business, shop, {}, economy)
        gross = 10000 * (1 + 30 / 200)
        assert net == pytest.approx(gross - gross * 0.4 - 4 * 700 - 500)

    def test_dead_workers_do_not_count(self, economy, shop, make_character):
        worker = make_character(is_alive=False)
        business = _business(worker.id)
        assert calculate_business_monthly_net_income(business, shop, {worker.id: worker}, economy) == -500

    def test_unknown_definition_is_skipped(self, ctx, make_state):
        state = make_state()
        state.businesses["b1"] = Business(id="b1", definition_id="no_such_business", slots=[BusinessSlot(role="r")])
        assert businesses_net_income(state, ctx.catalog, ctx.settings.economy) == 0


class TestHouseholdCosts:
    def test_cost_of_living_is_monthly(self, ctx):
        economy = ctx.settings.economy
        assert cost_of_living_monthly(LifePhase.NEWBORN, economy) == economy.costOfLiving[LifePhase.NEWBORN] / 12

    def test_missing_phase_costs_nothing(self):
        assert cost_of_living_monthly(LifePhase.RETIRED, EconomySettings()) == 0

    def test_career_salary_uses_current_level(self, ctx, make_character):
        track = ctx.catalog.career_track("Unskilled")
        worker = make_character(career_track="Unskilled", career_level=1)
        assert career_salary_monthly(worker, ctx.catalog) == track.levels[1].salary / 12

    def test_no_career_no_salary(self, ctx, make_character):
        assert career_salary_monthly(make_character(), ctx.catalog) == 0

    def test_pet_expenses(self, ctx, make_state, make_character):
        owner = make_character()
        state = make_state(owner)
        state.family_pets["p1"] = Pet(id="p1", name="Rex", type=PetType.DOG, owner_id=owner.id, adopted_year=2024)
        state.family_pets["p2"] = Pet(id="p2", name="Tom", type=PetType.CAT, owner_id=owner.id, adopted_year=2024)
        expected = ctx.catalog.pet(PetType.DOG).monthlyCost + ctx.catalog.pet(PetType.CAT).monthlyCost
        assert pet_expenses_monthly(state, ctx.catalog) == expected
