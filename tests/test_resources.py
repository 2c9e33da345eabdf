"""Tests for the resource gate."""

import pytest

from quickroll.domain.resources import (
    Deny,
    Permit,
    ResourceState,
    evaluate,
    plan_mutation,
    precheck,
)
from quickroll.models.roll import ConsumptionRequest

CHARGE = ConsumptionRequest(use_charge=True)
QUANTITY = ConsumptionRequest(use_quantity=True)
BOTH = ConsumptionRequest(use_charge=True, use_quantity=True)
RECHARGE = ConsumptionRequest(use_recharge=True)
POOL = ConsumptionRequest(use_resource_pool=True)


class TestPrecheck:
    def test_charge_only_without_uses(self):
        denied = precheck(ResourceState(uses_current=0, quantity=1), CHARGE)
        assert denied is not None
        assert denied.axis == "uses"

    def test_quantity_only_empty(self):
        denied = precheck(ResourceState(quantity=0), QUANTITY)
        assert denied.axis == "quantity"

    def test_combined_needs_spare_quantity(self):
        assert precheck(ResourceState(uses_current=0, quantity=1), BOTH) is not None
        assert precheck(ResourceState(uses_current=0, quantity=2), BOTH) is None
        assert precheck(ResourceState(uses_current=1, quantity=1), BOTH) is None

    def test_recharge_not_charged(self):
        denied = precheck(ResourceState(recharge_charged=False), RECHARGE)
        assert denied.axis == "recharge"

    def test_first_failure_wins(self):
        request = ConsumptionRequest(use_charge=True, use_recharge=True)
        denied = precheck(ResourceState(uses_current=0, recharge_charged=False), request)
        assert denied.axis == "uses"


class TestPlanMutation:
    def test_charge_only(self):
        mutation = plan_mutation(ResourceState(uses_current=3, uses_max=3), CHARGE)
        assert mutation.uses_value == 2
        assert mutation.quantity is None

    def test_quantity_only(self):
        mutation = plan_mutation(ResourceState(quantity=5), QUANTITY)
        assert mutation.quantity == 4
        assert mutation.destroy is False

    def test_quantity_destroys_at_zero(self):
        mutation = plan_mutation(ResourceState(quantity=1, auto_destroy_on_zero=True), QUANTITY)
        assert mutation.quantity == 0
        assert mutation.destroy is True

    def test_quantity_kept_without_auto_destroy(self):
        mutation = plan_mutation(ResourceState(quantity=1), QUANTITY)
        assert mutation.quantity == 0
        assert mutation.destroy is False

    def test_combined_opens_new_stack(self):
        state = ResourceState(uses_current=0, uses_max=3, quantity=2)
        mutation = plan_mutation(state, BOTH)
        assert mutation.quantity == 1
        assert mutation.uses_value == 3

    def test_combined_uses_remaining(self):
        state = ResourceState(uses_current=2, uses_max=3, quantity=2)
        mutation = plan_mutation(state, BOTH)
        assert mutation.uses_value == 1
        assert mutation.quantity is None

    def test_recharge_always_clears(self):
        state = ResourceState(uses_current=2, recharge_charged=True)
        mutation = plan_mutation(state, ConsumptionRequest(use_charge=True, use_recharge=True))
        assert mutation.recharge_charged is False
        assert mutation.uses_value == 1

    def test_empty_request(self):
        assert plan_mutation(ResourceState(), ConsumptionRequest()).is_empty


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_combined_permit(self):
        state = ResourceState(uses_current=0, uses_max=4, quantity=2)
        outcome = await evaluate(state, BOTH)
        assert isinstance(outcome, Permit)
        assert outcome.mutation.quantity == 1
        assert outcome.mutation.uses_value == 4

    @pytest.mark.asyncio
    async def test_charge_only_deny(self):
        outcome = await evaluate(ResourceState(uses_current=0, quantity=1), CHARGE)
        assert isinstance(outcome, Deny)

    @pytest.mark.asyncio
    async def test_pool_check_denies(self):
        async def empty() -> bool:
            return False

        outcome = await evaluate(ResourceState(), POOL, pool_check=empty)
        assert isinstance(outcome, Deny)
        assert outcome.axis == "pool"

    @pytest.mark.asyncio
    async def test_pool_check_runs_last(self):
        calls = []

        async def check() -> bool:
            calls.append(1)
            return True

        request = ConsumptionRequest(use_charge=True, use_resource_pool=True)
        outcome = await evaluate(ResourceState(uses_current=0), request, pool_check=check)
        assert isinstance(outcome, Deny)
        assert calls == []

        outcome = await evaluate(ResourceState(uses_current=1), request, pool_check=check)
        assert isinstance(outcome, Permit)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_nothing_requested(self):
        outcome = await evaluate(ResourceState(), ConsumptionRequest())
        assert isinstance(outcome, Permit)
        assert outcome.mutation.is_empty
