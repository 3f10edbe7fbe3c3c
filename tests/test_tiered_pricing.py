"""Tests for bracket and block pricing and the low-code fee schedules."""
import pytest

from infrasizing.errors import InvalidInput
from infrasizing.models import (
    Bracket,
    OutSystemsCostRequest,
    OutSystemsDeployment,
    OutSystemsEdition,
    OutSystemsSuccessPlan,
)
from infrasizing.tiered_pricing import (
    MENDIX_K8S_ENVIRONMENT_BRACKETS,
    bracket_breakdown,
    calculate_block_cost,
    calculate_bracket_cost,
    mendix_k8s_environment_cost,
    mendix_k8s_platform_cost,
    mendix_user_cost,
    outsystems_ao_packs,
    outsystems_platform_cost,
    outsystems_user_cost,
)


def test_mendix_153_environments():
    """150 billable: 47 * 552 + 50 * 408 + 50 * 240 = 58,344; the last 3 are free."""
    assert mendix_k8s_environment_cost(153) == 58344


def test_included_environments_are_free():
    assert mendix_k8s_environment_cost(0) == 0
    assert mendix_k8s_environment_cost(3) == 0
    assert mendix_k8s_environment_cost(4) == 552


def test_overflow_past_last_bracket_is_free():
    # 3 included + 147 bracketed
    assert mendix_k8s_environment_cost(150) == mendix_k8s_environment_cost(1000)


def test_bracket_cost_is_monotonic():
    costs = [calculate_bracket_cost(q, 3, MENDIX_K8S_ENVIRONMENT_BRACKETS) for q in range(0, 200)]
    assert all(a <= b for a, b in zip(costs, costs[1:]))


def test_mendix_user_blocks():
    """101 internal users need 2 blocks of 100: 81,600."""
    assert mendix_user_cost(internal_users=101) == 81600
    assert mendix_user_cost(internal_users=100) == 40800
    assert mendix_user_cost(external_users=250_001) == 120000
    assert mendix_user_cost() == 0


def test_mendix_platform_total():
    fee = mendix_k8s_platform_cost(10, internal_users=50)
    # 7 billable environments * 552
    assert fee["environments_per_year"] == 3864
    assert fee["users_per_year"] == 40800
    assert fee["total_per_year"] == 6360 + 3864 + 40800


def test_block_cost():
    assert calculate_block_cost(0, 10, 5.0) == 0
    assert calculate_block_cost(10, 10, 5.0) == 5.0
    assert calculate_block_cost(11, 10, 5.0) == 10.0


def test_block_size_must_be_positive():
    with pytest.raises(InvalidInput) as exc:
        calculate_block_cost(5, 0, 1.0)
    assert exc.value.field == "block_size"


def test_negative_quantity_rejected():
    with pytest.raises(InvalidInput):
        calculate_bracket_cost(-1, 0, [Bracket(capacity=10, unit_price=1)])


def test_breakdown_items():
    items = bracket_breakdown(25, 5, [Bracket(capacity=10, unit_price=2), Bracket(capacity=100, unit_price=1)])
    assert items == [
        {"capacity": 10, "unit_price": 2, "consumed": 10, "cost": 20},
        {"capacity": 100, "unit_price": 1, "consumed": 10, "cost": 10},
    ]


def test_outsystems_ao_packs():
    assert outsystems_ao_packs(0) == 1
    assert outsystems_ao_packs(150) == 1
    assert outsystems_ao_packs(151) == 2
    assert outsystems_ao_packs(400) == 3


def test_outsystems_user_packs():
    assert outsystems_user_cost(OutSystemsEdition.STANDARD, internal_users=100) == 0
    # 150 above the standard allowance -> 2 packs of 100
    assert outsystems_user_cost(OutSystemsEdition.STANDARD, internal_users=250) == 12000
    assert outsystems_user_cost(OutSystemsEdition.ENTERPRISE, internal_users=500) == 0
    assert outsystems_user_cost(OutSystemsEdition.ENTERPRISE, internal_users=501) == 6000
    # 5,000 external -> 5 packs of 1,000
    assert outsystems_user_cost(OutSystemsEdition.STANDARD, external_users=5000) == 24200
    assert outsystems_user_cost(OutSystemsEdition.STANDARD, internal_users=10**6, unlimited=True) == 181500


def test_outsystems_default_subscription():
    cost = outsystems_platform_cost(OutSystemsCostRequest())
    assert cost["ao_packs"] == 1
    assert cost["total_per_year"] == 36300
    assert cost["add_ons"] == {}
    assert cost["warnings"] == []


def test_outsystems_cloud_scenario():
    """
    400 AOs -> 3 packs; 2 packs beyond the included one: 72,600
    users: 12,000 internal + 24,200 external; license = 36,300 + 72,600 + 36,200 = 145,100
    add-ons per pack: support 3 * 3,630 = 10,890, Sentry 3 * 24,200 = 72,600 (HA ignored)
    services: Essential success plan 30,250
    """
    cost = outsystems_platform_cost(OutSystemsCostRequest(
        application_objects=400,
        internal_users=250,
        external_users=5000,
        premium_support_24x7=True,
        high_availability=True,
        sentry=True,
        success_plan=OutSystemsSuccessPlan.ESSENTIAL,
    ))
    assert cost["license_per_year"] == 145100
    assert cost["add_ons"] == {"24x7 Premium Support": 10890, "Sentry": 72600}
    assert cost["services_per_year"] == 30250
    assert cost["total_per_year"] == 258840
    assert cost["total_per_month"] == pytest.approx(21570)
    assert any("High Availability" in w for w in cost["warnings"])


def test_outsystems_self_managed_drops_cloud_only_add_ons():
    cost = outsystems_platform_cost(OutSystemsCostRequest(
        deployment=OutSystemsDeployment.SELF_MANAGED,
        high_availability=True,
        log_streaming=True,
        disaster_recovery=True,
    ))
    assert cost["add_ons"] == {"Disaster Recovery": 12100}
    assert len(cost["warnings"]) == 2


def test_outsystems_services_and_appshield():
    cost = outsystems_platform_cost(OutSystemsCostRequest(
        appshield_users=1000,
        dedicated_group_sessions=2,
        public_sessions=3,
        expert_days=5,
        success_plan=OutSystemsSuccessPlan.PREMIER,
    ))
    assert cost["add_ons"]["AppShield"] == pytest.approx(16500)
    # 2 * 3,820 + 3 * 720
    assert cost["services"]["training"] == 9800
    assert cost["services"]["expert_days"] == 13200
    assert cost["services"]["success_plan"] == 60500
