"""Bracket-ladder and per-block pricing (pure functions), plus the Mendix and OutSystems fee schedules."""
import math
from typing import Iterable

from infrasizing.errors import InvalidInput
from infrasizing.models import (
    Bracket,
    OutSystemsCostRequest,
    OutSystemsDeployment,
    OutSystemsEdition,
    OutSystemsSuccessPlan,
)


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise InvalidInput(f"{name} must be >= 0, got {value}", field=name)


def bracket_breakdown(quantity: int, base_allowance: int, brackets: Iterable[Bracket]) -> list[dict]:
    """
    Consume billable = max(0, quantity - base_allowance) bracket by bracket.
    Each item: { capacity, unit_price, consumed, cost }. Units past the last bracket are free
    and do not appear.
    """
    _check_non_negative("quantity", quantity)
    _check_non_negative("base_allowance", base_allowance)
    billable = max(0, quantity - base_allowance)
    out = []
    for b in brackets:
        if billable == 0:
            break
        consumed = min(billable, b.capacity)
        out.append({
            "capacity": b.capacity,
            "unit_price": b.unit_price,
            "consumed": consumed,
            "cost": consumed * b.unit_price,
        })
        billable -= consumed
    return out


def calculate_bracket_cost(quantity: int, base_allowance: int, brackets: Iterable[Bracket]) -> float:
    """
    cost = sum(min(remaining, capacity_i) * price_i) over brackets in order.
    Quantity beyond the cumulative bracket capacity costs nothing.
    """
    return sum(item["cost"] for item in bracket_breakdown(quantity, base_allowance, brackets))


def calculate_block_cost(units: int, block_size: int, price_per_block: float) -> float:
    """cost = ceil(units / block_size) * price_per_block; zero units cost nothing."""
    _check_non_negative("units", units)
    _check_non_negative("price_per_block", price_per_block)
    if block_size <= 0:
        raise InvalidInput(f"block_size must be > 0, got {block_size}", field="block_size")
    return math.ceil(units / block_size) * price_per_block


# Mendix on Kubernetes (list prices, USD/year)
MENDIX_K8S_BASE_PER_YEAR = 6360
MENDIX_K8S_INCLUDED_ENVIRONMENTS = 3
MENDIX_K8S_ENVIRONMENT_BRACKETS = [
    Bracket(capacity=47, unit_price=552),
    Bracket(capacity=50, unit_price=408),
    Bracket(capacity=50, unit_price=240),
]
MENDIX_INTERNAL_USERS_PER_BLOCK = 100
MENDIX_INTERNAL_USER_BLOCK_PRICE = 40800
MENDIX_EXTERNAL_USERS_PER_BLOCK = 250_000
MENDIX_EXTERNAL_USER_BLOCK_PRICE = 60000


def mendix_k8s_environment_cost(environments: int) -> float:
    """Per-year environment fee above the base: 3 included, then 47 @ 552, 50 @ 408, 50 @ 240, rest free."""
    return calculate_bracket_cost(environments, MENDIX_K8S_INCLUDED_ENVIRONMENTS, MENDIX_K8S_ENVIRONMENT_BRACKETS)


def mendix_user_cost(internal_users: int = 0, external_users: int = 0) -> float:
    """Per-year user licensing in whole blocks."""
    return calculate_block_cost(
        internal_users, MENDIX_INTERNAL_USERS_PER_BLOCK, MENDIX_INTERNAL_USER_BLOCK_PRICE
    ) + calculate_block_cost(
        external_users, MENDIX_EXTERNAL_USERS_PER_BLOCK, MENDIX_EXTERNAL_USER_BLOCK_PRICE
    )


def mendix_k8s_platform_cost(environments: int, internal_users: int = 0, external_users: int = 0) -> dict:
    """Yearly Mendix-on-K8s fee: base + environment brackets + user blocks."""
    env_cost = mendix_k8s_environment_cost(environments)
    user_cost = mendix_user_cost(internal_users, external_users)
    return {
        "base_per_year": MENDIX_K8S_BASE_PER_YEAR,
        "environments_per_year": env_cost,
        "users_per_year": user_cost,
        "total_per_year": MENDIX_K8S_BASE_PER_YEAR + env_cost + user_cost,
    }


# OutSystems (list prices, USD/year). Both editions include one AO pack.
OUTSYSTEMS_EDITION_BASE_PER_YEAR = 36300
OUTSYSTEMS_AO_PACK_SIZE = 150
OUTSYSTEMS_AO_PACK_PRICE = 36300
OUTSYSTEMS_INCLUDED_INTERNAL_USERS = {OutSystemsEdition.STANDARD: 100, OutSystemsEdition.ENTERPRISE: 500}
OUTSYSTEMS_INTERNAL_USER_PACK_SIZE = 100
OUTSYSTEMS_INTERNAL_USER_PACK_PRICE = 6000
OUTSYSTEMS_EXTERNAL_USER_PACK_SIZE = 1000
OUTSYSTEMS_EXTERNAL_USER_PACK_PRICE = 4840
OUTSYSTEMS_UNLIMITED_USERS_PER_YEAR = 181500
OUTSYSTEMS_APPSHIELD_PER_USER = 16.5
OUTSYSTEMS_SUCCESS_PLANS = {
    OutSystemsSuccessPlan.NONE: 0,
    OutSystemsSuccessPlan.ESSENTIAL: 30250,
    OutSystemsSuccessPlan.PREMIER: 60500,
}
OUTSYSTEMS_GROUP_SESSION_PRICE = 3820
OUTSYSTEMS_PUBLIC_SESSION_PRICE = 720
OUTSYSTEMS_EXPERT_DAY_PRICE = 2640

# request flag -> (line name, price per AO pack, cloud only)
OUTSYSTEMS_PER_PACK_ADD_ONS = {
    "premium_support_24x7": ("24x7 Premium Support", 3630, False),
    "non_production_env": ("Non-Production Environment", 3630, False),
    "load_test_env": ("Load Testing Environment", 6050, True),
    "environment_pack": ("Environment Pack", 9680, False),
    "high_availability": ("High Availability", 12100, True),
    "sentry": ("Sentry", 24200, True),
    "disaster_recovery": ("Disaster Recovery", 12100, False),
}
# request flag -> (line name, flat price, cloud only)
OUTSYSTEMS_FLAT_ADD_ONS = {
    "log_streaming": ("Log Streaming", 7260, True),
    "database_replica": ("Database Replica", 96800, True),
}


def outsystems_ao_packs(application_objects: int) -> int:
    """At least one pack; ceil(AOs / 150) beyond that."""
    _check_non_negative("application_objects", application_objects)
    return max(1, math.ceil(application_objects / OUTSYSTEMS_AO_PACK_SIZE))


def outsystems_user_cost(
    edition: OutSystemsEdition, internal_users: int = 0, external_users: int = 0, unlimited: bool = False
) -> float:
    """Internal users above the edition allowance in packs of 100, external users in packs of 1,000."""
    if unlimited:
        return OUTSYSTEMS_UNLIMITED_USERS_PER_YEAR
    _check_non_negative("internal_users", internal_users)
    extra_internal = max(0, internal_users - OUTSYSTEMS_INCLUDED_INTERNAL_USERS[edition])
    return calculate_block_cost(
        extra_internal, OUTSYSTEMS_INTERNAL_USER_PACK_SIZE, OUTSYSTEMS_INTERNAL_USER_PACK_PRICE
    ) + calculate_block_cost(
        external_users, OUTSYSTEMS_EXTERNAL_USER_PACK_SIZE, OUTSYSTEMS_EXTERNAL_USER_PACK_PRICE
    )


def outsystems_platform_cost(request: OutSystemsCostRequest) -> dict:
    """
    Yearly OutSystems subscription:
    license = edition base + additional AO packs + users
    add-ons = per-AO-pack rates * packs, plus flat add-ons and AppShield per user
    services = success plan + training sessions + expert days
    Cloud-only add-ons are dropped (with a warning) for self-managed deployments;
    Sentry includes High Availability.
    """
    packs = outsystems_ao_packs(request.application_objects)
    extra_aos = max(0, request.application_objects - OUTSYSTEMS_AO_PACK_SIZE)
    license_items = {
        "edition_base": OUTSYSTEMS_EDITION_BASE_PER_YEAR,
        "additional_ao_packs": calculate_block_cost(extra_aos, OUTSYSTEMS_AO_PACK_SIZE, OUTSYSTEMS_AO_PACK_PRICE),
        "users": outsystems_user_cost(
            request.edition, request.internal_users, request.external_users, request.unlimited_users
        ),
    }

    self_managed = request.deployment == OutSystemsDeployment.SELF_MANAGED
    warnings = []
    add_ons = {}
    for flag, (name, price, cloud_only) in list(OUTSYSTEMS_PER_PACK_ADD_ONS.items()) + list(
        OUTSYSTEMS_FLAT_ADD_ONS.items()
    ):
        if not getattr(request, flag):
            continue
        if cloud_only and self_managed:
            warnings.append(f"{name} is a Cloud-only feature and is ignored for self-managed deployments.")
            continue
        if flag == "high_availability" and request.sentry and not self_managed:
            warnings.append("Sentry already includes High Availability; the HA add-on is ignored.")
            continue
        add_ons[name] = price * packs if flag in OUTSYSTEMS_PER_PACK_ADD_ONS else price
    if request.appshield_users:
        add_ons["AppShield"] = request.appshield_users * OUTSYSTEMS_APPSHIELD_PER_USER

    services = {
        "success_plan": OUTSYSTEMS_SUCCESS_PLANS[request.success_plan],
        "training": request.dedicated_group_sessions * OUTSYSTEMS_GROUP_SESSION_PRICE
        + request.public_sessions * OUTSYSTEMS_PUBLIC_SESSION_PRICE,
        "expert_days": request.expert_days * OUTSYSTEMS_EXPERT_DAY_PRICE,
    }

    license_total = sum(license_items.values())
    add_ons_total = sum(add_ons.values())
    services_total = sum(services.values())
    total = license_total + add_ons_total + services_total
    return {
        "ao_packs": packs,
        "license": license_items,
        "add_ons": add_ons,
        "services": services,
        "license_per_year": license_total,
        "add_ons_per_year": add_ons_total,
        "services_per_year": services_total,
        "total_per_year": total,
        "total_per_month": round(total / 12, 2),
        "warnings": warnings,
    }
