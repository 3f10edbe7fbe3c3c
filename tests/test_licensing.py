"""Tests for distribution licensing providers and the registry."""
from concurrent.futures import ThreadPoolExecutor

import pytest

from infrasizing.errors import UnsupportedDistribution
from infrasizing.licensing import LicensingProviderRegistry, multi_year_discount
from infrasizing.models import LicensingInput, SupportTier


@pytest.fixture
def registry():
    return LicensingProviderRegistry()


def _input(**kwargs):
    body = {"node_count": 10, "total_cores": 160}
    body.update(kwargs)
    return LicensingInput(**body)


def test_openshift_standard(registry):
    cost = registry.calculate_licensing_cost("openshift", _input())
    assert cost.display_name == "OpenShift Container Platform"
    assert cost.base_license_per_year == 25000
    assert cost.support_cost_per_year == 0
    assert cost.total_per_year == 25000
    assert cost.per_node_per_year == 2500
    assert cost.licensing_model == "Per-node: $2,500/node/year"


def test_openshift_premium_support(registry):
    cost = registry.calculate_licensing_cost("openshift", _input(support_tier=SupportTier.PREMIUM))
    # 25,000 * 0.3
    assert cost.support_cost_per_year == pytest.approx(7500)
    assert cost.total_per_year == pytest.approx(32500)


def test_openshift_enterprise_three_years(registry):
    """Base discounted 10%; TAM adds 50,000 on top of the 1.5x multiplier."""
    cost = registry.calculate_licensing_cost(
        "openshift", _input(support_tier=SupportTier.ENTERPRISE, years=3)
    )
    assert cost.base_license_per_year == pytest.approx(22500)
    assert cost.support_cost_per_year == pytest.approx(61250)
    assert cost.total_per_year == pytest.approx(83750)
    assert any("10% discount" in n for n in cost.notes)


def test_multi_year_discount():
    assert [multi_year_discount(y) for y in (1, 2, 3, 4, 10)] == [0.0, 0.05, 0.10, 0.15, 0.15]


def test_managed_openshift_worker_fees(registry):
    cost = registry.calculate_licensing_cost("openshift-rosa", _input(worker_count=10))
    # 10 workers * $0.171 * 8760 h
    assert cost.total_per_year == pytest.approx(14979.6)
    assert cost.support_cost_per_year == 0
    assert cost.display_name == "OpenShift (ROSA)"
    assert cost.licensing_model == "Managed OpenShift: $0.171/worker/hour"


def test_managed_openshift_aliases(registry):
    assert registry.get("rosa").distribution == "openshift-rosa"
    assert registry.get("aro").worker_fee_per_hour == 0.21
    assert registry.get("osd").display_name == "OpenShift (Dedicated)"
    assert registry.get("roks").vendor == "Red Hat / IBM Cloud"


def test_worker_count_defaults_to_nodes(registry):
    explicit = registry.calculate_licensing_cost("aro", _input(worker_count=10))
    implicit = registry.calculate_licensing_cost("aro", _input())
    assert explicit.total_per_year == implicit.total_per_year


def test_tanzu_minimum_cores(registry):
    cost = registry.calculate_licensing_cost("tanzu", _input(total_cores=8, support_tier=SupportTier.BASIC))
    # billed for 16 cores at $1,500
    assert cost.base_license_per_year == 24000
    assert cost.licensing_model == "Per-core (Standard): $1,500/core/year"
    assert registry.get("tanzu").license_cost_per_node_year() == 12000


def test_tanzu_premier(registry):
    cost = registry.calculate_licensing_cost("tanzu", _input(total_cores=32, support_tier=SupportTier.PREMIUM))
    assert cost.base_license_per_year == 48000
    assert cost.support_cost_per_year == pytest.approx(12000)


def test_unknown_support_tier_uses_list_price(registry):
    cost = registry.calculate_licensing_cost("tanzu", _input(support_tier=SupportTier.STANDARD))
    assert cost.support_cost_per_year == 0
    assert cost.total_per_year == 240000
    assert any("not offered" in n for n in cost.notes)


def test_rancher_editions(registry):
    assert registry.calculate_licensing_cost("rancher", _input()).total_per_year == 10000
    assert registry.calculate_licensing_cost("rancher-government", _input()).total_per_year == 15000
    community = registry.calculate_licensing_cost("rancher-community", _input())
    assert community.total_per_year == 0
    assert community.licensing_model == "Open Source - No License Required"
    assert [t.tier for t in registry.get("rancher-community").get_support_tiers()] == [SupportTier.COMMUNITY]


def test_rancher_enterprise_support(registry):
    cost = registry.calculate_licensing_cost("rancher", _input(support_tier=SupportTier.ENTERPRISE))
    # 10,000 * 0.8 + 25,000
    assert cost.support_cost_per_year == pytest.approx(33000)


def test_hosted_aliases_carry_vendor_tag(registry):
    provider = registry.get("rancher-eks")
    assert provider.display_name == "SUSE Rancher (Prime) on AWS"
    assert provider.requires_license
    cost = registry.calculate_licensing_cost("rancher-eks", _input(node_count=5))
    assert cost.total_per_year == 5000
    assert registry.get("k3s-azure").display_name == "K3s on Azure"


@pytest.mark.parametrize("key", ["k3s", "rke2", "microk8s", "charmed-free", "k3s-gcp"])
def test_open_source_distributions_are_free(registry, key):
    cost = registry.calculate_licensing_cost(key, _input())
    assert cost.total_per_year == 0
    assert cost.licensing_model == "Open Source - No License Required"


def test_charmed_pro(registry):
    cost = registry.calculate_licensing_cost("charmed", _input(support_tier=SupportTier.PREMIUM))
    assert cost.base_license_per_year == 5000
    assert cost.support_cost_per_year == pytest.approx(5000)


def test_vanilla_kubernetes_support_only(registry):
    premium = registry.calculate_licensing_cost("kubernetes", _input(support_tier=SupportTier.PREMIUM))
    assert premium.base_license_per_year == 0
    assert premium.support_cost_per_year == 10000
    assert premium.licensing_model == "Open Source - CNCF Apache 2.0"
    community = registry.calculate_licensing_cost("kubernetes", _input(support_tier=SupportTier.COMMUNITY))
    assert community.total_per_year == 0


def test_managed_k8s_control_plane(registry):
    eks = registry.calculate_licensing_cost("eks", _input())
    assert eks.additional_fees_per_year == pytest.approx(876)
    assert eks.licensing_model == "Managed K8s - Control plane: $0.10/hour"
    assert registry.calculate_licensing_cost("aks", _input()).total_per_year == 0
    assert registry.get("gke").cluster_fixed_cost_per_year() == pytest.approx(876)


def test_per_node_with_zero_nodes(registry):
    cost = registry.calculate_licensing_cost("eks", _input(node_count=0))
    assert cost.per_node_per_year == pytest.approx(876)


def test_unknown_distribution(registry):
    with pytest.raises(UnsupportedDistribution):
        registry.get("nomad")
    assert not registry.is_supported("nomad")
    assert registry.is_supported(" Rancher-EKS ")


def test_distributions_lists_aliases(registry):
    keys = registry.distributions()
    assert "openshift" in keys
    assert "rosa" in keys
    assert "tanzu-aws" in keys
    assert keys == sorted(keys)


def test_concurrent_first_lookup_returns_same_instance():
    registry = LicensingProviderRegistry()
    with ThreadPoolExecutor(max_workers=16) as pool:
        providers = list(pool.map(lambda _: registry.get("openshift"), range(64)))
    assert all(p is providers[0] for p in providers)


def test_memoised_per_key(registry):
    assert registry.get("rancher") is registry.get("RANCHER")
    assert registry.get("rancher") is not registry.get("rancher-eks")
