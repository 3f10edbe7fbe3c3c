"""Tests for cloud cost estimates."""
import pytest

from infrasizing.cloud_pricing import CloudPricingRegistry
from infrasizing.cluster_sizing import ClusterSizingEngine
from infrasizing.cost_model import (
    estimate_cluster_cost,
    estimate_on_prem_cluster_cost,
    estimate_on_prem_vm_cost,
    estimate_vm_cost,
    licensing_input_for,
    on_prem_labor_monthly,
)
from infrasizing.models import (
    AppProfile,
    ClusterMode,
    ClusterSizingInput,
    ClusterSizingResult,
    EnvironmentResult,
    EnvironmentType,
    GrandTotal,
    LicensingCost,
    LaborCosts,
    LoadBalancerOption,
    OnPremPricing,
    ServerRole,
    SupportTier,
    VMEnvironmentConfig,
    VMRoleConfig,
    VMSizingInput,
)
from infrasizing.vm_sizing import VMSizingEngine


@pytest.fixture(scope="module")
def pricing():
    return CloudPricingRegistry()


def _cluster_result():
    env = EnvironmentResult(
        environment=EnvironmentType.PROD,
        environment_name="Production",
        is_prod=True,
        apps=20,
        replicas=3,
        pods=60,
        masters=0,
        workers=5,
        infra=3,
        total_nodes=8,
        total_cpu=100,
        total_ram=400,
        total_disk=1000,
    )
    return ClusterSizingResult(
        environments=[env],
        grand_total=GrandTotal(
            total_nodes=8, total_infra=3, total_workers=5, total_cpu=100, total_ram=400, total_disk=1000
        ),
        cluster_mode=ClusterMode.MULTI_CLUSTER,
        distribution_name="Amazon EKS",
        technology_name=".NET",
    )


def _license(total):
    return LicensingCost(
        distribution="rancher", display_name="SUSE Rancher (Prime)", total_per_year=total, licensing_model="Per-node"
    )


def test_cluster_cost_basic(pricing):
    """compute (100 * 0.048 + 400 * 0.006) * 730 = 5256; storage 1000 * 0.08 = 80; control plane 0.10 * 730 = 73."""
    estimate = estimate_cluster_cost(
        _cluster_result(), pricing.get_pricing("aws"), licensing_cost=_license(12000), managed_control_plane=True
    )
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    assert items == {"compute": 5256.0, "storage": 80.0, "control_plane": 73.0, "license": 1000.0}
    assert estimate.monthly_total_usd == pytest.approx(6409.0)
    assert estimate.yearly_total_usd == pytest.approx(76908.0)
    # licensing is cluster-wide, not split per environment
    assert estimate.environments[0].monthly_usd == pytest.approx(5409.0)
    assert estimate.provider == "aws"
    assert estimate.region == "us-east-1"


def test_cluster_cost_without_managed_control_plane(pricing):
    estimate = estimate_cluster_cost(_cluster_result(), pricing.get_pricing("aws"))
    assert {i.category for i in estimate.line_items} == {"compute", "storage"}
    assert estimate.monthly_total_usd == pytest.approx(5336.0)


def test_managed_openshift_service_fee(pricing):
    """5 workers * 0.171 * 730 = 624.15 on top of compute and storage."""
    estimate = estimate_cluster_cost(_cluster_result(), pricing.get_pricing("rosa"), managed_openshift=True)
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    assert items["service_fee"] == pytest.approx(624.15)
    assert estimate.monthly_total_usd == pytest.approx(5960.15)
    assert estimate.provider == "rosa"


def test_regional_pricing_raises_cost(pricing):
    east = estimate_cluster_cost(_cluster_result(), pricing.get_pricing("aws", "us-east-1"))
    sao_paulo = estimate_cluster_cost(_cluster_result(), pricing.get_pricing("aws", "sa-east-1"))
    assert sao_paulo.monthly_total_usd > east.monthly_total_usd


def test_environment_costs_sum_to_total(pricing):
    request = ClusterSizingInput(
        distribution="eks", technology="java", prod_apps=AppProfile(medium=30), non_prod_apps=AppProfile(medium=30)
    )
    result = ClusterSizingEngine().calculate(request)
    estimate = estimate_cluster_cost(result, pricing.get_pricing("aws"), managed_control_plane=True)
    assert len(estimate.environments) == 5
    assert sum(e.monthly_usd for e in estimate.environments) == pytest.approx(estimate.monthly_total_usd, abs=0.05)
    assert estimate.yearly_total_usd == pytest.approx(estimate.monthly_total_usd * 12)


def test_licensing_input_for_cluster():
    inp = licensing_input_for(_cluster_result(), SupportTier.PREMIUM, years=2)
    assert inp.node_count == 8
    assert inp.total_cores == 100
    assert inp.workers == 5
    assert inp.support_tier == SupportTier.PREMIUM
    assert inp.years == 2


def test_vm_cost_with_cloud_lb(pricing):
    """One medium web VM (4 vCPU / 8 GB) with no overhead, plus a cloud LB at 0.0225/h."""
    sizing = VMSizingEngine().calculate(VMSizingInput(
        environment_configs={
            EnvironmentType.PROD: VMEnvironmentConfig(
                roles=[VMRoleConfig(role=ServerRole.WEB)], load_balancer=LoadBalancerOption.CLOUD_LB
            )
        },
        enabled_environments=[EnvironmentType.PROD],
        system_overhead_percent=0,
    ))
    estimate = estimate_vm_cost(sizing, pricing.get_pricing("aws"))
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    # (4 * 0.048 + 8 * 0.006) * 730
    assert items["compute"] == pytest.approx(175.2)
    # (100 GB disk + 100 GB environment storage) * 0.08
    assert items["storage"] == pytest.approx(16.0)
    assert items["network"] == pytest.approx(16.43, abs=0.01)
    assert estimate.environments[0].nodes == 1


def _single_web_vm():
    return VMSizingEngine().calculate(VMSizingInput(
        environment_configs={EnvironmentType.PROD: VMEnvironmentConfig(roles=[VMRoleConfig(role=ServerRole.WEB)])},
        enabled_environments=[EnvironmentType.PROD],
        system_overhead_percent=0,
    ))


def test_on_prem_cluster_cost():
    """
    2 servers (100 cores / 64): 30,000 / 48 months + 10% maintenance / 12 = 875
    cores and RAM: (100 * 200 + 400 * 15) / 48 = 541.67 -> compute 1,416.67
    storage 1 TB * 200 / 48 = 4.17
    data center: 4U * 100 + 730 kWh * 0.12 * 1.6 * 1.4 = 596.22
    labor: 1 DevOps + 1 sysadmin + 1 DBA = 30,000
    """
    estimate = estimate_on_prem_cluster_cost(_cluster_result(), OnPremPricing())
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    assert items == {"compute": 1416.67, "storage": 4.17, "data_center": 596.22, "labor": 30000.0}
    assert estimate.monthly_total_usd == pytest.approx(32017.06)
    assert estimate.provider == "on-prem"
    assert estimate.environments[0].monthly_usd == pytest.approx(32017.06)


def test_on_prem_cluster_cost_with_license():
    estimate = estimate_on_prem_cluster_cost(_cluster_result(), OnPremPricing(), licensing_cost=_license(12000))
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    assert items["license"] == 1000.0
    assert estimate.monthly_total_usd == pytest.approx(33017.06)


def test_on_prem_environments_share_by_nodes(pricing):
    request = ClusterSizingInput(
        distribution="kubernetes", technology="java", prod_apps=AppProfile(medium=30), non_prod_apps=AppProfile(medium=30)
    )
    result = ClusterSizingEngine().calculate(request)
    estimate = estimate_on_prem_cluster_cost(result, OnPremPricing())
    assert sum(e.monthly_usd for e in estimate.environments) == pytest.approx(estimate.monthly_total_usd, abs=0.05)
    biggest = max(estimate.environments, key=lambda e: e.nodes)
    smallest = min(estimate.environments, key=lambda e: e.nodes)
    assert biggest.monthly_usd >= smallest.monthly_usd


def test_on_prem_labor_scales_with_nodes():
    pricing = OnPremPricing(labor=LaborCosts(include_dba=False))
    # 200 nodes / 50 -> 4 DevOps, 2 sysadmins
    assert on_prem_labor_monthly(200, pricing) == pytest.approx(4 * 12000 + 2 * 8000)
    # floors of one each
    assert on_prem_labor_monthly(10, pricing) == pytest.approx(20000)
    assert on_prem_labor_monthly(10, OnPremPricing(), has_prod=False) == pytest.approx(20000)


def test_on_prem_vm_cost():
    """One server; data center 2U * 100 + 365 kWh * 0.12 * 1.6 * 1.4 = 298.11."""
    estimate = estimate_on_prem_vm_cost(_single_web_vm(), OnPremPricing())
    items = {i.category: i.monthly_usd for i in estimate.line_items}
    assert items["data_center"] == pytest.approx(298.11)
    assert items["labor"] == pytest.approx(30000)
    assert estimate.environments[0].nodes == 1
    assert estimate.region == "on-premises"
