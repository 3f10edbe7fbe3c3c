"""Monthly and yearly cost estimates for sized clusters and VM fleets, on cloud rates or on-premises hardware."""
import math

from infrasizing.models import (
    ClusterSizingResult,
    CloudPricing,
    CostEstimate,
    CostLineItem,
    EnvironmentCost,
    LicensingCost,
    LicensingInput,
    LoadBalancerOption,
    OnPremPricing,
    SupportTier,
    VMSizingResult,
)

HOURS_PER_MONTH = 730


def licensing_input_for(result: ClusterSizingResult, support_tier: SupportTier = SupportTier.STANDARD, years: int = 1) -> LicensingInput:
    """Licensing quantities for a sized cluster: all nodes, all vCPU as cores, workers."""
    total = result.grand_total
    return LicensingInput(
        node_count=total.total_nodes,
        total_cores=total.total_cpu,
        worker_count=total.total_workers,
        support_tier=support_tier,
        years=years,
    )


def _estimate(provider: str, region: str, line_items: list[CostLineItem], environments: list[EnvironmentCost]) -> CostEstimate:
    monthly = round(sum(i.monthly_usd for i in line_items), 2)
    return CostEstimate(
        provider=provider,
        region=region,
        line_items=[i for i in line_items if i.monthly_usd],
        environments=environments,
        monthly_total_usd=monthly,
        yearly_total_usd=round(monthly * 12, 2),
    )


def estimate_cluster_cost(
    result: ClusterSizingResult,
    pricing: CloudPricing,
    licensing_cost: LicensingCost | None = None,
    managed_control_plane: bool = False,
    managed_openshift: bool = False,
) -> CostEstimate:
    """
    compute = (cpu * cpu/hr + ram * ram/hr) * 730
    storage = disk_gb * ssd/GB-month
    control_plane = managed control plane/hr * 730, once per cluster (managed distributions)
    service_fee = workers * openshift fee/hr * 730 (managed OpenShift)
    license = licensing total per year / 12, not split across environments
    """
    compute = pricing.compute
    compute_total = storage_total = control_total = fee_total = 0.0
    environments = []
    for env in result.environments:
        env_compute = compute.monthly_cost(env.total_cpu, env.total_ram, HOURS_PER_MONTH)
        env_storage = env.total_disk * pricing.storage.ssd_per_gb_month
        env_control = compute.managed_control_plane_per_hour * HOURS_PER_MONTH if managed_control_plane else 0.0
        env_fee = (
            env.workers * compute.openshift_service_fee_per_worker_hour * HOURS_PER_MONTH if managed_openshift else 0.0
        )
        compute_total += env_compute
        storage_total += env_storage
        control_total += env_control
        fee_total += env_fee
        environments.append(EnvironmentCost(
            environment=env.environment,
            environment_name=env.environment_name,
            nodes=env.total_nodes,
            monthly_usd=round(env_compute + env_storage + env_control + env_fee, 2),
        ))

    total = result.grand_total
    line_items = [
        CostLineItem(
            category="compute",
            description=f"{total.total_cpu} vCPU / {total.total_ram} GB RAM",
            monthly_usd=round(compute_total, 2),
        ),
        CostLineItem(category="storage", description=f"{total.total_disk} GB SSD", monthly_usd=round(storage_total, 2)),
        CostLineItem(
            category="control_plane",
            description=f"Managed control plane x {len(result.environments)}",
            monthly_usd=round(control_total, 2),
        ),
        CostLineItem(
            category="service_fee",
            description=f"Managed OpenShift fee for {total.total_workers} workers",
            monthly_usd=round(fee_total, 2),
        ),
    ]
    if licensing_cost is not None:
        line_items.append(CostLineItem(
            category="license",
            description=f"{licensing_cost.display_name} ({licensing_cost.licensing_model})",
            monthly_usd=round(licensing_cost.total_per_year / 12, 2),
        ))
    return _estimate(pricing.provider, pricing.region, line_items, environments)


def estimate_vm_cost(result: VMSizingResult, pricing: CloudPricing) -> CostEstimate:
    """Compute and SSD storage per environment; cloud load balancers billed hourly."""
    compute_total = storage_total = network_total = 0.0
    environments = []
    for env in result.environments:
        env_compute = pricing.compute.monthly_cost(env.total_cpu, env.total_ram, HOURS_PER_MONTH)
        env_storage = env.total_disk * pricing.storage.ssd_per_gb_month
        env_network = 0.0
        if env.load_balancer == LoadBalancerOption.CLOUD_LB:
            env_network = pricing.network.load_balancer_per_hour * HOURS_PER_MONTH
        compute_total += env_compute
        storage_total += env_storage
        network_total += env_network
        environments.append(EnvironmentCost(
            environment=env.environment,
            environment_name=env.environment_name,
            nodes=env.total_vms,
            monthly_usd=round(env_compute + env_storage + env_network, 2),
        ))

    total = result.grand_total
    line_items = [
        CostLineItem(
            category="compute",
            description=f"{total.total_cpu} vCPU / {total.total_ram} GB RAM",
            monthly_usd=round(compute_total, 2),
        ),
        CostLineItem(category="storage", description=f"{total.total_disk} GB SSD", monthly_usd=round(storage_total, 2)),
        CostLineItem(category="network", description="Cloud load balancers", monthly_usd=round(network_total, 2)),
    ]
    return _estimate(pricing.provider, pricing.region, line_items, environments)


ON_PREM_PROVIDER = "on-prem"
ON_PREM_REGION = "on-premises"


def on_prem_servers(total_cpu: int, pricing: OnPremPricing) -> int:
    return math.ceil(total_cpu / pricing.hardware.cores_per_server) if total_cpu > 0 else 0


def on_prem_hardware_monthly(servers: int, pricing: OnPremPricing) -> float:
    """servers * server cost amortised over the refresh cycle, plus yearly maintenance / 12."""
    capex = servers * pricing.hardware.server_cost
    return capex / (pricing.hardware_refresh_years * 12) + capex * pricing.hardware_maintenance_percent / 100 / 12


def on_prem_data_center_monthly(servers: int, pricing: OnPremPricing) -> float:
    """
    rack = servers * rack units * rack unit price
    power = servers * watts * 730 / 1000 kWh * price * PUE
    cooling = power * cooling percent
    """
    dc = pricing.data_center
    rack = servers * dc.rack_units_per_server * dc.rack_unit_per_month
    power = servers * dc.watts_per_server * HOURS_PER_MONTH / 1000 * dc.power_per_kwh * dc.pue
    return rack + power + power * dc.cooling_percent / 100


def on_prem_labor_monthly(nodes: int, pricing: OnPremPricing, has_prod: bool = True) -> float:
    """DevOps FTEs = max(1, nodes / nodes per engineer); sysadmins = max(1, FTEs / 2); one DBA with prod."""
    labor = pricing.labor
    engineers = max(1.0, nodes / labor.nodes_per_engineer)
    dba = labor.dba_monthly if labor.include_dba and has_prod else 0.0
    return engineers * labor.devops_engineer_monthly + max(1.0, engineers * 0.5) * labor.sysadmin_monthly + dba


def _split(environments, shares: list[float], monthly_total: float, nodes_of) -> list[EnvironmentCost]:
    whole = sum(shares)
    return [
        EnvironmentCost(
            environment=env.environment,
            environment_name=env.environment_name,
            nodes=nodes_of(env),
            monthly_usd=round(monthly_total * share / whole, 2) if whole else 0.0,
        )
        for env, share in zip(environments, shares)
    ]


def _on_prem_items(servers: int, cpu: int, ram: int, disk: int, pricing: OnPremPricing, labor: float) -> list[CostLineItem]:
    months = pricing.hardware_refresh_years * 12
    hw = pricing.hardware
    return [
        CostLineItem(
            category="compute",
            description=f"{servers} servers, {cpu} cores, {ram} GB RAM (amortised over {pricing.hardware_refresh_years}y)",
            monthly_usd=round(
                on_prem_hardware_monthly(servers, pricing) + (cpu * hw.per_cpu_core + ram * hw.per_gb_ram) / months, 2
            ),
        ),
        CostLineItem(
            category="storage",
            description=f"{disk} GB SSD (amortised)",
            monthly_usd=round(disk / 1000 * hw.per_tb_ssd / months, 2),
        ),
        CostLineItem(
            category="data_center",
            description=f"Rack space, power and cooling for {servers} servers",
            monthly_usd=round(on_prem_data_center_monthly(servers, pricing), 2),
        ),
        CostLineItem(category="labor", description="Operations staff", monthly_usd=round(labor, 2)),
    ]


def estimate_on_prem_cluster_cost(
    result: ClusterSizingResult, pricing: OnPremPricing, licensing_cost: LicensingCost | None = None
) -> CostEstimate:
    """
    servers = ceil(total cpu / cores per server)
    compute = server amortisation + maintenance + (cores * core price + GB * RAM price) / refresh months
    storage = TB * SSD price / refresh months
    labor is sized on total nodes; environments share the total by node count
    """
    total = result.grand_total
    servers = on_prem_servers(total.total_cpu, pricing)
    has_prod = any(env.is_prod for env in result.environments)
    line_items = _on_prem_items(
        servers, total.total_cpu, total.total_ram, total.total_disk, pricing,
        on_prem_labor_monthly(total.total_nodes, pricing, has_prod),
    )
    if licensing_cost is not None:
        line_items.append(CostLineItem(
            category="license",
            description=f"{licensing_cost.display_name} ({licensing_cost.licensing_model})",
            monthly_usd=round(licensing_cost.total_per_year / 12, 2),
        ))
    monthly = sum(i.monthly_usd for i in line_items)
    environments = _split(
        result.environments, [env.total_nodes for env in result.environments], monthly, lambda env: env.total_nodes
    )
    return _estimate(ON_PREM_PROVIDER, ON_PREM_REGION, line_items, environments)


def estimate_on_prem_vm_cost(result: VMSizingResult, pricing: OnPremPricing) -> CostEstimate:
    """Same hardware model as clusters; labor sized on VMs, environments share the total by cpu + ram."""
    total = result.grand_total
    servers = on_prem_servers(total.total_cpu, pricing)
    has_prod = any(env.is_prod for env in result.environments)
    line_items = _on_prem_items(
        servers, total.total_cpu, total.total_ram, total.total_disk, pricing,
        on_prem_labor_monthly(total.total_vms, pricing, has_prod),
    )
    monthly = sum(i.monthly_usd for i in line_items)
    environments = _split(
        result.environments,
        [env.total_cpu + env.total_ram for env in result.environments],
        monthly,
        lambda env: env.total_vms,
    )
    return _estimate(ON_PREM_PROVIDER, ON_PREM_REGION, line_items, environments)
