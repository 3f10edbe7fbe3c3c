"""Multi-year growth projections for sized clusters and VM fleets: cluster limits, warnings, scaling advice."""
import logging
import math

from infrasizing.models import (
    ClusterLimits,
    ClusterLimitWarning,
    ClusterSizingResult,
    CostEstimate,
    GrowthPattern,
    GrowthProjection,
    GrowthSettings,
    ProjectionPoint,
    ProjectionSummary,
    ScalingRecommendation,
    VMSizingResult,
)

_LOG = logging.getLogger(__name__)

MAX_YEARS_TO_LIMIT = 10
WARNING_PERCENT_OF_LIMIT = 70
CRITICAL_PERCENT_OF_LIMIT = 90

DEFAULT_CLUSTER_LIMITS = ClusterLimits(nodes=2000, pods_per_node=110, total_pods=150_000)
# distribution -> (nodes, pods per node, total pods)
CLUSTER_LIMITS = {
    "eks": (5000, 110, 150_000),
    "aks": (5000, 250, 150_000),
    "gke": (15000, 110, 150_000),
    "oke": (2000, 110, 150_000),
    "openshift": (2000, 250, 150_000),
    "openshift-rosa": (5000, 250, 150_000),
    "openshift-aro": (5000, 250, 150_000),
    "rancher": (2000, 110, 150_000),
    "tanzu": (2000, 110, 150_000),
    "k3s": (500, 110, 50_000),
    "microk8s": (200, 110, 20_000),
    "charmed": (1000, 110, 100_000),
    "kubernetes": (5000, 110, 150_000),
}

# lightweight distribution -> (projected node count that outgrows it, title, advice)
_OUTGROWN = {
    "k3s": (
        200,
        "Consider Migration to Managed K8s",
        "K3s is optimized for edge and small deployments. For large-scale growth, consider EKS, AKS or GKE.",
    ),
    "microk8s": (
        100,
        "Evaluate Enterprise Distribution",
        "MicroK8s is designed for development and small production. Consider OpenShift or Rancher at enterprise scale.",
    ),
}


def _ceil(x: float) -> int:
    return math.ceil(round(x, 9))


def _base_key(distribution: str) -> str:
    """Hosted or edition variants (rancher-community, k3s-aws) share their base distribution's limits."""
    key = distribution.strip().lower()
    if key in CLUSTER_LIMITS:
        return key
    return key.split("-", 1)[0]


def get_cluster_limits(distribution: str) -> ClusterLimits:
    limits = CLUSTER_LIMITS.get(_base_key(distribution))
    if limits is None:
        return DEFAULT_CLUSTER_LIMITS
    nodes, pods_per_node, total_pods = limits
    return ClusterLimits(nodes=nodes, pods_per_node=pods_per_node, total_pods=total_pods)


def _year_rate(settings: GrowthSettings, year: int) -> float:
    rate = settings.annual_growth_rate / 100
    if settings.pattern == GrowthPattern.S_CURVE:
        # logistic weight centred on year 2.5; slow start, fast middle, plateau
        return rate * 2 / (1 + math.exp(-1.5 * (year - 2.5)))
    if settings.pattern == GrowthPattern.CUSTOM:
        return settings.custom_rates.get(year, settings.annual_growth_rate) / 100
    return rate


def growth_factor(settings: GrowthSettings, year: int) -> float:
    """
    Multiplier on the baseline after `year` years.
    linear: 1 + r * year (same absolute increase each year)
    exponential: (1 + r) ** year
    s_curve / custom: product of each year's (1 + rate)
    """
    if year <= 0:
        return 1.0
    rate = settings.annual_growth_rate / 100
    if settings.pattern == GrowthPattern.LINEAR:
        return 1 + rate * year
    if settings.pattern == GrowthPattern.EXPONENTIAL:
        return (1 + rate) ** year
    factor = 1.0
    for y in range(1, year + 1):
        factor *= 1 + _year_rate(settings, y)
    return factor


def years_to_limit(current: float, limit: float, settings: GrowthSettings, max_years: int = MAX_YEARS_TO_LIMIT) -> int | None:
    """First year the grown value reaches the limit: 0 if already there, None if not within max_years."""
    if current >= limit:
        return 0
    if current <= 0:
        return None
    for year in range(1, max_years + 1):
        if current * growth_factor(settings, year) >= limit:
            return year
    return None


def _points(baseline: ProjectionPoint, settings: GrowthSettings) -> list[ProjectionPoint]:
    inflation = 1 + settings.annual_cost_inflation / 100
    points = []
    previous = 1.0
    for year in range(1, settings.projection_years + 1):
        factor = growth_factor(settings, year)
        monthly = 0.0
        if settings.include_cost_projections:
            monthly = round(baseline.monthly_cost_usd * factor * inflation ** year, 2)
        points.append(ProjectionPoint(
            year=year,
            label=f"Year {year}",
            apps=_ceil(baseline.apps * factor),
            nodes=_ceil(baseline.nodes * factor),
            workers=_ceil(baseline.workers * factor),
            cpu=_ceil(baseline.cpu * factor),
            ram=_ceil(baseline.ram * factor),
            disk=_ceil(baseline.disk * factor),
            monthly_cost_usd=monthly,
            yearly_cost_usd=round(monthly * 12, 2),
            growth_from_previous_percent=round((factor - previous) / previous * 100, 2) if baseline.apps else 0,
            cumulative_growth_percent=round((factor - 1) * 100, 2) if baseline.apps else 0,
        ))
        previous = factor
    return points


def _limit_warnings(baseline: ProjectionPoint, points: list[ProjectionPoint], limits: ClusterLimits) -> list[ClusterLimitWarning]:
    """At most one warning (>= 70% of the node limit) and one critical (>= 90%), at the first year each is hit."""
    warnings: list[ClusterLimitWarning] = []
    for point in points:
        percent = point.nodes / limits.nodes * 100
        if percent >= CRITICAL_PERCENT_OF_LIMIT:
            severity = "critical"
        elif percent >= WARNING_PERCENT_OF_LIMIT:
            severity = "warning"
        else:
            continue
        if severity == "critical" and any(w.severity == "critical" for w in warnings):
            continue
        if severity == "warning" and warnings:
            continue
        warnings.append(ClusterLimitWarning(
            severity=severity,
            year=point.year,
            projected_value=point.nodes,
            limit=limits.nodes,
            percent_of_limit=round(percent, 1),
            message=(
                f"Node count ({point.nodes}) will reach {percent:.0f}% of the cluster limit "
                f"({limits.nodes}) by Year {point.year}, up from {baseline.nodes} today"
            ),
        ))
    return warnings


def _summary(baseline: ProjectionPoint, points: list[ProjectionPoint], warnings: list[ClusterLimitWarning]) -> ProjectionSummary:
    final = points[-1] if points else baseline
    total_cost = baseline.yearly_cost_usd + sum(p.yearly_cost_usd for p in points)
    average = sum(p.yearly_cost_usd for p in points) / len(points) if points else baseline.yearly_cost_usd
    critical = [w for w in warnings if w.severity == "critical"]

    def percent(new: float, old: float) -> float:
        return round((new - old) / old * 100, 2) if old else 0.0

    return ProjectionSummary(
        app_growth=final.apps - baseline.apps,
        app_growth_percent=percent(final.apps, baseline.apps),
        node_growth=final.nodes - baseline.nodes,
        node_growth_percent=percent(final.nodes, baseline.nodes),
        total_cost_over_period_usd=round(total_cost, 2),
        average_yearly_cost_usd=round(average, 2),
        cost_increase_usd=round(final.yearly_cost_usd - baseline.yearly_cost_usd, 2),
        cost_increase_percent=percent(final.yearly_cost_usd, baseline.yearly_cost_usd),
        major_scaling_year=critical[0].year if critical else None,
        warning_count=len(warnings),
        critical_warning_count=len(critical),
    )


def recommend(
    baseline: ProjectionPoint,
    points: list[ProjectionPoint],
    warnings: list[ClusterLimitWarning],
    summary: ProjectionSummary,
    settings: GrowthSettings,
    distribution: str | None = None,
) -> list[ScalingRecommendation]:
    """Scaling advice ordered by priority, then year."""
    final = points[-1] if points else baseline
    out = []
    if final.cumulative_growth_percent > 100:
        out.append(ScalingRecommendation(
            kind="enable_autoscaling",
            year=1,
            priority=1,
            title="Enable Cluster Autoscaling",
            description=(
                f"With {final.cumulative_growth_percent:.0f}% projected growth, enable autoscaling "
                "to absorb changing load."
            ),
        ))
    if summary.node_growth_percent > 50:
        out.append(ScalingRecommendation(
            kind="upgrade_node_size",
            year=max(1, settings.projection_years // 2),
            priority=2,
            title="Consider Larger Node Sizes",
            description=(
                f"Node count grows by {summary.node_growth_percent:.0f}%. "
                "Larger nodes may cost less than many more small ones."
            ),
        ))
    critical = [w for w in warnings if w.severity == "critical"]
    if critical:
        first = min(critical, key=lambda w: w.year)
        out.append(ScalingRecommendation(
            kind="split_cluster",
            year=max(1, first.year - 1),
            priority=1,
            title="Plan for Cluster Split",
            description=f"Cluster limits are approached by Year {first.year}. Plan to spread workloads over several clusters.",
        ))
    if summary.cost_increase_percent > 75:
        out.append(ScalingRecommendation(
            kind="optimize_resources",
            year=1,
            priority=2,
            title="Review Resource Optimization",
            description=(
                f"Costs rise by {summary.cost_increase_percent:.0f}%. "
                "Consider reserved or spot capacity and right-sizing."
            ),
            estimated_cost_impact_usd=round(-summary.total_cost_over_period_usd * 0.15, 2),
        ))
    if distribution is not None:
        outgrown = _OUTGROWN.get(_base_key(distribution))
        if outgrown is not None and final.nodes > outgrown[0]:
            out.append(ScalingRecommendation(
                kind="consider_managed_service", year=1, priority=2, title=outgrown[1], description=outgrown[2]
            ))
    return sorted(out, key=lambda r: (r.priority, r.year))


def _baseline(apps: int, nodes: int, workers: int, cpu: int, ram: int, disk: int, cost: CostEstimate | None) -> ProjectionPoint:
    monthly = cost.monthly_total_usd if cost is not None else 0.0
    return ProjectionPoint(
        year=0,
        label="Current",
        apps=apps,
        nodes=nodes,
        workers=workers,
        cpu=cpu,
        ram=ram,
        disk=disk,
        monthly_cost_usd=monthly,
        yearly_cost_usd=round(monthly * 12, 2),
    )


def project_cluster_growth(
    result: ClusterSizingResult,
    settings: GrowthSettings,
    distribution: str,
    cost: CostEstimate | None = None,
) -> GrowthProjection:
    """Grow apps, nodes and resources (and cost, with inflation) from a sized cluster set."""
    total = result.grand_total
    baseline = _baseline(
        sum(env.apps for env in result.environments),
        total.total_nodes,
        total.total_workers,
        total.total_cpu,
        total.total_ram,
        total.total_disk,
        cost,
    )
    points = _points(baseline, settings)
    limits = get_cluster_limits(distribution)
    warnings = _limit_warnings(baseline, points, limits) if settings.show_cluster_limit_warnings else []
    summary = _summary(baseline, points, warnings)
    if warnings:
        _LOG.info(
            "growth projection hits cluster limits",
            extra={"distribution": distribution, "warnings": len(warnings)},
        )
    return GrowthProjection(
        settings=settings,
        baseline=baseline,
        points=points,
        cluster_limits=limits,
        warnings=warnings,
        recommendations=recommend(baseline, points, warnings, summary, settings, distribution),
        summary=summary,
    )


def project_vm_growth(result: VMSizingResult, settings: GrowthSettings, cost: CostEstimate | None = None) -> GrowthProjection:
    """VM fleets have no cluster limits; VMs stand in for both apps and nodes."""
    total = result.grand_total
    baseline = _baseline(total.total_vms, total.total_vms, 0, total.total_cpu, total.total_ram, total.total_disk, cost)
    points = _points(baseline, settings)
    summary = _summary(baseline, points, [])
    return GrowthProjection(
        settings=settings,
        baseline=baseline,
        points=points,
        recommendations=recommend(baseline, points, [], summary, settings),
        summary=summary,
    )
