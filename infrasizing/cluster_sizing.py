"""Kubernetes/OpenShift cluster sizing: master, worker and infra node counts per environment."""
import logging
import math

from infrasizing.catalog import get_distribution, get_technology
from infrasizing.errors import ConfigurationInconsistency, InvalidInput
from infrasizing.models import (
    AppProfile,
    AppTier,
    ClusterMode,
    ClusterSizingInput,
    ClusterSizingResult,
    DistributionProfile,
    EnvironmentResult,
    EnvironmentType,
    GrandTotal,
    NodeSpec,
    OvercommitPolicy,
    TierResourceSpec,
)
from infrasizing.settings import CalculatorSettings, K8sInfrastructureSettings, load_settings

_LOG = logging.getLogger(__name__)

# Defaults when called without settings
SYSTEM_RESERVE_PERCENT = 15.0
MIN_WORKERS = 3


def _ceil(x: float) -> int:
    # round first so float noise (e.g. 3.0000000000000004) does not add a node
    return math.ceil(round(x, 9))


def _check_policy(replicas: int, headroom_percent: float, overcommit: OvercommitPolicy) -> None:
    if replicas < 1:
        raise InvalidInput(f"replicas must be >= 1, got {replicas}", field="replicas")
    if not 0 <= headroom_percent <= 100:
        raise InvalidInput(f"headroom must be within 0-100%, got {headroom_percent}", field="headroom")
    if not 1 <= overcommit.cpu_ratio <= 10:
        raise InvalidInput(f"cpu overcommit must be within 1-10, got {overcommit.cpu_ratio}", field="cpu_ratio")
    if not 1 <= overcommit.memory_ratio <= 4:
        raise InvalidInput(
            f"memory overcommit must be within 1-4, got {overcommit.memory_ratio}", field="memory_ratio"
        )


def calculate_app_resources(
    apps: AppProfile,
    tiers: dict[AppTier, TierResourceSpec],
    replicas: int,
) -> tuple[float, float]:
    """cpu = sum(apps[tier] * tier.cpu) * replicas; same for ram."""
    cpu = 0.0
    ram = 0.0
    for tier in AppTier:
        n = apps.count(tier)
        if n < 0:
            raise InvalidInput(f"app count for {tier.value} must be >= 0, got {n}", field=tier.value)
        if n and tier in tiers:
            cpu += n * tiers[tier].cpu
            ram += n * tiers[tier].ram
    return cpu * replicas, ram * replicas


def _workers_for_demand(
    cpu_required: float,
    ram_required: float,
    worker: NodeSpec,
    overcommit: OvercommitPolicy,
    reserve_factor: float,
    min_workers: int,
) -> int:
    if worker.cpu <= 0 or worker.ram <= 0:
        raise ConfigurationInconsistency("Worker node spec must have positive cpu and ram")
    cpu_per_node = worker.cpu * reserve_factor * overcommit.cpu_ratio
    ram_per_node = worker.ram * reserve_factor * overcommit.memory_ratio
    by_cpu = _ceil(cpu_required / cpu_per_node)
    by_ram = _ceil(ram_required / ram_per_node)
    return max(by_cpu, by_ram, min_workers)


def calculate_worker_nodes(
    apps: AppProfile,
    tiers: dict[AppTier, TierResourceSpec],
    replicas: int,
    worker_spec: NodeSpec,
    headroom_percent: float,
    overcommit: OvercommitPolicy,
    system_reserve_percent: float = SYSTEM_RESERVE_PERCENT,
    min_workers: int = MIN_WORKERS,
) -> int:
    """
    required = sum(apps * tier spec) * replicas * (1 + headroom/100)
    per node = worker spec * (1 - reserve/100) * overcommit ratio
    workers = max(ceil(cpu_required / cpu_per_node), ceil(ram_required / ram_per_node), min_workers)
    """
    _check_policy(replicas, headroom_percent, overcommit)
    cpu, ram = calculate_app_resources(apps, tiers, replicas)
    factor = 1 + headroom_percent / 100
    return _workers_for_demand(
        cpu * factor, ram * factor, worker_spec, overcommit, 1 - system_reserve_percent / 100, min_workers
    )


def calculate_infra_nodes(
    total_apps: int,
    is_prod: bool,
    has_infra_nodes: bool,
    settings: K8sInfrastructureSettings | None = None,
) -> int:
    """
    0 without a dedicated infra tier. Otherwise max(3, ceil(apps / 25)), raised to 5 for
    production with >= 50 apps, capped at 10.
    """
    if not has_infra_nodes:
        return 0
    s = settings or K8sInfrastructureSettings()
    infra = max(s.min_infra, math.ceil(total_apps / s.apps_per_infra))
    if is_prod and total_apps >= s.large_deployment_threshold and infra < s.min_prod_infra_large:
        infra = s.min_prod_infra_large
    return min(infra, s.max_infra)


def calculate_master_nodes(has_managed_control_plane: bool, masters: int = 3) -> int:
    """Managed control planes are not sized; self-managed ones get a fixed quorum."""
    return 0 if has_managed_control_plane else masters


def _node_resources(
    masters: int,
    workers: int,
    infra: int,
    control_plane: NodeSpec,
    worker: NodeSpec,
    infra_spec: NodeSpec,
) -> tuple[int, int, int, int]:
    total_nodes = masters + workers + infra
    cpu = masters * control_plane.cpu + workers * worker.cpu + infra * infra_spec.cpu
    ram = masters * control_plane.ram + workers * worker.ram + infra * infra_spec.ram
    disk = masters * control_plane.disk_gb + workers * worker.disk_gb + infra * infra_spec.disk_gb
    return total_nodes, cpu, ram, disk


def grand_total(results: list[EnvironmentResult]) -> GrandTotal:
    """Element-wise sum of environment results."""
    return GrandTotal(
        total_nodes=sum(r.total_nodes for r in results),
        total_masters=sum(r.masters for r in results),
        total_infra=sum(r.infra for r in results),
        total_workers=sum(r.workers for r in results),
        total_cpu=sum(r.total_cpu for r in results),
        total_ram=sum(r.total_ram for r in results),
        total_disk=sum(r.total_disk for r in results),
    )


class ClusterSizingEngine:
    """Sizes one cluster per environment (or a shared / single cluster) from app counts."""

    def __init__(self, settings: CalculatorSettings | None = None):
        self.settings = settings or load_settings()

    @property
    def _k8s(self) -> K8sInfrastructureSettings:
        return self.settings.k8s

    def calculate(self, request: ClusterSizingInput) -> ClusterSizingResult:
        distro = request.custom_node_specs or get_distribution(request.distribution)
        tech = get_technology(request.technology)
        envs = sorted(set(request.enabled_environments), key=lambda e: e.order)
        if not envs and request.cluster_mode != ClusterMode.PER_ENVIRONMENT:
            raise InvalidInput("At least one environment must be enabled", field="enabled_environments")

        if request.cluster_mode == ClusterMode.SHARED_CLUSTER:
            results = [self._shared_cluster(request, envs, distro, tech.tiers)]
        elif request.cluster_mode == ClusterMode.PER_ENVIRONMENT:
            results = [self._single_environment(request, request.selected_environment, distro, tech.tiers)]
        else:
            results = [self._environment(request, env, distro, tech.tiers) for env in envs]

        total = grand_total(results)
        _LOG.info(
            "cluster sizing finished",
            extra={
                "distribution": distro.key,
                "technology": tech.key,
                "cluster_mode": request.cluster_mode.value,
                "environments": len(results),
                "total_nodes": total.total_nodes,
            },
        )
        return ClusterSizingResult(
            environments=results,
            grand_total=total,
            cluster_mode=request.cluster_mode,
            distribution_name=distro.name,
            technology_name=tech.name,
        )

    def _apps_for(self, request: ClusterSizingInput, env: EnvironmentType) -> AppProfile:
        if env in request.environment_apps:
            return request.environment_apps[env]
        return request.prod_apps if env.is_prod else request.non_prod_apps

    def _headroom_for(self, request: ClusterSizingInput, env: EnvironmentType) -> float:
        return request.headroom.for_environment(env) if request.enable_headroom else 0.0

    def _workers(
        self,
        apps: AppProfile,
        tiers: dict[AppTier, TierResourceSpec],
        replicas: int,
        worker: NodeSpec,
        headroom: float,
        overcommit: OvercommitPolicy,
    ) -> int:
        return calculate_worker_nodes(
            apps,
            tiers,
            replicas,
            worker,
            headroom,
            overcommit,
            system_reserve_percent=self._k8s.system_reserve_percent,
            min_workers=self._k8s.min_workers,
        )

    def _environment(
        self,
        request: ClusterSizingInput,
        env: EnvironmentType,
        distro: DistributionProfile,
        tiers: dict[AppTier, TierResourceSpec],
    ) -> EnvironmentResult:
        is_prod = env.is_prod
        apps = self._apps_for(request, env)
        replicas = request.replicas.for_environment(env)
        overcommit = request.prod_overcommit if is_prod else request.non_prod_overcommit
        # worker capacity always uses the production worker class
        workers = self._workers(apps, tiers, replicas, distro.prod_worker, self._headroom_for(request, env), overcommit)
        masters = calculate_master_nodes(distro.has_managed_control_plane, self._k8s.masters)
        infra = calculate_infra_nodes(apps.total_apps, is_prod, distro.has_infra_nodes, self._k8s)
        nodes, cpu, ram, disk = _node_resources(
            masters,
            workers,
            infra,
            distro.prod_control_plane if is_prod else distro.non_prod_control_plane,
            distro.prod_worker,
            distro.prod_infra if is_prod else distro.non_prod_infra,
        )
        _LOG.debug(
            "environment sized",
            extra={"environment": env.value, "masters": masters, "workers": workers, "infra": infra},
        )
        return EnvironmentResult(
            environment=env,
            environment_name=env.display_name,
            is_prod=is_prod,
            apps=apps.total_apps,
            replicas=replicas,
            pods=apps.total_apps * replicas,
            masters=masters,
            workers=workers,
            infra=infra,
            total_nodes=nodes,
            total_cpu=cpu,
            total_ram=ram,
            total_disk=disk,
        )

    def _shared_cluster(
        self,
        request: ClusterSizingInput,
        envs: list[EnvironmentType],
        distro: DistributionProfile,
        tiers: dict[AppTier, TierResourceSpec],
    ) -> EnvironmentResult:
        """All environments as namespaces of one cluster: prod replicas, specs, overcommit and headroom."""
        replicas = request.replicas.prod
        headroom = self._headroom_for(request, EnvironmentType.PROD)
        _check_policy(replicas, headroom, request.prod_overcommit)
        cpu_required = 0.0
        ram_required = 0.0
        total_apps = 0
        for env in envs:
            apps = self._apps_for(request, env)
            cpu, ram = calculate_app_resources(apps, tiers, replicas)
            cpu_required += cpu
            ram_required += ram
            total_apps += apps.total_apps
        factor = 1 + headroom / 100
        workers = _workers_for_demand(
            cpu_required * factor,
            ram_required * factor,
            distro.prod_worker,
            request.prod_overcommit,
            self._k8s.system_reserve_factor,
            self._k8s.min_workers,
        )
        masters = calculate_master_nodes(distro.has_managed_control_plane, self._k8s.masters)
        infra = calculate_infra_nodes(total_apps, True, distro.has_infra_nodes, self._k8s)
        nodes, cpu, ram, disk = _node_resources(
            masters, workers, infra, distro.prod_control_plane, distro.prod_worker, distro.prod_infra
        )
        return EnvironmentResult(
            environment=EnvironmentType.PROD,
            environment_name="Shared Cluster",
            is_prod=True,
            apps=total_apps,
            replicas=replicas,
            pods=total_apps * replicas,
            masters=masters,
            workers=workers,
            infra=infra,
            total_nodes=nodes,
            total_cpu=cpu,
            total_ram=ram,
            total_disk=disk,
        )

    def _single_environment(
        self,
        request: ClusterSizingInput,
        env: EnvironmentType,
        distro: DistributionProfile,
        tiers: dict[AppTier, TierResourceSpec],
    ) -> EnvironmentResult:
        """One environment as a standalone cluster; every node class uses production specs."""
        apps = self._apps_for(request, env)
        replicas = request.replicas.for_environment(env)
        workers = self._workers(
            apps, tiers, replicas, distro.prod_worker, self._headroom_for(request, env), request.prod_overcommit
        )
        masters = calculate_master_nodes(distro.has_managed_control_plane, self._k8s.masters)
        infra = calculate_infra_nodes(apps.total_apps, env.is_prod, distro.has_infra_nodes, self._k8s)
        nodes, cpu, ram, disk = _node_resources(
            masters, workers, infra, distro.prod_control_plane, distro.prod_worker, distro.prod_infra
        )
        return EnvironmentResult(
            environment=env,
            environment_name=f"{env.display_name} Cluster",
            is_prod=env.is_prod,
            apps=apps.total_apps,
            replicas=replicas,
            pods=apps.total_apps * replicas,
            masters=masters,
            workers=workers,
            infra=infra,
            total_nodes=nodes,
            total_cpu=cpu,
            total_ram=ram,
            total_disk=disk,
        )
