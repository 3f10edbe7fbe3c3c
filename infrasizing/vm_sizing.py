"""VM fleet sizing: role instances with HA multipliers, load balancers and OS overhead."""
import logging
import math

from infrasizing.catalog import get_technology
from infrasizing.errors import ConfigurationInconsistency, InvalidInput
from infrasizing.models import (
    AppTier,
    EnvironmentType,
    HAPattern,
    LoadBalancerOption,
    ServerRole,
    TechnologyProfile,
    VMEnvironmentConfig,
    VMEnvironmentResult,
    VMGrandTotal,
    VMRoleConfig,
    VMRoleResult,
    VMSizingInput,
    VMSizingResult,
)
from infrasizing.settings import CalculatorSettings, load_settings

_LOG = logging.getLogger(__name__)

ROLE_NAMES = {
    ServerRole.WEB: "Web Server",
    ServerRole.APP: "Application Server",
    ServerRole.DATABASE: "Database Server",
    ServerRole.CACHE: "Cache Server",
    ServerRole.MESSAGE_QUEUE: "Message Queue",
    ServerRole.SEARCH: "Search Server",
    ServerRole.STORAGE: "Storage Server",
    ServerRole.MONITORING: "Monitoring Server",
    ServerRole.BASTION: "Bastion Host",
}


class VMSizingEngine:
    def __init__(self, settings: CalculatorSettings | None = None):
        self.settings = settings or load_settings()

    def get_role_specs(self, role: ServerRole, tier: AppTier, technology: TechnologyProfile | str) -> tuple[int, int]:
        """
        Base (cpu, ram) for a role at a size tier. Bastion is fixed at the smallest size.
        Heavy-memory technologies get ram * 1.5; cpu is unchanged.
        """
        tech = technology if isinstance(technology, TechnologyProfile) else get_technology(technology)
        roles = self.settings.vm_roles
        if role == ServerRole.BASTION:
            spec = roles.bastion
        else:
            spec = roles.roles[role][tier]
        if tech.heavy_memory:
            return spec.cpu, int(spec.ram * roles.high_memory_multiplier)
        return spec.cpu, spec.ram

    def get_ha_multiplier(self, pattern: HAPattern) -> float:
        return self.settings.ha_multipliers[pattern]

    def get_load_balancer_specs(self, option: LoadBalancerOption) -> tuple[int, int, int]:
        """(vms, cpu_per_vm, ram_per_vm). Cloud LBs are billed as a service, not counted as VMs."""
        lb = self.settings.load_balancers[option]
        return lb.vms, lb.cpu_per_vm, lb.ram_per_vm

    def calculate(self, request: VMSizingInput) -> VMSizingResult:
        if not 0 <= request.system_overhead_percent <= 50:
            raise InvalidInput(
                f"system overhead must be within 0-50%, got {request.system_overhead_percent}",
                field="system_overhead_percent",
            )
        tech = get_technology(request.technology)
        results = []
        for env in sorted(set(request.enabled_environments), key=lambda e: e.order):
            config = request.environment_configs.get(env)
            if config is None:
                raise ConfigurationInconsistency(f"Configuration required for enabled environment: {env.value}")
            if not config.enabled:
                continue
            if not config.roles:
                raise ConfigurationInconsistency(f"At least one server role is required for environment: {env.value}")
            results.append(self._environment(env, config, tech, request.system_overhead_percent))

        total = VMGrandTotal(
            total_vms=sum(r.total_vms for r in results),
            total_cpu=sum(r.total_cpu for r in results),
            total_ram=sum(r.total_ram for r in results),
            total_disk=sum(r.total_disk for r in results),
            total_load_balancer_vms=sum(r.load_balancer_vms for r in results),
        )
        _LOG.info(
            "vm sizing finished",
            extra={"technology": tech.key, "environments": len(results), "total_vms": total.total_vms},
        )
        return VMSizingResult(environments=results, grand_total=total, technology_name=tech.name)

    def _role(self, role: VMRoleConfig, ha_multiplier: float, tech: TechnologyProfile) -> VMRoleResult:
        base_cpu, base_ram = self.get_role_specs(role.role, role.size, tech)
        cpu = role.custom_cpu if role.custom_cpu is not None else base_cpu
        ram = role.custom_ram if role.custom_ram is not None else base_ram
        if role.scalable:
            instances = math.ceil(round(role.instance_count * ha_multiplier, 9))
        else:
            instances = 1
        return VMRoleResult(
            role=role.role,
            role_name=role.role_name or ROLE_NAMES[role.role],
            size=role.size,
            base_instances=role.instance_count,
            total_instances=instances,
            cpu_per_instance=cpu,
            ram_per_instance=ram,
            disk_per_instance=role.disk_gb,
            total_cpu=instances * cpu,
            total_ram=instances * ram,
            total_disk=instances * role.disk_gb,
        )

    def _environment(
        self,
        env: EnvironmentType,
        config: VMEnvironmentConfig,
        tech: TechnologyProfile,
        overhead_percent: float,
    ) -> VMEnvironmentResult:
        ha = self.get_ha_multiplier(config.ha_pattern)
        roles = [self._role(r, ha, tech) for r in config.roles]
        lb_vms, lb_cpu, lb_ram = self.get_load_balancer_specs(config.load_balancer)
        overhead = 1 + overhead_percent / 100
        # overhead inflates cpu and ram only; disk is provisioned as configured
        cpu = math.ceil(round((sum(r.total_cpu for r in roles) + lb_vms * lb_cpu) * overhead, 9))
        ram = math.ceil(round((sum(r.total_ram for r in roles) + lb_vms * lb_ram) * overhead, 9))
        disk = sum(r.total_disk for r in roles) + config.storage_gb
        return VMEnvironmentResult(
            environment=env,
            environment_name=env.display_name,
            is_prod=env.is_prod,
            ha_pattern=config.ha_pattern,
            dr_pattern=config.dr_pattern,
            load_balancer=config.load_balancer,
            roles=roles,
            total_vms=sum(r.total_instances for r in roles) + lb_vms,
            total_cpu=cpu,
            total_ram=ram,
            total_disk=disk,
            load_balancer_vms=lb_vms,
            load_balancer_cpu=lb_vms * lb_cpu,
            load_balancer_ram=lb_vms * lb_ram,
        )
