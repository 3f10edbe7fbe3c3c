"""Calculator constants (K8s floors and ratios, HA multipliers, LB and VM role specs) with env overrides."""
import logging
import os

from pydantic import BaseModel, Field, ValidationError

from infrasizing.errors import InvalidInput
from infrasizing.models import AppTier, HAPattern, LoadBalancerOption, ServerRole

_LOG = logging.getLogger(__name__)


class K8sInfrastructureSettings(BaseModel):
    system_reserve_percent: float = Field(15, ge=0, lt=100, description="Node capacity held back for kubelet/OS")
    min_workers: int = Field(3, ge=1)
    masters: int = Field(3, ge=1, description="Self-managed control plane size")
    apps_per_infra: int = Field(25, ge=1)
    min_infra: int = Field(3, ge=1)
    max_infra: int = Field(10, ge=1)
    large_deployment_threshold: int = Field(50, ge=1)
    min_prod_infra_large: int = Field(5, ge=1)

    @property
    def system_reserve_factor(self) -> float:
        return 1 - self.system_reserve_percent / 100


class LoadBalancerSpec(BaseModel):
    vms: int = Field(..., ge=0)
    cpu_per_vm: int = Field(..., ge=0)
    ram_per_vm: int = Field(..., ge=0)


class RoleSpec(BaseModel):
    cpu: int = Field(..., ge=1)
    ram: int = Field(..., ge=1)


def _ladder(*pairs: tuple[int, int]) -> dict[AppTier, RoleSpec]:
    return {tier: RoleSpec(cpu=c, ram=r) for tier, (c, r) in zip(AppTier, pairs)}


_GENERAL = ((2, 4), (4, 8), (8, 16), (16, 32))
_MEMORY = ((4, 16), (8, 32), (16, 64), (32, 128))
_CACHE = ((2, 8), (4, 16), (8, 32), (16, 64))


def _default_roles() -> dict[ServerRole, dict[AppTier, RoleSpec]]:
    return {
        ServerRole.WEB: _ladder(*_GENERAL),
        ServerRole.APP: _ladder(*_GENERAL),
        ServerRole.DATABASE: _ladder(*_MEMORY),
        ServerRole.CACHE: _ladder(*_CACHE),
        ServerRole.MESSAGE_QUEUE: _ladder(*_GENERAL),
        ServerRole.SEARCH: _ladder(*_MEMORY),
        ServerRole.STORAGE: _ladder(*_GENERAL),
        ServerRole.MONITORING: _ladder(*_GENERAL),
    }


class VMRoleSettings(BaseModel):
    roles: dict[ServerRole, dict[AppTier, RoleSpec]] = Field(default_factory=_default_roles)
    bastion: RoleSpec = Field(default_factory=lambda: RoleSpec(cpu=2, ram=4))
    high_memory_multiplier: float = Field(1.5, ge=1)


class CalculatorSettings(BaseModel):
    k8s: K8sInfrastructureSettings = Field(default_factory=K8sInfrastructureSettings)
    ha_multipliers: dict[HAPattern, float] = Field(
        default_factory=lambda: {
            HAPattern.NONE: 1.0,
            HAPattern.ACTIVE_ACTIVE: 2.0,
            HAPattern.ACTIVE_PASSIVE: 2.0,
            HAPattern.N_PLUS_1: 1.5,
            HAPattern.N_PLUS_2: 5 / 3,
        }
    )
    load_balancers: dict[LoadBalancerOption, LoadBalancerSpec] = Field(
        default_factory=lambda: {
            LoadBalancerOption.NONE: LoadBalancerSpec(vms=0, cpu_per_vm=0, ram_per_vm=0),
            LoadBalancerOption.SINGLE: LoadBalancerSpec(vms=1, cpu_per_vm=2, ram_per_vm=4),
            LoadBalancerOption.HA_PAIR: LoadBalancerSpec(vms=2, cpu_per_vm=2, ram_per_vm=4),
            LoadBalancerOption.CLOUD_LB: LoadBalancerSpec(vms=0, cpu_per_vm=0, ram_per_vm=0),
        }
    )
    vm_roles: VMRoleSettings = Field(default_factory=VMRoleSettings)


# env var -> (settings.k8s attribute, parser)
_K8S_ENV = {
    "INFRASIZE_SYSTEM_RESERVE_PCT": ("system_reserve_percent", float),
    "INFRASIZE_MIN_WORKERS": ("min_workers", int),
    "INFRASIZE_MASTERS": ("masters", int),
    "INFRASIZE_APPS_PER_INFRA": ("apps_per_infra", int),
    "INFRASIZE_MIN_INFRA": ("min_infra", int),
    "INFRASIZE_MAX_INFRA": ("max_infra", int),
    "INFRASIZE_LARGE_DEPLOYMENT_THRESHOLD": ("large_deployment_threshold", int),
    "INFRASIZE_MIN_PROD_INFRA_LARGE": ("min_prod_infra_large", int),
}


def _env_number(name: str, parse):
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        return parse(raw)
    except ValueError:
        raise InvalidInput(f"{name} must be a number, got {raw!r}", field=name)


def _validated(model: type[BaseModel], values: dict, env_names: dict[str, str]) -> BaseModel:
    """Build a settings model, reporting range violations against the env var that set them."""
    try:
        return model(**values)
    except ValidationError as exc:
        error = exc.errors()[0]
        attr = str(error["loc"][0]) if error["loc"] else ""
        name = env_names.get(attr, attr)
        raise InvalidInput(f"{name}: {error['msg']}", field=name)


def load_settings() -> CalculatorSettings:
    """Defaults overridden by INFRASIZE_* environment variables. Bad values raise InvalidInput."""
    overrides = {}
    for name, (attr, parse) in _K8S_ENV.items():
        value = _env_number(name, parse)
        if value is not None:
            overrides[attr] = value
    k8s = _validated(K8sInfrastructureSettings, overrides, {attr: name for name, (attr, _) in _K8S_ENV.items()})
    if k8s.min_infra > k8s.max_infra:
        raise InvalidInput("INFRASIZE_MIN_INFRA must not exceed INFRASIZE_MAX_INFRA", field="min_infra")
    vm_overrides = {}
    multiplier = _env_number("INFRASIZE_HIGH_MEMORY_MULTIPLIER", float)
    if multiplier is not None:
        vm_overrides["high_memory_multiplier"] = multiplier
    vm_roles = _validated(VMRoleSettings, vm_overrides, {"high_memory_multiplier": "INFRASIZE_HIGH_MEMORY_MULTIPLIER"})
    if overrides or vm_overrides:
        _LOG.info("Calculator settings overridden from environment: %s", sorted(overrides) + sorted(vm_overrides))
    return CalculatorSettings(k8s=k8s, vm_roles=vm_roles)
