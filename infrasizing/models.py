"""Input/output types for cluster and VM sizing, licensing and cloud pricing."""
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator


class AppTier(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


class EnvironmentType(str, Enum):
    DEV = "dev"
    TEST = "test"
    STAGE = "stage"
    PROD = "prod"
    DR = "dr"

    @property
    def is_prod(self) -> bool:
        """Prod and DR are production-class."""
        return self in (EnvironmentType.PROD, EnvironmentType.DR)

    @property
    def display_name(self) -> str:
        return _ENVIRONMENT_NAMES[self]

    @property
    def order(self) -> int:
        return _ENVIRONMENT_ORDER.index(self)


_ENVIRONMENT_ORDER = [
    EnvironmentType.DEV,
    EnvironmentType.TEST,
    EnvironmentType.STAGE,
    EnvironmentType.PROD,
    EnvironmentType.DR,
]
_ENVIRONMENT_NAMES = {
    EnvironmentType.DEV: "Development",
    EnvironmentType.TEST: "Test",
    EnvironmentType.STAGE: "Staging",
    EnvironmentType.PROD: "Production",
    EnvironmentType.DR: "Disaster Recovery",
}


class ClusterMode(str, Enum):
    MULTI_CLUSTER = "multi_cluster"
    SHARED_CLUSTER = "shared_cluster"
    PER_ENVIRONMENT = "per_environment"


# --- Catalog records ---


class TierResourceSpec(BaseModel):
    """CPU/RAM footprint of one app of a given tier."""
    cpu: float = Field(..., ge=0)
    ram: float = Field(..., ge=0)


class NodeSpec(BaseModel):
    """One node class (control plane, worker or infra)."""
    cpu: int = Field(..., ge=0, le=1024)
    ram: int = Field(..., ge=0, le=16384)
    disk_gb: int = Field(0, ge=0, le=1_000_000)


class TechnologyProfile(BaseModel):
    key: str
    name: str
    vendor: str = ""
    platform_type: Literal["native", "low_code"] = "native"
    heavy_memory: bool = Field(False, description="JVM and low-code runtimes get extra VM RAM")
    tiers: dict[AppTier, TierResourceSpec]


class DistributionProfile(BaseModel):
    """Node specs and control-plane/infra flags for one distribution."""
    key: str = "custom"
    name: str = "Custom"
    vendor: str = ""
    has_managed_control_plane: bool = False
    has_infra_nodes: bool = False
    prod_control_plane: NodeSpec
    non_prod_control_plane: NodeSpec
    prod_worker: NodeSpec
    non_prod_worker: NodeSpec
    prod_infra: NodeSpec = Field(default_factory=lambda: NodeSpec(cpu=0, ram=0, disk_gb=0))
    non_prod_infra: NodeSpec = Field(default_factory=lambda: NodeSpec(cpu=0, ram=0, disk_gb=0))


# --- Cluster sizing ---


class AppProfile(BaseModel):
    """Application counts by size tier."""
    small: int = Field(0, ge=0, le=100_000)
    medium: int = Field(0, ge=0, le=100_000)
    large: int = Field(0, ge=0, le=100_000)
    xlarge: int = Field(0, ge=0, le=100_000)

    @property
    def total_apps(self) -> int:
        return self.small + self.medium + self.large + self.xlarge

    def count(self, tier: AppTier) -> int:
        return getattr(self, tier.value)


class OvercommitPolicy(BaseModel):
    cpu_ratio: float = Field(1.0, ge=1, le=10, description="CPU oversubscription ratio")
    memory_ratio: float = Field(1.0, ge=1, le=4, description="Memory oversubscription ratio")


class ReplicaPolicy(BaseModel):
    dev: int = Field(1, ge=1, le=100)
    test: int = Field(1, ge=1, le=100)
    stage: int = Field(2, ge=1, le=100)
    prod: int = Field(3, ge=1, le=100)
    dr: int = Field(3, ge=1, le=100)

    def for_environment(self, env: EnvironmentType) -> int:
        return getattr(self, env.value)


class HeadroomPolicy(BaseModel):
    dev: float = Field(33, ge=0, le=100)
    test: float = Field(33, ge=0, le=100)
    stage: float = Field(0, ge=0, le=100)
    prod: float = Field(37.5, ge=0, le=100)
    dr: float = Field(37.5, ge=0, le=100)

    def for_environment(self, env: EnvironmentType) -> float:
        return getattr(self, env.value)


def _all_environments() -> list[EnvironmentType]:
    return list(_ENVIRONMENT_ORDER)


class ClusterSizingInput(BaseModel):
    """Request body for /v1/k8s/calculate."""
    distribution: str = Field("openshift", max_length=64)
    technology: str = Field("dotnet", max_length=64)
    cluster_mode: ClusterMode = ClusterMode.MULTI_CLUSTER
    enabled_environments: list[EnvironmentType] = Field(default_factory=_all_environments)
    selected_environment: EnvironmentType = Field(
        EnvironmentType.PROD, description="Sized environment when cluster_mode is per_environment"
    )
    prod_apps: AppProfile = Field(default_factory=AppProfile)
    non_prod_apps: AppProfile = Field(default_factory=AppProfile)
    environment_apps: dict[EnvironmentType, AppProfile] = Field(
        default_factory=dict, description="Per-environment app counts; falls back to prod/non-prod profiles"
    )
    replicas: ReplicaPolicy = Field(default_factory=ReplicaPolicy)
    headroom: HeadroomPolicy = Field(default_factory=HeadroomPolicy)
    enable_headroom: bool = True
    prod_overcommit: OvercommitPolicy = Field(default_factory=OvercommitPolicy)
    non_prod_overcommit: OvercommitPolicy = Field(default_factory=OvercommitPolicy)
    custom_node_specs: Optional[DistributionProfile] = None


class EnvironmentResult(BaseModel):
    environment: EnvironmentType
    environment_name: str
    is_prod: bool
    apps: int
    replicas: int
    pods: int
    masters: int
    workers: int
    infra: int
    total_nodes: int
    total_cpu: int
    total_ram: int
    total_disk: int


class GrandTotal(BaseModel):
    total_nodes: int = 0
    total_masters: int = 0
    total_infra: int = 0
    total_workers: int = 0
    total_cpu: int = 0
    total_ram: int = 0
    total_disk: int = 0


class ClusterSizingResult(BaseModel):
    """Response from /v1/k8s/calculate."""
    environments: list[EnvironmentResult]
    grand_total: GrandTotal
    cluster_mode: ClusterMode
    distribution_name: str
    technology_name: str


# --- VM sizing ---


class ServerRole(str, Enum):
    WEB = "web"
    APP = "app"
    DATABASE = "database"
    CACHE = "cache"
    MESSAGE_QUEUE = "message_queue"
    SEARCH = "search"
    STORAGE = "storage"
    MONITORING = "monitoring"
    BASTION = "bastion"


class HAPattern(str, Enum):
    NONE = "none"
    ACTIVE_ACTIVE = "active_active"
    ACTIVE_PASSIVE = "active_passive"
    N_PLUS_1 = "n_plus_1"
    N_PLUS_2 = "n_plus_2"


class DRPattern(str, Enum):
    NONE = "none"
    PILOT_LIGHT = "pilot_light"
    WARM_STANDBY = "warm_standby"
    HOT_STANDBY = "hot_standby"
    MULTI_REGION = "multi_region"


class LoadBalancerOption(str, Enum):
    NONE = "none"
    SINGLE = "single"
    HA_PAIR = "ha_pair"
    CLOUD_LB = "cloud_lb"


class VMRoleConfig(BaseModel):
    role: ServerRole
    role_name: Optional[str] = Field(None, max_length=100)
    size: AppTier = AppTier.MEDIUM
    instance_count: int = Field(1, ge=1, le=100)
    custom_cpu: Optional[int] = Field(None, ge=1, le=512)
    custom_ram: Optional[int] = Field(None, ge=1, le=4096)
    disk_gb: int = Field(100, ge=10, le=10_000)
    scalable: bool = Field(True, description="Non-scalable roles run a single instance and ignore HA")


class VMEnvironmentConfig(BaseModel):
    enabled: bool = True
    roles: list[VMRoleConfig] = Field(default_factory=list)
    ha_pattern: HAPattern = HAPattern.NONE
    dr_pattern: DRPattern = DRPattern.NONE
    load_balancer: LoadBalancerOption = LoadBalancerOption.NONE
    storage_gb: int = Field(100, ge=0, le=1_000_000)


class VMSizingInput(BaseModel):
    """Request body for /v1/vm/calculate."""
    technology: str = Field("dotnet", max_length=64)
    environment_configs: dict[EnvironmentType, VMEnvironmentConfig] = Field(default_factory=dict)
    enabled_environments: list[EnvironmentType] = Field(default_factory=_all_environments)
    system_overhead_percent: float = Field(15, ge=0, le=50)


class VMRoleResult(BaseModel):
    role: ServerRole
    role_name: str
    size: AppTier
    base_instances: int
    total_instances: int
    cpu_per_instance: int
    ram_per_instance: int
    disk_per_instance: int
    total_cpu: int
    total_ram: int
    total_disk: int


class VMEnvironmentResult(BaseModel):
    environment: EnvironmentType
    environment_name: str
    is_prod: bool
    ha_pattern: HAPattern
    dr_pattern: DRPattern
    load_balancer: LoadBalancerOption
    roles: list[VMRoleResult]
    total_vms: int
    total_cpu: int
    total_ram: int
    total_disk: int
    load_balancer_vms: int
    load_balancer_cpu: int
    load_balancer_ram: int


class VMGrandTotal(BaseModel):
    total_vms: int = 0
    total_cpu: int = 0
    total_ram: int = 0
    total_disk: int = 0
    total_load_balancer_vms: int = 0


class VMSizingResult(BaseModel):
    """Response from /v1/vm/calculate."""
    environments: list[VMEnvironmentResult]
    grand_total: VMGrandTotal
    technology_name: str


# --- Licensing ---


class SupportTier(str, Enum):
    COMMUNITY = "community"
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class SupportTierInfo(BaseModel):
    tier: SupportTier
    name: str
    hours: str
    response_sla: str
    cost_multiplier: float = Field(1.0, ge=0)
    additional_annual_cost: float = Field(0, ge=0)


class LicensingInput(BaseModel):
    """Request body for /v1/licensing/{distribution}."""
    node_count: int = Field(..., ge=0, le=100_000)
    total_cores: int = Field(0, ge=0, le=10_000_000)
    worker_count: Optional[int] = Field(None, ge=0, le=100_000, description="Defaults to node_count")
    support_tier: SupportTier = SupportTier.STANDARD
    years: int = Field(1, ge=1, le=10, description="Contract length; multi-year terms are discounted")

    @property
    def workers(self) -> int:
        return self.node_count if self.worker_count is None else self.worker_count


class LicensingCost(BaseModel):
    distribution: str
    display_name: str
    base_license_per_year: float = 0
    per_node_per_year: float = 0
    support_cost_per_year: float = 0
    additional_fees_per_year: float = 0
    total_per_year: float = 0
    licensing_model: str
    notes: list[str] = Field(default_factory=list)


# --- Cloud pricing ---


class ComputePricing(BaseModel):
    cpu_per_hour: float = 0
    ram_gb_per_hour: float = 0
    managed_control_plane_per_hour: float = 0
    openshift_service_fee_per_worker_hour: float = 0
    instance_type_prices: dict[str, float] = Field(default_factory=dict)

    def monthly_cost(self, cpu: float, ram_gb: float, hours_per_month: int = 730) -> float:
        return (cpu * self.cpu_per_hour + ram_gb * self.ram_gb_per_hour) * hours_per_month

    def instance_price(self, instance_type: str) -> float:
        """Hourly price; unknown types are approximated as 4 vCPU."""
        if instance_type in self.instance_type_prices:
            return self.instance_type_prices[instance_type]
        return self.cpu_per_hour * 4


class StoragePricing(BaseModel):
    ssd_per_gb_month: float = 0
    hdd_per_gb_month: float = 0
    object_storage_per_gb_month: float = 0
    backup_per_gb_month: float = 0
    registry_per_gb_month: float = 0


class NetworkPricing(BaseModel):
    egress_per_gb: float = 0
    load_balancer_per_hour: float = 0
    nat_gateway_per_hour: float = 0
    vpn_per_hour: float = 0
    public_ip_per_hour: float = 0


class LicensePricing(BaseModel):
    openshift_per_node_year: float = 2500
    rancher_enterprise_per_node_year: float = 1000
    tanzu_per_core_year: float = 1500
    charmed_per_node_year: float = 500


class SupportPricing(BaseModel):
    basic_percent: float = 0
    developer_percent: float = 3
    business_percent: float = 10
    enterprise_percent: float = 15


class CloudPricing(BaseModel):
    """Response from /v1/pricing/{provider}."""
    provider: str
    region: str
    region_name: str
    currency: str = "USD"
    source: str = ""
    compute: ComputePricing
    storage: StoragePricing
    network: NetworkPricing
    licenses: LicensePricing = Field(default_factory=LicensePricing)
    support: SupportPricing = Field(default_factory=SupportPricing)


# --- Tiered pricing and cost estimates ---


class Bracket(BaseModel):
    capacity: int = Field(..., ge=0)
    unit_price: float = Field(..., ge=0)


class BracketCostRequest(BaseModel):
    """Request body for /v1/tiered/brackets."""
    quantity: int = Field(..., ge=0, le=10_000_000)
    base_allowance: int = Field(0, ge=0, le=10_000_000)
    brackets: list[Bracket] = Field(..., min_length=1, max_length=100)


class BlockCostRequest(BaseModel):
    """Request body for /v1/tiered/blocks."""
    units: int = Field(..., ge=0, le=1_000_000_000)
    block_size: int = Field(..., ge=1)
    price_per_block: float = Field(..., ge=0)


class MendixCostRequest(BaseModel):
    """Request body for /v1/tiered/mendix."""
    environments: int = Field(..., ge=0, le=10_000)
    internal_users: int = Field(0, ge=0, le=10_000_000)
    external_users: int = Field(0, ge=0, le=1_000_000_000)


class OutSystemsEdition(str, Enum):
    STANDARD = "standard"
    ENTERPRISE = "enterprise"


class OutSystemsDeployment(str, Enum):
    CLOUD = "cloud"
    SELF_MANAGED = "self_managed"


class OutSystemsSuccessPlan(str, Enum):
    NONE = "none"
    ESSENTIAL = "essential"
    PREMIER = "premier"


class OutSystemsCostRequest(BaseModel):
    """Request body for /v1/tiered/outsystems. Add-ons marked cloud-only are ignored when self-managed."""
    edition: OutSystemsEdition = OutSystemsEdition.STANDARD
    deployment: OutSystemsDeployment = OutSystemsDeployment.CLOUD
    application_objects: int = Field(150, ge=0, le=10_000_000, description="Screens + tables + API methods")
    internal_users: int = Field(100, ge=0, le=10_000_000)
    external_users: int = Field(0, ge=0, le=1_000_000_000)
    unlimited_users: bool = False
    premium_support_24x7: bool = False
    non_production_env: bool = False
    load_test_env: bool = False
    environment_pack: bool = False
    high_availability: bool = False
    sentry: bool = False
    disaster_recovery: bool = False
    log_streaming: bool = False
    database_replica: bool = False
    appshield_users: int = Field(0, ge=0, le=1_000_000_000)
    success_plan: OutSystemsSuccessPlan = OutSystemsSuccessPlan.NONE
    dedicated_group_sessions: int = Field(0, ge=0, le=1000)
    public_sessions: int = Field(0, ge=0, le=1000)
    expert_days: int = Field(0, ge=0, le=1000)


class CostLineItem(BaseModel):
    category: Literal[
        "compute", "storage", "network", "control_plane", "service_fee", "license", "data_center", "labor"
    ]
    description: str
    monthly_usd: float


class EnvironmentCost(BaseModel):
    environment: EnvironmentType
    environment_name: str
    nodes: int
    monthly_usd: float


class CostEstimate(BaseModel):
    provider: str
    region: str
    line_items: list[CostLineItem]
    environments: list[EnvironmentCost]
    monthly_total_usd: float
    yearly_total_usd: float


class ClusterCostRequest(BaseModel):
    """Request body for /v1/cost/k8s."""
    sizing: ClusterSizingInput
    provider: str = Field("aws", max_length=64)
    region: Optional[str] = Field(None, max_length=64)
    support_tier: SupportTier = SupportTier.STANDARD
    years: int = Field(1, ge=1, le=10)
    include_licensing: bool = True

    @model_validator(mode="after")
    def _normalise_provider(self):
        self.provider = self.provider.strip().lower()
        return self


class ClusterCostResponse(BaseModel):
    sizing: ClusterSizingResult
    licensing: Optional[LicensingCost] = None
    cost: CostEstimate


class VMCostRequest(BaseModel):
    """Request body for /v1/cost/vm."""
    sizing: VMSizingInput
    provider: str = Field("aws", max_length=64)
    region: Optional[str] = Field(None, max_length=64)


class VMCostResponse(BaseModel):
    sizing: VMSizingResult
    cost: CostEstimate


# --- On-premises cost ---


class HardwareCosts(BaseModel):
    server_cost: float = Field(15000, ge=0)
    cores_per_server: int = Field(64, ge=1)
    per_cpu_core: float = Field(200, ge=0)
    per_gb_ram: float = Field(15, ge=0)
    per_tb_ssd: float = Field(200, ge=0)


class DataCenterCosts(BaseModel):
    rack_units_per_server: int = Field(2, ge=0)
    rack_unit_per_month: float = Field(100, ge=0)
    power_per_kwh: float = Field(0.12, ge=0)
    watts_per_server: int = Field(500, ge=0)
    pue: float = Field(1.6, ge=1, description="Power usage effectiveness")
    cooling_percent: float = Field(40, ge=0, le=200)


class LaborCosts(BaseModel):
    devops_engineer_monthly: float = Field(12000, ge=0)
    nodes_per_engineer: int = Field(50, ge=1)
    sysadmin_monthly: float = Field(8000, ge=0)
    dba_monthly: float = Field(10000, ge=0)
    include_dba: bool = True


class OnPremPricing(BaseModel):
    """Hardware amortised over the refresh cycle, plus data-center and staff running costs."""
    hardware: HardwareCosts = Field(default_factory=HardwareCosts)
    data_center: DataCenterCosts = Field(default_factory=DataCenterCosts)
    labor: LaborCosts = Field(default_factory=LaborCosts)
    hardware_refresh_years: int = Field(4, ge=1, le=15)
    hardware_maintenance_percent: float = Field(10, ge=0, le=100)


class OnPremClusterCostRequest(BaseModel):
    """Request body for /v1/cost/k8s/on-prem."""
    sizing: ClusterSizingInput
    pricing: OnPremPricing = Field(default_factory=OnPremPricing)
    support_tier: SupportTier = SupportTier.STANDARD
    years: int = Field(1, ge=1, le=10)
    include_licensing: bool = True


class OnPremVMCostRequest(BaseModel):
    """Request body for /v1/cost/vm/on-prem."""
    sizing: VMSizingInput
    pricing: OnPremPricing = Field(default_factory=OnPremPricing)


# --- Growth planning ---


class GrowthPattern(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    S_CURVE = "s_curve"
    CUSTOM = "custom"


def _default_custom_rates() -> dict[int, float]:
    return {1: 30, 2: 25, 3: 20, 4: 15, 5: 10}


class GrowthSettings(BaseModel):
    annual_growth_rate: float = Field(20, ge=0, le=500, description="Percent per year")
    projection_years: int = Field(3, ge=1, le=10)
    pattern: GrowthPattern = GrowthPattern.LINEAR
    custom_rates: dict[int, float] = Field(
        default_factory=_default_custom_rates,
        description="Year -> percent for the custom pattern; missing years use annual_growth_rate",
    )
    include_cost_projections: bool = True
    annual_cost_inflation: float = Field(3, ge=0, le=100)
    show_cluster_limit_warnings: bool = True

    @model_validator(mode="after")
    def _check_custom_rates(self):
        for year, rate in self.custom_rates.items():
            if year < 1 or rate < 0 or rate > 500:
                raise ValueError(f"custom rate for year {year} must be within 0-500% and year >= 1")
        return self


class ClusterLimits(BaseModel):
    nodes: int
    pods_per_node: int
    total_pods: int


class ProjectionPoint(BaseModel):
    year: int
    label: str
    apps: int
    nodes: int
    workers: int = 0
    cpu: int
    ram: int
    disk: int
    monthly_cost_usd: float = 0
    yearly_cost_usd: float = 0
    growth_from_previous_percent: float = 0
    cumulative_growth_percent: float = 0


class ClusterLimitWarning(BaseModel):
    severity: Literal["warning", "critical"]
    resource: str = "nodes"
    year: int
    projected_value: int
    limit: int
    percent_of_limit: float
    message: str


class ScalingRecommendation(BaseModel):
    kind: Literal[
        "enable_autoscaling", "upgrade_node_size", "split_cluster", "optimize_resources", "consider_managed_service"
    ]
    year: int
    priority: int
    title: str
    description: str
    estimated_cost_impact_usd: float = 0


class ProjectionSummary(BaseModel):
    app_growth: int
    app_growth_percent: float
    node_growth: int
    node_growth_percent: float
    total_cost_over_period_usd: float
    average_yearly_cost_usd: float
    cost_increase_usd: float
    cost_increase_percent: float
    major_scaling_year: Optional[int] = None
    warning_count: int = 0
    critical_warning_count: int = 0


class GrowthProjection(BaseModel):
    settings: GrowthSettings
    baseline: ProjectionPoint
    points: list[ProjectionPoint]
    cluster_limits: Optional[ClusterLimits] = None
    warnings: list[ClusterLimitWarning] = Field(default_factory=list)
    recommendations: list[ScalingRecommendation] = Field(default_factory=list)
    summary: ProjectionSummary


class ClusterGrowthRequest(BaseModel):
    """Request body for /v1/growth/k8s. Costs are projected when a provider is given."""
    sizing: ClusterSizingInput
    growth: GrowthSettings = Field(default_factory=GrowthSettings)
    provider: Optional[str] = Field(None, max_length=64)
    region: Optional[str] = Field(None, max_length=64)


class VMGrowthRequest(BaseModel):
    """Request body for /v1/growth/vm."""
    sizing: VMSizingInput
    growth: GrowthSettings = Field(default_factory=GrowthSettings)
    provider: Optional[str] = Field(None, max_length=64)
    region: Optional[str] = Field(None, max_length=64)
