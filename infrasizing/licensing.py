"""Distribution licensing providers and the registry that resolves aliases and memoises them."""
import logging
import threading
from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict

from infrasizing.errors import UnsupportedDistribution
from infrasizing.models import LicensingCost, LicensingInput, SupportTier, SupportTierInfo

_LOG = logging.getLogger(__name__)

HOURS_PER_YEAR = 8760

PricingModel = Literal[
    "open_source",
    "per_node",
    "per_core",
    "managed_openshift",
    "managed_control_plane",
    "support_only",
]


def multi_year_discount(years: int) -> float:
    """1y 0%, 2y 5%, 3y 10%, 4y+ 15%."""
    if years >= 4:
        return 0.15
    return {2: 0.05, 3: 0.10}.get(years, 0.0)


def _tier(tier: SupportTier, name: str, hours: str, sla: str, mult: float = 1.0, extra: float = 0) -> SupportTierInfo:
    return SupportTierInfo(
        tier=tier, name=name, hours=hours, response_sla=sla, cost_multiplier=mult, additional_annual_cost=extra
    )


_COMMUNITY_ONLY = (_tier(SupportTier.COMMUNITY, "Community", "Community forums", "Best effort", 0),)


class LicensingProvider(BaseModel):
    """Licensing terms for one distribution. Immutable; cost dispatch is on `pricing_model`."""

    model_config = ConfigDict(frozen=True)

    distribution: str
    display_name: str
    vendor: str
    requires_license: bool
    pricing_model: PricingModel
    per_node_year: float = 0
    per_core_year: float = 0
    min_cores: int = 0
    control_plane_per_hour: float = 0
    worker_fee_per_hour: float = 0
    support_tiers: tuple[SupportTierInfo, ...] = ()
    pricing_label: str = ""

    def license_cost_per_node_year(self) -> float:
        return self.per_node_year

    def license_cost_per_core_year(self) -> float:
        return self.per_core_year

    def get_support_tiers(self) -> list[SupportTierInfo]:
        return list(self.support_tiers)

    def cluster_fixed_cost_per_year(self) -> float:
        """Flat per-cluster fee, e.g. a billed managed control plane."""
        return self.control_plane_per_hour * HOURS_PER_YEAR

    def support_tier(self, tier: SupportTier) -> SupportTierInfo | None:
        for t in self.support_tiers:
            if t.tier == tier:
                return t
        return None

    def calculate_licensing_cost(self, licensing_input: LicensingInput) -> LicensingCost:
        return _CALCULATORS[self.pricing_model](self, licensing_input)


def _cost(
    provider: LicensingProvider,
    inp: LicensingInput,
    base: float = 0,
    support: float = 0,
    fees: float = 0,
    label: str = "",
    notes: list[str] | None = None,
) -> LicensingCost:
    total = base + support + fees
    return LicensingCost(
        distribution=provider.distribution,
        display_name=provider.display_name,
        base_license_per_year=round(base, 2),
        per_node_per_year=round(total / max(inp.node_count, 1), 2),
        support_cost_per_year=round(support, 2),
        additional_fees_per_year=round(fees, 2),
        total_per_year=round(total, 2),
        licensing_model=label or provider.pricing_label,
        notes=notes or [],
    )


def _no_license(p: LicensingProvider, inp: LicensingInput) -> LicensingCost:
    return _cost(p, inp, label="Open Source - No License Required")


def _subscription(p: LicensingProvider, inp: LicensingInput) -> LicensingCost:
    """
    base = nodes * per_node (or max(cores, min_cores) * per_core) + cluster fixed cost
    base *= 1 - multi_year_discount(years)
    support = base * (tier multiplier - 1) + tier additional cost
    """
    if not p.requires_license:
        return _no_license(p, inp)
    if p.pricing_model == "per_core":
        base = max(inp.total_cores, p.min_cores) * p.per_core_year
    else:
        base = inp.node_count * p.per_node_year
    base += p.cluster_fixed_cost_per_year()
    discount = multi_year_discount(inp.years)
    base *= 1 - discount
    notes = []
    if discount:
        notes.append(f"{inp.years}-year term: {discount * 100:.0f}% discount applied")
    if p.pricing_model == "per_core" and inp.total_cores < p.min_cores:
        notes.append(f"Minimum of {p.min_cores} cores billed")
    tier = p.support_tier(inp.support_tier)
    if tier is None:
        notes.append(f"Support tier '{inp.support_tier.value}' not offered; list price applied")
        support = 0.0
    else:
        support = base * (tier.cost_multiplier - 1) + tier.additional_annual_cost
    return _cost(p, inp, base=base, support=support, notes=notes)


def _managed_openshift(p: LicensingProvider, inp: LicensingInput) -> LicensingCost:
    """Worker fees only; subscription, support and control plane are part of the service fee."""
    fees = inp.workers * p.worker_fee_per_hour * HOURS_PER_YEAR
    return _cost(p, inp, base=fees)


def _managed_control_plane(p: LicensingProvider, inp: LicensingInput) -> LicensingCost:
    return _cost(p, inp, fees=p.cluster_fixed_cost_per_year())


def _support_only(p: LicensingProvider, inp: LicensingInput) -> LicensingCost:
    tier = p.support_tier(inp.support_tier)
    return _cost(p, inp, support=tier.additional_annual_cost if tier else 0.0)


_CALCULATORS: dict[str, Callable[[LicensingProvider, LicensingInput], LicensingCost]] = {
    "open_source": _subscription,
    "per_node": _subscription,
    "per_core": _subscription,
    "managed_openshift": _managed_openshift,
    "managed_control_plane": _managed_control_plane,
    "support_only": _support_only,
}


# --- Provider definitions ---


def openshift() -> LicensingProvider:
    return LicensingProvider(
        distribution="openshift",
        display_name="OpenShift Container Platform",
        vendor="Red Hat",
        requires_license=True,
        pricing_model="per_node",
        per_node_year=2500,
        per_core_year=200,
        support_tiers=(
            _tier(SupportTier.STANDARD, "Standard", "Business hours (Mon-Fri)", "4 business hours (Sev 1)", 1.0),
            _tier(SupportTier.PREMIUM, "Premium", "24x7x365", "1 hour (Sev 1)", 1.3),
            _tier(
                SupportTier.ENTERPRISE, "Premium Plus (TAM)", "24x7x365 + Dedicated TAM", "30 minutes (Sev 1)",
                1.5, 50000,
            ),
        ),
        pricing_label="Per-node: $2,500/node/year",
    )


# key -> (variant name, hosting vendor, worker fee per hour)
MANAGED_OPENSHIFT = {
    "openshift-rosa": ("ROSA", "AWS", 0.171),
    "openshift-aro": ("ARO", "Microsoft Azure", 0.21),
    "openshift-dedicated": ("Dedicated", "Google Cloud", 0.166),
    "openshift-ibm": ("ROKS", "IBM Cloud", 0.20),
}


def managed_openshift(key: str) -> LicensingProvider:
    variant, host, fee = MANAGED_OPENSHIFT[key]
    return openshift().model_copy(update={
        "distribution": key,
        "display_name": f"OpenShift ({variant})",
        "vendor": f"Red Hat / {host}",
        "pricing_model": "managed_openshift",
        "worker_fee_per_hour": fee,
        "pricing_label": f"Managed OpenShift: ${fee:.3f}/worker/hour",
    })


_RANCHER_TIERS = (
    _tier(SupportTier.STANDARD, "Standard", "12x5 (business hours)", "4 business hours (Sev 1)", 1.0),
    _tier(SupportTier.PREMIUM, "Priority", "24x7", "1 hour (Sev 1)", 1.4),
    _tier(SupportTier.ENTERPRISE, "Premium", "24x7 + Dedicated SE", "15 minutes (Sev 1)", 1.8, 25000),
)


def rancher(edition: str = "prime") -> LicensingProvider:
    price = {"community": 0, "prime": 1000, "government": 1500}[edition]
    community = edition == "community"
    return LicensingProvider(
        distribution="rancher" if edition == "prime" else f"rancher-{edition}",
        display_name="Rancher (Community)" if community else f"SUSE Rancher ({edition.title()})",
        vendor="SUSE",
        requires_license=not community,
        pricing_model="open_source" if community else "per_node",
        per_node_year=price,
        support_tiers=_COMMUNITY_ONLY if community else _RANCHER_TIERS,
        pricing_label=f"Per-node: ${price:,.0f}/node/year",
    )


def rke2(edition: str = "community") -> LicensingProvider:
    price = {"community": 0, "prime": 750, "government": 1200}[edition]
    names = {"community": "RKE2", "prime": "RKE2 (SUSE Rancher Prime)", "government": "RKE2 (SUSE Rancher Government)"}
    return LicensingProvider(
        distribution="rke2" if edition == "community" else f"rke2-{edition}",
        display_name=names[edition],
        vendor="SUSE",
        requires_license=False,
        pricing_model="open_source",
        per_node_year=price,
        support_tiers=_COMMUNITY_ONLY if edition == "community" else _RANCHER_TIERS,
    )


def k3s(with_support: bool = False) -> LicensingProvider:
    return LicensingProvider(
        distribution="k3s-prime" if with_support else "k3s",
        display_name="K3s (SUSE Rancher Prime)" if with_support else "K3s",
        vendor="SUSE",
        requires_license=False,
        pricing_model="open_source",
        per_node_year=500 if with_support else 0,
        support_tiers=(
            _COMMUNITY_ONLY[0],
            _tier(SupportTier.STANDARD, "SUSE Rancher Prime", "12x5", "4 business hours", 1.0, 500),
            _tier(SupportTier.PREMIUM, "SUSE Rancher Priority", "24x7", "1 hour", 1.4, 700),
        ),
    )


def microk8s(with_ubuntu_pro: bool = False) -> LicensingProvider:
    return LicensingProvider(
        distribution="microk8s-pro" if with_ubuntu_pro else "microk8s",
        display_name="MicroK8s (Ubuntu Pro)" if with_ubuntu_pro else "MicroK8s",
        vendor="Canonical",
        requires_license=False,
        pricing_model="open_source",
        per_node_year=225 if with_ubuntu_pro else 0,
        support_tiers=(
            _COMMUNITY_ONLY[0],
            _tier(SupportTier.STANDARD, "Ubuntu Pro (Device)", "10x5", "4 business hours", 1.0, 225),
            _tier(SupportTier.PREMIUM, "Ubuntu Pro + Support", "24x7", "1 hour", 1.0, 500),
        ),
    )


def charmed(edition: str = "pro") -> LicensingProvider:
    price = {"free": 0, "pro": 500, "pro-support": 1500}[edition]
    free = edition == "free"
    return LicensingProvider(
        distribution="charmed" if edition == "pro" else f"charmed-{edition}",
        display_name="Charmed Kubernetes (Free)" if free else f"Charmed Kubernetes ({edition.title()})",
        vendor="Canonical",
        requires_license=not free,
        pricing_model="open_source" if free else "per_node",
        per_node_year=price,
        support_tiers=_COMMUNITY_ONLY if free else (
            _tier(SupportTier.STANDARD, "Ubuntu Pro", "10x5", "4 business hours", 1.0),
            _tier(SupportTier.PREMIUM, "Ubuntu Pro + 24x7", "24x7", "1 hour (Sev 1)", 2.0),
            _tier(SupportTier.ENTERPRISE, "Ubuntu Pro + TAM", "24x7 + Dedicated TAM", "15 minutes (Sev 1)", 2.5, 40000),
        ),
        pricing_label=f"Per-node: ${price:,.0f}/node/year",
    )


def tanzu(edition: str = "standard") -> LicensingProvider:
    per_core = {"standard": 1500, "advanced": 2000, "enterprise": 2500}[edition]
    return LicensingProvider(
        distribution="tanzu" if edition == "standard" else f"tanzu-{edition}",
        display_name=f"VMware Tanzu ({edition.title()})",
        vendor="Broadcom",
        requires_license=True,
        pricing_model="per_core",
        per_core_year=per_core,
        per_node_year=per_core * 8,
        min_cores=16,
        support_tiers=(
            _tier(SupportTier.BASIC, "Production", "12x5", "4 business hours", 1.0),
            _tier(SupportTier.PREMIUM, "Premier", "24x7", "30 minutes (Sev 1)", 1.25),
            _tier(SupportTier.ENTERPRISE, "Premier + TAM", "24x7 + Dedicated TAM", "15 minutes (Sev 1)", 1.5, 75000),
        ),
        pricing_label=f"Per-core ({edition.title()}): ${per_core:,.0f}/core/year",
    )


def kubernetes() -> LicensingProvider:
    return LicensingProvider(
        distribution="kubernetes",
        display_name="Kubernetes (Vanilla)",
        vendor="CNCF",
        requires_license=False,
        pricing_model="support_only",
        support_tiers=(
            _tier(SupportTier.COMMUNITY, "Community", "Kubernetes Slack, GitHub", "Best effort", 0),
            _tier(SupportTier.BASIC, "Third-Party Basic", "Business hours", "4 business hours", 1.0, 2000),
            _tier(SupportTier.PREMIUM, "Third-Party Premium", "24x7", "1 hour", 1.0, 10000),
        ),
        pricing_label="Open Source - CNCF Apache 2.0",
    )


# key -> (display name, vendor, control plane $/hour)
MANAGED_K8S = {
    "eks": ("Amazon EKS", "Amazon Web Services", 0.10),
    "aks": ("Azure AKS", "Microsoft", 0.0),
    "gke": ("Google GKE", "Google Cloud", 0.10),
    "oke": ("Oracle OKE", "Oracle", 0.0),
    "iks": ("IBM IKS", "IBM", 0.0),
    "ack": ("Alibaba ACK", "Alibaba Cloud", 0.0),
    "tke": ("Tencent TKE", "Tencent Cloud", 0.0),
    "cce": ("Huawei CCE", "Huawei Cloud", 0.0),
    "doks": ("DigitalOcean DOKS", "DigitalOcean", 0.0),
    "lke": ("Linode LKE", "Akamai (Linode)", 0.0),
    "vke": ("Vultr VKE", "Vultr", 0.0),
    "hetzner": ("Hetzner K8s", "Hetzner", 0.0),
    "ovh": ("OVH Kubernetes", "OVHcloud", 0.0),
    "scaleway": ("Scaleway Kapsule", "Scaleway", 0.0),
    "civo": ("Civo K3s", "Civo", 0.0),
    "exoscale": ("Exoscale SKS", "Exoscale", 0.0),
}

_CLOUD_SUPPORT = (
    _tier(SupportTier.BASIC, "Cloud Provider Basic", "Online resources, forums", "Best effort", 0),
    _tier(SupportTier.STANDARD, "Cloud Provider Business", "24x7", "1 hour (critical)", 1.0),
    _tier(SupportTier.ENTERPRISE, "Cloud Provider Enterprise", "24x7 + TAM", "15 minutes (critical)", 1.0),
)


def managed_k8s(key: str) -> LicensingProvider:
    name, vendor, hourly = MANAGED_K8S[key]
    return LicensingProvider(
        distribution=key,
        display_name=name,
        vendor=vendor,
        requires_license=False,
        pricing_model="managed_control_plane",
        control_plane_per_hour=hourly,
        support_tiers=_CLOUD_SUPPORT,
        pricing_label=f"Managed K8s - Control plane: ${hourly:.2f}/hour",
    )


def _default_factories() -> dict[str, Callable[[], LicensingProvider]]:
    factories: dict[str, Callable[[], LicensingProvider]] = {
        "openshift": openshift,
        "kubernetes": kubernetes,
        "rancher": rancher,
        "rancher-community": lambda: rancher("community"),
        "rancher-government": lambda: rancher("government"),
        "rke2": rke2,
        "rke2-prime": lambda: rke2("prime"),
        "rke2-government": lambda: rke2("government"),
        "k3s": k3s,
        "k3s-prime": lambda: k3s(True),
        "microk8s": microk8s,
        "microk8s-pro": lambda: microk8s(True),
        "charmed": charmed,
        "charmed-free": lambda: charmed("free"),
        "charmed-pro-support": lambda: charmed("pro-support"),
        "tanzu": tanzu,
        "tanzu-advanced": lambda: tanzu("advanced"),
        "tanzu-enterprise": lambda: tanzu("enterprise"),
    }
    for key in MANAGED_OPENSHIFT:
        factories[key] = lambda key=key: managed_openshift(key)
    for key in MANAGED_K8S:
        factories[key] = lambda key=key: managed_k8s(key)
    return factories


# alias -> (canonical key, hosting vendor tag or None)
ALIASES: dict[str, tuple[str, str | None]] = {
    "rosa": ("openshift-rosa", None),
    "aro": ("openshift-aro", None),
    "osd": ("openshift-dedicated", None),
    "roks": ("openshift-ibm", None),
    "rancher-hosted": ("rancher", "Rancher Hosted"),
    "rancher-eks": ("rancher", "AWS"),
    "rancher-aks": ("rancher", "Azure"),
    "rancher-gke": ("rancher", "GCP"),
    "tanzu-cloud": ("tanzu", "Tanzu Cloud"),
    "tanzu-aws": ("tanzu", "AWS"),
    "tanzu-azure": ("tanzu", "Azure"),
    "tanzu-gcp": ("tanzu", "GCP"),
}
for _base in ("charmed", "microk8s", "k3s", "rke2"):
    for _cloud, _label in (("aws", "AWS"), ("azure", "Azure"), ("gcp", "GCP")):
        ALIASES[f"{_base}-{_cloud}"] = (_base, _label)


class LicensingProviderRegistry:
    """
    Resolves a distribution key (or alias) to its licensing provider.
    Providers are built once per key; concurrent first lookups get the same instance.
    """

    def __init__(
        self,
        factories: dict[str, Callable[[], LicensingProvider]] | None = None,
        aliases: dict[str, tuple[str, str | None]] | None = None,
    ):
        self._factories = factories if factories is not None else _default_factories()
        self._aliases = aliases if aliases is not None else dict(ALIASES)
        self._cache: dict[str, LicensingProvider] = {}
        self._lock = threading.Lock()

    def resolve(self, distribution: str) -> tuple[str, str | None]:
        """(canonical key, hosting tag). Raises UnsupportedDistribution."""
        key = (distribution or "").strip().lower()
        canonical, host = self._aliases.get(key, (key, None))
        if canonical not in self._factories:
            raise UnsupportedDistribution(distribution)
        return canonical, host

    def is_supported(self, distribution: str) -> bool:
        try:
            self.resolve(distribution)
        except UnsupportedDistribution:
            return False
        return True

    def distributions(self) -> list[str]:
        return sorted(set(self._factories) | set(self._aliases))

    def get(self, distribution: str) -> LicensingProvider:
        key = (distribution or "").strip().lower()
        provider = self._cache.get(key)
        if provider is not None:
            return provider
        canonical, host = self.resolve(key)
        with self._lock:
            provider = self._cache.get(key)
            if provider is None:
                provider = self._factories[canonical]()
                if host:
                    provider = provider.model_copy(update={
                        "distribution": key,
                        "display_name": f"{provider.display_name} on {host}",
                    })
                self._cache[key] = provider
                _LOG.info("licensing provider created", extra={"distribution": key, "canonical": canonical})
        return provider

    def calculate_licensing_cost(self, distribution: str, licensing_input: LicensingInput) -> LicensingCost:
        return self.get(distribution).calculate_licensing_cost(licensing_input)
