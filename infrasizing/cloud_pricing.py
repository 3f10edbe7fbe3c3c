"""Cloud pricing registry: per-provider rate cards resolved for a region, managed OpenShift aliases."""
import logging
import threading

from infrasizing.catalog import loader
from infrasizing.errors import InvalidInput, UnsupportedProvider
from infrasizing.licensing import MANAGED_OPENSHIFT
from infrasizing.models import (
    CloudPricing,
    ComputePricing,
    LicensePricing,
    NetworkPricing,
    StoragePricing,
)

_LOG = logging.getLogger(__name__)

# managed OpenShift offering -> (hosting cloud, licensing distribution)
_OPENSHIFT_OFFERINGS = {
    "rosa": ("aws", "openshift-rosa"),
    "aro": ("azure", "openshift-aro"),
    "osd": ("gcp", "openshift-dedicated"),
    "roks": ("ibm", "openshift-ibm"),
}

# offering -> (hosting cloud, service fee per worker hour); fees come from the licensing table
MANAGED_OPENSHIFT_PROVIDERS = {
    offering: (cloud, MANAGED_OPENSHIFT[distribution][2])
    for offering, (cloud, distribution) in _OPENSHIFT_OFFERINGS.items()
}


def _scaled(values: dict, mult: float, keys: tuple[str, ...]) -> dict:
    return {k: (float(v) * mult if k in keys else float(v)) for k, v in values.items()}


def build_pricing(provider_id: str, raw: dict, region: str | None = None) -> CloudPricing:
    """
    Resolve a raw provider record for one region.
    cpu, ram and instance prices scale with the region; storage only when the provider prices
    storage regionally. Network and managed-service fees are flat.
    """
    region_id = region or raw.get("default_region", "")
    mult = loader.region_multiplier(raw, region_id)
    if mult is None:
        raise InvalidInput(f"Unknown region {region_id!r} for provider {provider_id}", field="region")
    region_name = next(r.get("name", region_id) for r in raw["regions"] if r.get("id") == region_id)

    compute = _scaled(raw.get("compute") or {}, mult, ("cpu_per_hour", "ram_gb_per_hour"))
    compute["instance_type_prices"] = {
        i["id"]: round(float(i.get("hourly_usd", 0)) * mult, 4) for i in raw.get("instance_types") or []
    }
    storage_mult = mult if raw.get("regional_storage") else 1.0
    storage = _scaled(raw.get("storage") or {}, storage_mult, tuple(raw.get("storage") or {}))

    return CloudPricing(
        provider=provider_id,
        region=region_id,
        region_name=region_name,
        currency=raw.get("currency", "USD"),
        source=f"Default ({raw.get('name', provider_id.upper())} Public Pricing)",
        compute=ComputePricing.model_validate(compute),
        storage=StoragePricing.model_validate(storage),
        network=NetworkPricing.model_validate(raw.get("network") or {}),
    )


class CloudPricingRegistry:
    """
    Resolves (provider, region) to a CloudPricing. Results are built once per pair under a lock.
    Managed OpenShift keys (rosa, aro, osd, roks) reuse their hosting cloud's rates, carry the
    per-worker service fee and no separate subscription prices.
    """

    def __init__(self):
        self._cache: dict[tuple[str, str | None], CloudPricing] = {}
        self._lock = threading.Lock()

    def providers(self) -> list[dict]:
        out = loader.get_providers()
        for alias, (cloud, _) in MANAGED_OPENSHIFT_PROVIDERS.items():
            if loader.load_provider(cloud):
                out.append({"id": alias, "name": f"{alias.upper()} (Managed OpenShift on {cloud.upper()})"})
        return out

    def is_supported(self, provider: str) -> bool:
        key = (provider or "").strip().lower()
        cloud = MANAGED_OPENSHIFT_PROVIDERS.get(key, (key, 0))[0]
        return loader.load_provider(cloud) is not None

    def regions(self, provider: str) -> list[dict]:
        """{ id, name } per region. Raises UnsupportedProvider."""
        if not self.is_supported(provider):
            raise UnsupportedProvider(provider)
        key = provider.strip().lower()
        return loader.get_regions(MANAGED_OPENSHIFT_PROVIDERS.get(key, (key, 0))[0])

    def get_pricing(self, provider: str, region: str | None = None) -> CloudPricing:
        """Raises UnsupportedProvider for an unknown provider, InvalidInput for an unknown region."""
        key = (provider or "").strip().lower()
        cached = self._cache.get((key, region))
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get((key, region))
            if cached is None:
                cached = self._build(key, region)
                self._cache[(key, region)] = cached
                _LOG.info("cloud pricing loaded", extra={"provider": key, "region": cached.region})
        return cached

    def _build(self, key: str, region: str | None) -> CloudPricing:
        if key in MANAGED_OPENSHIFT_PROVIDERS:
            cloud, fee = MANAGED_OPENSHIFT_PROVIDERS[key]
        else:
            cloud, fee = key, None
        raw = loader.load_provider(cloud)
        if raw is None:
            raise UnsupportedProvider(key)
        pricing = build_pricing(cloud, raw, region)
        if fee is None:
            return pricing
        compute = pricing.compute.model_copy(update={"openshift_service_fee_per_worker_hour": fee})
        return pricing.model_copy(update={
            "provider": key,
            "compute": compute,
            "licenses": LicensePricing(
                openshift_per_node_year=0,
                rancher_enterprise_per_node_year=0,
                tanzu_per_core_year=0,
                charmed_per_node_year=0,
            ),
        })
