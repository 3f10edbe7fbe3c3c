"""Load technology, distribution and cloud-pricing catalogs from JSON. Regional pricing supported."""
import json
import logging
from pathlib import Path
from typing import Any

from infrasizing.errors import UnsupportedDistribution, UnsupportedTechnology
from infrasizing.models import DistributionProfile, TechnologyProfile

_LOG = logging.getLogger(__name__)

_CATALOG_DIR = Path(__file__).resolve().parent
_PRICING_DIR = _CATALOG_DIR / "pricing"
_PROVIDERS_CACHE: dict[str, dict] = {}
_TECHNOLOGIES: dict[str, TechnologyProfile] = {}
_DISTRIBUTIONS: dict[str, DistributionProfile] = {}


def _read_json(path: Path) -> dict:
    with open(path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError:
            _LOG.error("Catalog file is not valid JSON: %s", path)
            raise


def _normalise_key(key: str) -> str:
    return (key or "").strip().lower()


def _technologies() -> dict[str, TechnologyProfile]:
    if not _TECHNOLOGIES:
        data = _read_json(_CATALOG_DIR / "technologies.json")
        loaded = {}
        for t in data.get("technologies") or []:
            profile = TechnologyProfile.model_validate(t)
            loaded[profile.key] = profile
        _TECHNOLOGIES.update(loaded)
    return _TECHNOLOGIES


def _distributions() -> dict[str, DistributionProfile]:
    if not _DISTRIBUTIONS:
        data = _read_json(_CATALOG_DIR / "distributions.json")
        profiles = data.get("node_profiles") or {}
        loaded = {}
        for d in data.get("distributions") or []:
            record = dict(d)
            record.update(profiles[record.pop("nodes")])
            profile = DistributionProfile.model_validate(record)
            loaded[profile.key] = profile
        _DISTRIBUTIONS.update(loaded)
    return _DISTRIBUTIONS


def get_technologies() -> list[TechnologyProfile]:
    """All technologies in catalog order."""
    return list(_technologies().values())


def get_technology(key: str) -> TechnologyProfile:
    """Technology by key. Raises UnsupportedTechnology."""
    t = _technologies().get(_normalise_key(key))
    if t is None:
        raise UnsupportedTechnology(key)
    return t


def get_distributions() -> list[DistributionProfile]:
    return list(_distributions().values())


def get_distribution(key: str) -> DistributionProfile:
    """Distribution node specs by key. Raises UnsupportedDistribution."""
    d = _distributions().get(_normalise_key(key))
    if d is None:
        raise UnsupportedDistribution(key)
    return d


def _load_provider(provider_id: str) -> dict | None:
    if provider_id in _PROVIDERS_CACHE:
        return _PROVIDERS_CACHE[provider_id]
    if not provider_id or not provider_id.replace("-", "").isalnum():
        return None
    path = _PRICING_DIR / f"{provider_id}.json"
    if not path.is_file():
        return None
    data = _read_json(path)
    data["id"] = data.get("id", provider_id)
    _PROVIDERS_CACHE[provider_id] = data
    return data


def _all_provider_ids() -> list[str]:
    return sorted(p.stem for p in _PRICING_DIR.iterdir() if p.suffix == ".json")


def load_provider(provider_id: str) -> dict | None:
    """Raw pricing record for a cloud provider, or None if there is no catalog file."""
    return _load_provider(_normalise_key(provider_id))


def get_providers() -> list[dict[str, Any]]:
    """Return list of { id, name } for all providers with pricing files."""
    result = []
    for pid in _all_provider_ids():
        p = _load_provider(pid)
        if p:
            result.append({"id": p["id"], "name": p.get("name", pid.upper())})
    return result


def get_regions(cloud: str) -> list[dict[str, Any]]:
    """Return list of { id, name } for the given cloud. Empty if no catalog."""
    p = load_provider(cloud)
    if not p:
        return []
    regions = p.get("regions") or []
    return [{"id": r.get("id", ""), "name": r.get("name", r.get("id", ""))} for r in regions]


def region_multiplier(provider: dict, region_id: str) -> float | None:
    """Regional price multiplier, or None if the region is not in the catalog."""
    for r in provider.get("regions") or []:
        if r.get("id") == region_id:
            return float(r.get("multiplier", 1.0))
    return None


def get_instance_types(cloud: str, region: str | None = None) -> list[dict[str, Any]]:
    """
    Return instance types for cloud, with hourly_usd resolved for region.
    Each item: { id, cores, memory_gb, hourly_usd }.
    """
    p = load_provider(cloud)
    if not p:
        return []
    mult = region_multiplier(p, region or p.get("default_region", "")) or 1.0
    out = []
    for i in p.get("instance_types") or []:
        out.append({
            "id": i.get("id", ""),
            "cores": int(i.get("cores", 0)),
            "memory_gb": float(i.get("memory_gb", 0)),
            "hourly_usd": round(float(i.get("hourly_usd", 0)) * mult, 4),
        })
    return out
