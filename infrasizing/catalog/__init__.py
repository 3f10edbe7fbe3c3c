"""Technology, distribution and cloud-pricing catalogs (JSON files in this directory)."""
from infrasizing.catalog.loader import (
    get_technologies,
    get_technology,
    get_distributions,
    get_distribution,
    get_providers,
    get_regions,
    get_instance_types,
)

__all__ = [
    "get_technologies",
    "get_technology",
    "get_distributions",
    "get_distribution",
    "get_providers",
    "get_regions",
    "get_instance_types",
]
