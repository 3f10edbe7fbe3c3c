"""Error types raised by the sizing engines, catalogs and registries."""


class SizingError(Exception):
    """Base class for all calculation errors."""


class InvalidInput(SizingError):
    """A value is outside its accepted range. Never clamped silently."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class UnsupportedKey(SizingError):
    """Lookup miss in a catalog or registry."""

    kind = "key"

    def __init__(self, key: str):
        super().__init__(f"Unsupported {self.kind}: {key!r}")
        self.key = key


class UnsupportedDistribution(UnsupportedKey):
    kind = "distribution"


class UnsupportedTechnology(UnsupportedKey):
    kind = "technology"


class UnsupportedProvider(UnsupportedKey):
    kind = "provider"


class ConfigurationInconsistency(SizingError):
    """Input is well-formed but internally inconsistent (e.g. enabled environment without config)."""
