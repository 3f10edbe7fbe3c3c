"""Pytest fixtures for infrasizing tests."""
import os

import pytest

# Read at import time by infrasizing.security; keep the suite clear of 429s
os.environ.setdefault("INFRASIZE_RATE_LIMIT_REQUESTS", "100000")

from infrasizing.resilience import clear_cache  # noqa: E402
from infrasizing.security import reset_rate_limits  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Calculator overrides from the developer's shell must not leak into tests."""
    for name in list(os.environ):
        if name.startswith("INFRASIZE_") and name != "INFRASIZE_RATE_LIMIT_REQUESTS":
            monkeypatch.delenv(name, raising=False)
    clear_cache()
    reset_rate_limits()
    yield
