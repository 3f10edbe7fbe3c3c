"""Calculation timeouts and a TTL response cache keyed by the canonical request."""
import hashlib
import json
import os
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError

_executor = ThreadPoolExecutor(
    max_workers=int(os.environ.get("INFRASIZE_WORKERS", "4")), thread_name_prefix="infrasizing"
)

_CALC_TIMEOUT_SEC = float(os.environ.get("INFRASIZE_CALC_TIMEOUT_SEC", "30"))
_CACHE_TTL_SEC = int(os.environ.get("INFRASIZE_CACHE_TTL_SEC", "300"))
_CACHE_MAX_SIZE = int(os.environ.get("INFRASIZE_CACHE_MAX", "500"))

# key -> (response dict, stored at)
_cache: "OrderedDict[str, tuple[dict, float]]" = OrderedDict()
_cache_lock = threading.Lock()


def run_sync_with_timeout(seconds: float, func, *args, **kwargs):
    """Run func on the worker pool. Raises TimeoutError after `seconds`."""
    future = _executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=seconds)
    except FuturesTimeoutError:
        future.cancel()
        raise TimeoutError(f"Calculation timed out after {seconds}s")


def cache_key(kind: str, request_dict: dict) -> str:
    canonical = json.dumps({"kind": kind, "request": request_dict}, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def get_cached(kind: str, request_dict: dict) -> dict | None:
    """Cached response for an identical request, or None if absent or expired."""
    if _CACHE_TTL_SEC <= 0:
        return None
    key = cache_key(kind, request_dict)
    with _cache_lock:
        entry = _cache.get(key)
        if entry is None:
            return None
        data, stored = entry
        if time.time() - stored > _CACHE_TTL_SEC:
            del _cache[key]
            return None
        return data


def set_cached(kind: str, request_dict: dict, response_dict: dict) -> None:
    """Store a response; oldest entries are evicted past INFRASIZE_CACHE_MAX."""
    if _CACHE_TTL_SEC <= 0:
        return
    key = cache_key(kind, request_dict)
    with _cache_lock:
        _cache[key] = (response_dict, time.time())
        _cache.move_to_end(key)
        while len(_cache) > _CACHE_MAX_SIZE:
            _cache.popitem(last=False)


def clear_cache() -> None:
    with _cache_lock:
        _cache.clear()


def get_calc_timeout_sec() -> float:
    return _CALC_TIMEOUT_SEC
