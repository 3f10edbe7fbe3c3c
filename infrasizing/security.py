"""Per-client rate limiting for the /v1 API."""
import logging
import os
import threading
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

_RATE_LIMIT_REQUESTS = int(os.environ.get("INFRASIZE_RATE_LIMIT_REQUESTS", "120"))
_RATE_LIMIT_WINDOW_SEC = int(os.environ.get("INFRASIZE_RATE_LIMIT_WINDOW_SEC", "60"))
# Only honour X-Forwarded-For when running behind a proxy that sets it
_TRUST_FORWARDED_FOR = os.environ.get("INFRASIZE_TRUST_FORWARDED_FOR", "").strip() == "1"
_EXEMPT_PATHS = {"/v1/health", "/v1/metrics"}

# client -> (requests in window, window start)
_windows: dict[str, tuple[int, float]] = {}
_lock = threading.Lock()
_last_sweep = 0.0


def _client_id(request: Request) -> str:
    if _TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return (request.scope.get("client") and request.scope["client"][0]) or "unknown"


def _sweep(now: float) -> None:
    """Drop windows that have expired. Caller holds the lock."""
    global _last_sweep
    if now - _last_sweep < _RATE_LIMIT_WINDOW_SEC:
        return
    expired = [c for c, (_, start) in _windows.items() if now - start >= _RATE_LIMIT_WINDOW_SEC]
    for client in expired:
        del _windows[client]
    _last_sweep = now


def _allow(client: str, now: float) -> bool:
    with _lock:
        _sweep(now)
        count, start = _windows.get(client, (0, 0.0))
        if now - start >= _RATE_LIMIT_WINDOW_SEC:
            _windows[client] = (1, now)
            return True
        if count >= _RATE_LIMIT_REQUESTS:
            return False
        _windows[client] = (count + 1, start)
        return True


def tracked_clients() -> int:
    with _lock:
        return len(_windows)


def reset_rate_limits() -> None:
    global _last_sweep
    with _lock:
        _windows.clear()
        _last_sweep = 0.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed window per client. In memory, so limits are per process."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if path.startswith("/v1/") and path not in _EXEMPT_PATHS:
            client = _client_id(request)
            if not _allow(client, time.time()):
                logger.warning("rate limit exceeded", extra={"client": client, "path": path})
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Too many requests. Try again later."},
                    headers={"Retry-After": str(_RATE_LIMIT_WINDOW_SEC)},
                )
        return await call_next(request)
