"""Request logging middleware and in-process counters behind /v1/metrics."""
import logging
import time
import uuid
from collections import defaultdict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_LOG = logging.getLogger(__name__)

# Reset on restart; one process only.
_requests_by_route: dict[tuple[str, str, int], int] = defaultdict(int)
_calculations: dict[tuple[str, str], int] = defaultdict(int)
_durations_sec: list[float] = []
_MAX_DURATION_SAMPLES = 1000
_started = time.time()


def record_calculation(kind: str, outcome: str = "ok") -> None:
    """Count one engine run, e.g. ("k8s", "ok") or ("vm", "cache_hit")."""
    _calculations[(kind, outcome)] += 1


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One structured log line per request; echoes or assigns X-Request-ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        _requests_by_route[(request.method, request.url.path, response.status_code)] += 1
        _durations_sec.append(elapsed)
        if len(_durations_sec) > _MAX_DURATION_SAMPLES:
            del _durations_sec[:-_MAX_DURATION_SAMPLES]
        _LOG.info(
            "request finished",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def get_metrics_text() -> str:
    """Prometheus text exposition for GET /v1/metrics."""
    lines = [
        "# HELP infrasizing_uptime_seconds Process uptime in seconds.",
        "# TYPE infrasizing_uptime_seconds gauge",
        f"infrasizing_uptime_seconds {time.time() - _started:.2f}",
        "# HELP infrasizing_http_requests_total HTTP requests by method, path and status.",
        "# TYPE infrasizing_http_requests_total counter",
    ]
    for (method, path, status), count in sorted(_requests_by_route.items()):
        lines.append(
            f'infrasizing_http_requests_total{{method="{method}",path="{_escape(path)}",status="{status}"}} {count}'
        )
    lines.extend([
        "# HELP infrasizing_calculations_total Engine runs by kind and outcome.",
        "# TYPE infrasizing_calculations_total counter",
    ])
    for (kind, outcome), count in sorted(_calculations.items()):
        lines.append(f'infrasizing_calculations_total{{kind="{kind}",outcome="{outcome}"}} {count}')
    if _durations_sec:
        lines.extend([
            "# HELP infrasizing_http_request_duration_seconds Mean duration of recent requests.",
            "# TYPE infrasizing_http_request_duration_seconds gauge",
            f"infrasizing_http_request_duration_seconds {sum(_durations_sec) / len(_durations_sec):.4f}",
        ])
    return "\n".join(lines) + "\n"
