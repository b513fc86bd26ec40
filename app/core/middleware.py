"""Request metrics and access logging"""
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger
from app.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

logger = get_logger()

UNTRACKED_PATHS = frozenset({'/metrics'})


def route_labels(request: Request) -> tuple[str, str]:
    """Forwarding mode and provider id recorded by the engine, if any"""
    return (
        getattr(request.state, 'mode', 'none'),
        getattr(request.state, 'provider', 'none'),
    )


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count, time and log every request except the metrics scrape itself

    Streaming responses are timed up to the moment headers are returned,
    not until the body finishes.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in UNTRACKED_PATHS:
            return await call_next(request)

        method = request.method
        started = time.perf_counter()
        ACTIVE_REQUESTS.labels(endpoint=path).inc()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"{method} {path} - unhandled {type(e).__name__}: {e}")
            raise
        finally:
            ACTIVE_REQUESTS.labels(endpoint=path).dec()

        elapsed = time.perf_counter() - started
        mode, provider = route_labels(request)
        REQUEST_COUNT.labels(
            method=method, endpoint=path, mode=mode, provider=provider, status_code=response.status_code
        ).inc()
        REQUEST_DURATION.labels(method=method, endpoint=path, mode=mode, provider=provider).observe(elapsed)

        logger.info(f"{method} {path} -> {response.status_code} [{mode}/{provider}] {elapsed:.3f}s")
        return response
