"""Request metrics middleware."""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from scribe.telemetry import observe_request

# Scrapes and probes would drown out the history endpoints.
_UNTRACKED_PATHS = frozenset({"/metrics", "/health"})


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Count and time REST requests for Prometheus."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in _UNTRACKED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:  # pragma: no cover - re-raised
            observe_request(request.method, self._route_label(request), 500, time.perf_counter() - start_time)
            raise

        observe_request(
            request.method,
            self._route_label(request),
            response.status_code,
            time.perf_counter() - start_time,
        )
        return response

    @staticmethod
    def _route_label(request: Request) -> str:
        """Route template such as ``/sessions/{session_id}``; raw path when unmatched."""

        route: Any = request.scope.get("route")
        path = getattr(route, "path", None)
        return path or request.url.path
