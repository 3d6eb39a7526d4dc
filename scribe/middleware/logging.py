"""Per-request access logging for the REST surface."""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from scribe.config.settings import settings

logger = logging.getLogger("scribe.middleware.structured")

_RESET = "\u001b[0m"
_STATUS_COLORS = (
    (500, "\u001b[31m"),
    (400, "\u001b[33m"),
    (200, "\u001b[32m"),
    (0, "\u001b[36m"),
)


def _color_for(status_code: int) -> str:
    for floor, color in _STATUS_COLORS:
        if status_code >= floor:
            return color
    return _STATUS_COLORS[-1][1]


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one colored access line per request, optionally stored as a row."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        started = time.perf_counter()
        entry: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "user_agent": (request.headers.get("user-agent") or "")[:256] or None,
        }

        try:
            response = await call_next(request)
        except Exception:
            entry.update(status_code=500, duration_ms=_elapsed_ms(started))
            logger.exception(_format_line(entry))
            raise

        route = request.scope.get("route")
        entry.update(
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
            route=getattr(route, "path", None),
        )
        logger.info(_format_line(entry))
        if settings.persist_request_logs:
            await _persist(entry)
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _format_line(entry: dict[str, Any]) -> str:
    status_code = entry.get("status_code") or 0
    line = "{method} {path} -> {status} in {duration}ms from {client}".format(
        method=entry["method"],
        path=entry["path"],
        status=status_code,
        duration=entry.get("duration_ms", "-"),
        client=entry.get("client_ip") or "-",
    )
    return f"{_color_for(status_code)}{line}{_RESET}"


async def _persist(entry: dict[str, Any]) -> None:
    from scribe.database import session_scope
    from scribe.models.log import RequestLog

    try:
        async with session_scope() as session:
            session.add(RequestLog(**entry))
            await session.commit()
    except (SQLAlchemyError, OSError):
        logger.exception("Failed to persist request log for %s", entry["path"])


__all__ = ["StructuredLoggingMiddleware"]
