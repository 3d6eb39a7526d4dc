"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from .config.settings import settings
from .controllers import realtime, sessions
from .database import dispose_engine, init_models
from .middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from .pipelines.session import get_runtime
from .services.llm_client import reset_text_generator

logger = logging.getLogger(__name__)


_LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "sqlalchemy.engine", "amazon_transcribe")


def _rotating_handler(path: str, *, max_bytes: int, fmt: str) -> RotatingFileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _dedicated_logger(name: str, *handlers: logging.Handler, propagate: bool = True) -> None:
    target = logging.getLogger(name)
    target.handlers.clear()
    for handler in handlers:
        target.addHandler(handler)
    target.setLevel(logging.INFO)
    target.propagate = propagate


def _configure_logging() -> None:
    """Root logs go to stdout and the app log.

    Access lines stay on stdout only. The session pipeline and the transcript
    log also get their own rotating files.
    """

    root = logging.getLogger()
    root.handlers.clear()
    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(logging.Formatter(_LINE_FORMAT))
    root.addHandler(stdout)
    root.addHandler(_rotating_handler(settings.log_file, max_bytes=1_000_000, fmt=_LINE_FORMAT))
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    access = logging.StreamHandler(sys.stdout)
    access.setFormatter(logging.Formatter("%(message)s"))
    _dedicated_logger("scribe.middleware.structured", access, propagate=False)

    short_format = "%(asctime)s | %(levelname)s | %(message)s"
    _dedicated_logger(
        "scribe.pipelines.session",
        _rotating_handler(settings.session_log_file, max_bytes=500_000, fmt=short_format),
    )
    _dedicated_logger(
        "scribe.logs.transcript",
        _rotating_handler(settings.transcript_log_file, max_bytes=500_000, fmt=short_format),
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Realtime recording, transcription and summarization backend",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(realtime.router)
    app.include_router(sessions.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""

        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        try:
            await init_models()
        except (SQLAlchemyError, OSError) as exc:
            # Sessions still run without the database; persistence failures surface per session.
            logger.error("Database initialisation failed: %s", exc)
        get_runtime().sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await get_runtime().sweeper.stop()
        reset_text_generator()
        await dispose_engine()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "scribe.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
