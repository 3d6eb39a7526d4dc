"""Telemetry helpers and metrics."""

from .metrics import (
    ADAPTER_FALLBACKS,
    COMMAND_REJECTIONS,
    ERROR_COUNTER,
    FINALIZATIONS,
    PARTIAL_EVENTS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SESSION_TRANSITIONS,
    TRANSCRIPTION_LATENCY,
    observe_request,
    observe_transition,
    record_fallback,
    record_finalization,
    record_partial,
    record_rejection,
)

__all__ = [
    "ADAPTER_FALLBACKS",
    "COMMAND_REJECTIONS",
    "ERROR_COUNTER",
    "FINALIZATIONS",
    "PARTIAL_EVENTS",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SESSION_TRANSITIONS",
    "TRANSCRIPTION_LATENCY",
    "observe_request",
    "observe_transition",
    "record_fallback",
    "record_finalization",
    "record_partial",
    "record_rejection",
]
