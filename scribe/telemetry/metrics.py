"""Prometheus metrics for the REST surface and the session pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "scribe_http_requests_total",
    "REST requests served, by route template",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "scribe_http_request_seconds",
    "REST request latency",
    ("method", "route"),
    buckets=(0.005, 0.025, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ERROR_COUNTER = Counter(
    "scribe_http_server_errors_total",
    "REST requests answered with a 5xx status",
    ("method", "route"),
)

SESSION_TRANSITIONS = Counter(
    "scribe_session_transitions_total",
    "Recording session state transitions",
    ("from_state", "to_state"),
)

ADAPTER_FALLBACKS = Counter(
    "scribe_adapter_fallbacks_total",
    "Adapter calls answered by the deterministic fallback",
    ("stage", "reason"),
)

FINALIZATIONS = Counter(
    "scribe_finalizations_total",
    "Finalization outcomes",
    ("outcome",),
)

PARTIAL_EVENTS = Counter(
    "scribe_partial_transcripts_total",
    "Partial transcript events emitted to clients",
)

COMMAND_REJECTIONS = Counter(
    "scribe_command_rejections_total",
    "Realtime commands rejected without a state change",
    ("code",),
)

TRANSCRIPTION_LATENCY = Histogram(
    "scribe_chunk_transcription_seconds",
    "Time spent transcribing one audio chunk",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 4.0, 8.0, 16.0),
)


def observe_request(method: str, route: str, status_code: int, duration_seconds: float) -> None:
    labels = {"method": method or "UNKNOWN", "route": route or "unknown"}
    REQUEST_COUNT.labels(status=str(status_code), **labels).inc()
    REQUEST_LATENCY.labels(**labels).observe(max(duration_seconds, 0.0))
    if status_code >= 500:
        ERROR_COUNTER.labels(**labels).inc()


def observe_transition(from_state: str, to_state: str) -> None:
    """Count one session state transition."""

    SESSION_TRANSITIONS.labels(from_state=from_state, to_state=to_state).inc()


def record_fallback(stage: str, reason: str) -> None:
    """Count a fallback activation (``reason`` is ``unavailable``, ``timeout`` or ``error``)."""

    ADAPTER_FALLBACKS.labels(stage=stage, reason=reason).inc()


def record_finalization(outcome: str) -> None:
    FINALIZATIONS.labels(outcome=outcome).inc()


def record_partial(latency_seconds: float) -> None:
    PARTIAL_EVENTS.inc()
    TRANSCRIPTION_LATENCY.observe(max(latency_seconds, 0.0))


def record_rejection(code: str) -> None:
    COMMAND_REJECTIONS.labels(code=code).inc()
