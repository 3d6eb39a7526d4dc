"""Transition table for the recording session lifecycle.

``start`` materialises a session directly in ``recording``; every other
command is looked up here before any side effect runs, so a rejected
command leaves the session untouched.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Final

from scribe.telemetry import observe_transition

from .types import RecordingSession, SessionStatus

logger = logging.getLogger("scribe.pipelines.session")


class SessionCommand(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    COMPLETE = "complete"
    CANCEL = "cancel"
    INTERRUPT = "interrupt"
    INGEST = "ingest"


class IllegalTransitionError(RuntimeError):
    """Raised when a command is not legal in the session's current state."""

    def __init__(self, status: SessionStatus, command: SessionCommand) -> None:
        super().__init__(
            f"Cannot {command.value} a session that is {status.value}."
        )
        self.status = status
        self.command = command


_LIVE: Final = frozenset({SessionStatus.RECORDING, SessionStatus.PAUSED})

_TRANSITIONS: Final[dict[SessionCommand, tuple[frozenset[SessionStatus], SessionStatus]]] = {
    SessionCommand.PAUSE: (frozenset({SessionStatus.RECORDING}), SessionStatus.PAUSED),
    SessionCommand.RESUME: (frozenset({SessionStatus.PAUSED}), SessionStatus.RECORDING),
    SessionCommand.STOP: (_LIVE, SessionStatus.PROCESSING),
    SessionCommand.COMPLETE: (frozenset({SessionStatus.PROCESSING}), SessionStatus.COMPLETED),
    SessionCommand.CANCEL: (
        frozenset({SessionStatus.RECORDING, SessionStatus.PAUSED, SessionStatus.PROCESSING}),
        SessionStatus.CANCELLED,
    ),
    SessionCommand.INTERRUPT: (_LIVE, SessionStatus.INTERRUPTED),
}


def can_apply(status: SessionStatus, command: SessionCommand) -> bool:
    """Return whether ``command`` is legal from ``status``."""

    if command is SessionCommand.INGEST:
        return status is SessionStatus.RECORDING
    allowed, _ = _TRANSITIONS[command]
    return status in allowed


def ensure_can_ingest(session: RecordingSession) -> None:
    """Chunks are only accepted while recording."""

    if not can_apply(session.status, SessionCommand.INGEST):
        raise IllegalTransitionError(session.status, SessionCommand.INGEST)


def apply_transition(session: RecordingSession, command: SessionCommand) -> SessionStatus:
    """Move ``session`` to the state ``command`` leads to and return it."""

    if command is SessionCommand.INGEST:
        raise ValueError("Ingestion is not a state transition.")

    allowed, target = _TRANSITIONS[command]
    current = session.status
    if current not in allowed:
        raise IllegalTransitionError(current, command)

    session.status = target
    observe_transition(current.value, target.value)
    logger.info(
        "Session transition session=%s %s -> %s via %s",
        session.id,
        current.value,
        target.value,
        command.value,
    )
    return target


__all__ = [
    "IllegalTransitionError",
    "SessionCommand",
    "apply_transition",
    "can_apply",
    "ensure_can_ingest",
]
