"""Typed containers shared across the realtime session pipeline.

These live in their own module so the state machine, ingestion,
finalization and sweep stages can import them without creating circular
dependencies.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Protocol
from uuid import UUID


class SessionMode(str, Enum):
    """Capture source for a recording session."""

    MICROPHONE = "microphone"
    TAB_AUDIO = "tab-audio"
    VIDEO_UPLOAD = "video-upload"


class SessionStatus(str, Enum):
    """Lifecycle states of a recording session."""

    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INTERRUPTED = "interrupted"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELLED})


@dataclass(frozen=True)
class AudioChunk:
    """One unit of raw captured audio as received from the client."""

    data: bytes
    timestamp: float
    size: int


@dataclass(frozen=True)
class ChunkMeta:
    """Metadata kept for each ingested chunk; the payload itself is not retained."""

    sequence: int
    timestamp: float
    size: int
    received_at: float


@dataclass(frozen=True)
class PartialTranscript:
    """Transcription result for one chunk, in arrival order."""

    sequence: int
    text: str
    timestamp: float
    confidence: float
    display_text: str = ""

    @property
    def emitted_text(self) -> str:
        return self.display_text or self.text


@dataclass(frozen=True)
class FinalizationResult:
    """Consolidated transcript and summary produced when a session stops."""

    transcript: str
    summary: str
    duration: int
    persisted: bool


@dataclass
class RecordingSession:
    """In-memory state for one recording-to-summary lifecycle.

    Fields are mutated only while holding ``lock``; the registry map is the
    only structure shared across sessions.
    """

    id: UUID
    connection_id: str
    owner_id: str
    mode: SessionMode
    status: SessionStatus = SessionStatus.RECORDING
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_monotonic: float = field(default_factory=time.monotonic)
    last_chunk_at: float = field(default_factory=time.monotonic)
    interrupted_at: float | None = None
    duration: int = 0
    chunks: list[ChunkMeta] = field(default_factory=list)
    partials: list[PartialTranscript] = field(default_factory=list)
    accumulated_text: str = ""
    final_transcript: str | None = None
    final_summary: str | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_live(self) -> bool:
        """True while the session still owns its connection slot."""
        return self.status in (
            SessionStatus.RECORDING,
            SessionStatus.PAUSED,
            SessionStatus.PROCESSING,
        )

    def next_sequence(self) -> int:
        return len(self.chunks) + 1

    def elapsed_seconds(self) -> int:
        return int(time.monotonic() - self.started_monotonic)

    def release_buffers(self) -> None:
        """Drop accumulation buffers once the session can no longer use them."""
        self.chunks.clear()
        self.partials.clear()
        self.accumulated_text = ""

    def snapshot(self) -> dict[str, Any]:
        return {
            "sessionId": str(self.id),
            "status": self.status.value,
            "mode": self.mode.value,
            "ownerId": self.owner_id,
            "duration": self.duration,
            "chunkCount": len(self.chunks),
            "startedAt": self.started_at.isoformat(),
        }


class EventSink(Protocol):
    """Outbound half of the realtime transport for one connection."""

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        ...


__all__ = [
    "AudioChunk",
    "ChunkMeta",
    "EventSink",
    "FinalizationResult",
    "PartialTranscript",
    "RecordingSession",
    "SessionMode",
    "SessionStatus",
    "TERMINAL_STATUSES",
]
