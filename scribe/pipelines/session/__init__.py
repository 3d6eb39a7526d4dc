"""Realtime recording session pipeline.

Modules follow the order a session moves through them:

1. `registry` – one live session per connection, plus interrupted leftovers.
2. `state` – transition table every command is checked against.
3. `ingestion` – per-chunk transcription, enhancement and partial results.
4. `finalization` – transcript consolidation, summary and persistence.
5. `sweeper` – idle detection and eviction of interrupted sessions.
6. `machine` – command handling that ties the stages to the transport.
"""

from .finalization import FinalizationPipeline, fallback_transcript, timestamp_chunks
from .ingestion import ChunkIngestionPipeline, InvalidChunkError
from .machine import CommandRejected, SessionStateMachine, decode_binary
from .registry import SessionConflictError, SessionRegistry
from .runtime import SessionRuntime, build_runtime, get_runtime
from .state import IllegalTransitionError, SessionCommand, apply_transition, can_apply
from .sweeper import IdleSessionSweeper
from .types import (
    AudioChunk,
    ChunkMeta,
    EventSink,
    FinalizationResult,
    PartialTranscript,
    RecordingSession,
    SessionMode,
    SessionStatus,
)

__all__ = [
    "AudioChunk",
    "ChunkIngestionPipeline",
    "ChunkMeta",
    "CommandRejected",
    "EventSink",
    "FinalizationPipeline",
    "FinalizationResult",
    "IdleSessionSweeper",
    "IllegalTransitionError",
    "InvalidChunkError",
    "PartialTranscript",
    "RecordingSession",
    "SessionCommand",
    "SessionConflictError",
    "SessionMode",
    "SessionRegistry",
    "SessionRuntime",
    "SessionStateMachine",
    "SessionStatus",
    "apply_transition",
    "build_runtime",
    "can_apply",
    "decode_binary",
    "fallback_transcript",
    "get_runtime",
    "timestamp_chunks",
]
