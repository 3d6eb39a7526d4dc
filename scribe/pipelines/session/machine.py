"""Command handling for realtime recording sessions.

:class:`SessionStateMachine` is the seam between the transport and the
pipeline stages. Each command resolves the connection's session, takes the
session lock, checks the transition table, runs the stage and emits the
resulting events. Rejected commands raise :class:`CommandRejected`; the
transport turns that into an error event and nothing in the session changes.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from typing import Any, Mapping
from uuid import UUID

from scribe.services.media import AudioExtractionError, FfmpegAudioExtractor, split_pcm
from scribe.services.session_store import PersistenceError, SessionStore
from scribe.services.transcription import Transcriber
from scribe.telemetry import record_fallback, record_partial

from .finalization import FinalizationPipeline
from .ingestion import ChunkIngestionPipeline, InvalidChunkError
from .registry import SessionConflictError, SessionRegistry
from .state import IllegalTransitionError, SessionCommand, apply_transition, can_apply
from .types import (
    AudioChunk,
    EventSink,
    FinalizationResult,
    RecordingSession,
    SessionMode,
    SessionStatus,
)

logger = logging.getLogger("scribe.pipelines.session")


class CommandRejected(Exception):
    """A client command that was refused without changing any session state."""

    def __init__(self, code: str, message: str, *, event: str = "error") -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.event = event

    def payload(self) -> dict[str, str]:
        return {"message": self.message, "code": self.code}


def decode_binary(encoded: str) -> bytes:
    """Decode base64 audio/video text, tolerating a ``data:...;base64,`` prefix."""

    if "base64," in encoded[:128]:
        encoded = encoded.split("base64,", 1)[1]
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CommandRejected("invalid_payload", "Binary data is not valid base64.") from exc


class SessionStateMachine:
    """Apply client commands to sessions and emit the resulting events."""

    def __init__(
        self,
        registry: SessionRegistry,
        store: SessionStore,
        ingestion: ChunkIngestionPipeline,
        finalization: FinalizationPipeline,
        *,
        transcriber: Transcriber,
        extractor: FfmpegAudioExtractor,
        max_upload_bytes: int,
        transcription_timeout: float,
    ) -> None:
        self.registry = registry
        self._store = store
        self._ingestion = ingestion
        self._finalization = finalization
        self._transcriber = transcriber
        self._extractor = extractor
        self._max_upload_bytes = max_upload_bytes
        self._transcription_timeout = transcription_timeout
        self._sinks: dict[str, EventSink] = {}

    # -- connection bookkeeping -------------------------------------------------

    def connect(self, connection_id: str, sink: EventSink) -> None:
        self._sinks[connection_id] = sink

    def disconnect(self, connection_id: str) -> None:
        """Forget the connection; a live session is left for the idle sweep."""

        self._sinks.pop(connection_id, None)
        session = self.registry.get(connection_id)
        if session is None:
            return
        if session.is_terminal:
            self.registry.remove(connection_id)
        elif session.status is SessionStatus.INTERRUPTED:
            self.registry.detach(connection_id)
        else:
            logger.info(
                "Connection %s closed with session %s still %s",
                connection_id,
                session.id,
                session.status.value,
            )

    def sink_for(self, connection_id: str) -> EventSink | None:
        return self._sinks.get(connection_id)

    async def _emit(self, connection_id: str, event: str, payload: Mapping[str, Any]) -> None:
        sink = self._sinks.get(connection_id)
        if sink is None:
            logger.debug("Dropping %s for closed connection %s", event, connection_id)
            return
        await sink.emit(event, payload)

    async def _emit_status(self, session: RecordingSession) -> None:
        await self._emit(
            session.connection_id,
            "status:update",
            {"sessionId": str(session.id), "status": session.status.value},
        )

    def _resolve(self, connection_id: str, session_id: UUID | None, *, event: str = "error") -> RecordingSession:
        session = self.registry.get(connection_id)
        if session is None:
            raise CommandRejected("no_session", "No session found for this connection.", event=event)
        if session_id is not None and session.id != session_id:
            raise CommandRejected(
                "session_mismatch",
                f"Session {session_id} does not belong to this connection.",
                event=event,
            )
        return session

    async def _persist_status(self, session: RecordingSession, *, report: bool = True) -> None:
        try:
            await self._store.update_session_status(session.id, session.status.value)
        except PersistenceError as exc:
            logger.error("Status update for session %s failed: %s", session.id, exc)
            if report:
                await self._emit(
                    session.connection_id,
                    "error",
                    {"message": "Failed to save session status.", "code": "persistence_failed"},
                )

    # -- commands ---------------------------------------------------------------

    async def start(self, connection_id: str, owner_id: str, mode: SessionMode) -> RecordingSession:
        try:
            session = await self.registry.create(connection_id, mode, owner_id)
        except SessionConflictError as exc:
            raise CommandRejected("session_active", str(exc)) from exc
        except PersistenceError as exc:
            logger.error("Session start failed for connection %s: %s", connection_id, exc)
            raise CommandRejected("persistence_failed", f"Failed to start session: {exc}") from exc

        await self._emit(
            connection_id,
            "session:started",
            {"sessionId": str(session.id), "status": session.status.value, "mode": mode.value},
        )
        return session

    async def ingest_chunk(
        self,
        connection_id: str,
        session_id: UUID | None,
        encoded: str,
        timestamp: float,
        size: int | None = None,
    ) -> None:
        session = self._resolve(connection_id, session_id)
        data = decode_binary(encoded)
        async with session.lock:
            if not can_apply(session.status, SessionCommand.INGEST):
                code = "stale_state" if session.status is SessionStatus.PAUSED else "invalid_state"
                raise CommandRejected(
                    code, f"Audio chunk rejected: session is {session.status.value}."
                )
            started = time.perf_counter()
            try:
                partial = await self._ingestion.ingest(
                    session, AudioChunk(data=data, timestamp=timestamp, size=size or len(data))
                )
            except InvalidChunkError as exc:
                raise CommandRejected("invalid_payload", str(exc)) from exc
            record_partial(time.perf_counter() - started)
            await self._emit(
                connection_id,
                "transcript:partial",
                {
                    "sessionId": str(session.id),
                    "text": partial.emitted_text,
                    "timestamp": partial.timestamp,
                    "chunkNumber": partial.sequence,
                    "confidence": round(partial.confidence, 3),
                },
            )

    async def _transition(self, connection_id: str, session_id: UUID | None, command: SessionCommand) -> RecordingSession:
        session = self._resolve(connection_id, session_id)
        async with session.lock:
            try:
                apply_transition(session, command)
            except IllegalTransitionError as exc:
                raise CommandRejected("invalid_state", str(exc)) from exc
            await self._emit_status(session)
            await self._persist_status(session)
        return session

    async def pause(self, connection_id: str, session_id: UUID | None) -> None:
        await self._transition(connection_id, session_id, SessionCommand.PAUSE)

    async def resume(self, connection_id: str, session_id: UUID | None) -> None:
        await self._transition(connection_id, session_id, SessionCommand.RESUME)

    async def cancel(self, connection_id: str, session_id: UUID | None) -> None:
        session = await self._transition(connection_id, session_id, SessionCommand.CANCEL)
        self.registry.remove(connection_id)
        session.release_buffers()

    async def stop(self, connection_id: str, session_id: UUID | None) -> FinalizationResult:
        session = self._resolve(connection_id, session_id)
        async with session.lock:
            try:
                apply_transition(session, SessionCommand.STOP)
            except IllegalTransitionError as exc:
                raise CommandRejected("invalid_state", str(exc)) from exc
            await self._emit_status(session)
            await self._persist_status(session, report=False)
            result = await self._finalization.finalize(session)
            await self._complete(session, result)
        return result

    async def upload_video(
        self,
        connection_id: str,
        session_id: UUID | None,
        encoded: str,
        filename: str,
        file_size: int,
    ) -> FinalizationResult:
        if file_size > self._max_upload_bytes:
            raise CommandRejected(
                "size_limit",
                f"File size {file_size} bytes exceeds the {self._max_upload_bytes} byte limit.",
                event="video:error",
            )
        session = self._resolve(connection_id, session_id, event="video:error")

        try:
            video = decode_binary(encoded)
        except CommandRejected as exc:
            raise CommandRejected(exc.code, exc.message, event="video:error") from exc
        if len(video) > self._max_upload_bytes:
            raise CommandRejected(
                "size_limit",
                f"Uploaded data exceeds the {self._max_upload_bytes} byte limit.",
                event="video:error",
            )

        async with session.lock:
            if not can_apply(session.status, SessionCommand.STOP):
                raise CommandRejected(
                    "invalid_state",
                    f"Cannot process an upload for a session that is {session.status.value}.",
                    event="video:error",
                )

            await self._emit(connection_id, "video:processing", {"message": "Extracting audio from video..."})
            try:
                pcm = await self._extractor.extract_audio(video)
            except AudioExtractionError as exc:
                logger.error("Audio extraction failed session=%s: %s", session.id, exc)
                raise CommandRejected("extraction_failed", str(exc), event="video:error") from exc

            await self._emit(connection_id, "video:processing", {"message": "Transcribing audio..."})
            transcript = await self._transcribe_pcm(session, pcm)

            await self._emit(connection_id, "video:processing", {"message": "Generating summary..."})
            apply_transition(session, SessionCommand.STOP)
            await self._emit_status(session)
            await self._persist_status(session, report=False)
            result = await self._finalization.finalize(
                session, transcript=transcript, title=f"Video: {filename}"
            )
            await self._complete(session, result)
        return result

    async def status(self, connection_id: str, session_id: UUID | None) -> SessionStatus:
        """Report the state of the connection's session, or of a detached one by id."""

        session = self.registry.get(connection_id)
        if session is None and session_id is not None:
            session = self.registry.find(session_id)
        if session is None:
            raise CommandRejected("no_session", "No session found for this connection.")
        if session_id is not None and session.id != session_id:
            raise CommandRejected(
                "session_mismatch", f"Session {session_id} does not belong to this connection."
            )
        await self._emit(
            connection_id,
            "status:update",
            {"sessionId": str(session.id), "status": session.status.value},
        )
        return session.status

    # -- helpers ----------------------------------------------------------------

    async def _transcribe_pcm(self, session: RecordingSession, pcm: bytes) -> str:
        """Transcribe extracted audio segment by segment; failed segments are skipped."""

        segments = split_pcm(
            pcm,
            sample_rate_hz=self._extractor.sample_rate_hz,
            seconds=self._ingestion.chunk_interval,
        )
        texts: list[str] = []
        for index, segment in enumerate(segments, start=1):
            try:
                result = await asyncio.wait_for(
                    self._transcriber.transcribe(segment, arrival=time.time(), pcm=True),
                    timeout=self._transcription_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Upload segment %s timed out session=%s", index, session.id)
                record_fallback("transcription", "timeout")
                continue
            except Exception as exc:
                logger.warning("Upload segment %s failed session=%s: %s", index, session.id, exc)
                record_fallback("transcription", "error")
                continue
            if result.text:
                texts.append(result.text)
        return " ".join(texts)

    async def _complete(self, session: RecordingSession, result: FinalizationResult) -> None:
        if not result.persisted:
            await self._emit(
                session.connection_id,
                "error",
                {
                    "message": "Failed to save the recording; transcript and summary are still included.",
                    "code": "persistence_failed",
                },
            )
        await self._emit_status(session)
        await self._emit(
            session.connection_id,
            "session:completed",
            {
                "sessionId": str(session.id),
                "transcript": result.transcript,
                "summary": result.summary,
                "duration": result.duration,
                "downloadUrl": f"/sessions/{session.id}/download",
            },
        )
        self.registry.remove(session.connection_id)
        session.release_buffers()
        logger.info(
            "Session completed session=%s duration=%ss persisted=%s",
            session.id,
            result.duration,
            result.persisted,
        )


__all__ = ["CommandRejected", "SessionStateMachine", "decode_binary"]
