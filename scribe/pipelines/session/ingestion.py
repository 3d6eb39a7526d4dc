"""Chunk ingestion stage of the realtime session pipeline.

Callers hold the session lock for the whole of :meth:`ChunkIngestionPipeline.ingest`,
so one session's chunks are transcribed and emitted strictly in arrival
order while other sessions proceed independently.

Duration is advanced by a fixed ``chunk_interval`` per chunk rather than by
decoding the payload. Capture devices do not deliver exact timings, so this is
an approximation of recorded time, not a measurement.
"""

from __future__ import annotations

import asyncio
import logging
import time

from scribe.services.summarizer import SummarizationAdapter
from scribe.services.transcription import Transcriber, Transcription
from scribe.telemetry import record_fallback

from .state import ensure_can_ingest
from .types import AudioChunk, ChunkMeta, PartialTranscript, RecordingSession

logger = logging.getLogger("scribe.pipelines.session")
transcript_logger = logging.getLogger("scribe.logs.transcript")


class InvalidChunkError(ValueError):
    """Raised for empty payloads or non-positive timestamps."""


class ChunkIngestionPipeline:
    """Transcribe one chunk, record it and produce the partial result."""

    def __init__(
        self,
        transcriber: Transcriber,
        summarizer: SummarizationAdapter,
        *,
        chunk_interval: int,
        transcription_timeout: float,
        enhancement_window: int = 3,
        enhancement_timeout: float = 4.0,
    ) -> None:
        self._transcriber = transcriber
        self._summarizer = summarizer
        self._chunk_interval = chunk_interval
        self._transcription_timeout = transcription_timeout
        self._enhancement_window = enhancement_window
        self._enhancement_timeout = enhancement_timeout

    @property
    def chunk_interval(self) -> int:
        return self._chunk_interval

    async def ingest(self, session: RecordingSession, chunk: AudioChunk) -> PartialTranscript:
        """Append ``chunk`` to ``session`` and return its partial transcript."""

        ensure_can_ingest(session)
        if not chunk.data:
            raise InvalidChunkError("Audio chunk payload is empty.")
        if chunk.timestamp <= 0:
            raise InvalidChunkError("Audio chunk timestamp must be positive.")

        now = time.monotonic()
        sequence = session.next_sequence()
        session.chunks.append(
            ChunkMeta(
                sequence=sequence,
                timestamp=chunk.timestamp,
                size=chunk.size or len(chunk.data),
                received_at=now,
            )
        )
        session.last_chunk_at = now

        result = await self._transcribe(session, chunk, sequence)
        session.duration += self._chunk_interval

        display_text = result.text
        if result.text and len(session.partials) + 1 >= self._enhancement_window:
            recent = [p.text for p in session.partials if p.text]
            context = (recent + [result.text])[-self._enhancement_window :]
            display_text = await self._enhance(context, result.text)

        partial = PartialTranscript(
            sequence=sequence,
            text=result.text,
            timestamp=chunk.timestamp,
            confidence=result.confidence,
            display_text=display_text if display_text != result.text else "",
        )
        session.partials.append(partial)
        if result.text:
            session.accumulated_text += result.text + " "

        transcript_logger.info(
            "partial | session=%s | chunk=%s | confidence=%.2f | text=%s",
            session.id,
            sequence,
            result.confidence,
            partial.emitted_text,
        )
        return partial

    async def _transcribe(
        self,
        session: RecordingSession,
        chunk: AudioChunk,
        sequence: int,
    ) -> Transcription:
        """Adapter call bounded by the timeout; failures become an empty fragment."""

        try:
            return await asyncio.wait_for(
                self._transcriber.transcribe(chunk.data, arrival=time.time()),
                timeout=self._transcription_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Transcription timed out session=%s chunk=%s after %.1fs",
                session.id,
                sequence,
                self._transcription_timeout,
            )
            record_fallback("transcription", "timeout")
        except Exception as exc:
            logger.warning(
                "Transcription failed session=%s chunk=%s: %s", session.id, sequence, exc
            )
            record_fallback("transcription", "error")
        return Transcription(text="", confidence=0.0)

    async def _enhance(self, context: list[str], fragment: str) -> str:
        try:
            return await self._summarizer.enhance_fragment(
                context, fragment, timeout=self._enhancement_timeout
            )
        except Exception as exc:
            logger.warning("Context enhancement failed, emitting raw fragment: %s", exc)
            record_fallback("enhancement", "error")
            return fragment


__all__ = ["ChunkIngestionPipeline", "InvalidChunkError"]
