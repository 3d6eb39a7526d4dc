"""Finalization stage: consolidate fragments, summarize, persist.

Transcript and summary construction never fail: any exception in those steps
is converted to the deterministic fallback for that step. Only the
persistence step can fail, and it is reported through ``persisted=False``
while the in-memory result is still returned.
"""

from __future__ import annotations

import logging
from typing import Any

from scribe.services.session_store import PersistenceError, SessionStore
from scribe.services.summarizer import (
    SummarizationAdapter,
    build_fallback_transcript,
    build_structural_summary,
    build_text_summary,
)
from scribe.telemetry import record_fallback, record_finalization

from .state import SessionCommand, apply_transition
from .types import FinalizationResult, RecordingSession, SessionStatus

logger = logging.getLogger("scribe.pipelines.session")
transcript_logger = logging.getLogger("scribe.logs.transcript")


def fallback_transcript(session: RecordingSession, chunk_interval: int) -> str:
    """Concatenation-based transcript of the session's fragments."""

    return build_fallback_transcript(
        [(partial.sequence, partial.text) for partial in session.partials],
        chunk_count=len(session.chunks),
        duration=session.duration,
        chunk_interval=chunk_interval,
    )


def timestamp_chunks(session: RecordingSession, chunk_interval: int) -> list[dict[str, Any]]:
    return [
        {
            "time": (partial.sequence - 1) * chunk_interval,
            "text": partial.text,
            "confidence": round(partial.confidence, 3),
        }
        for partial in session.partials
        if partial.text
    ]


class FinalizationPipeline:
    """Turn a stopped session into its final transcript and summary."""

    def __init__(
        self,
        summarizer: SummarizationAdapter,
        store: SessionStore,
        *,
        chunk_interval: int,
    ) -> None:
        self._summarizer = summarizer
        self._store = store
        self._chunk_interval = chunk_interval

    async def build_transcript(self, session: RecordingSession) -> str:
        try:
            formatted = await self._summarizer.format_transcript(
                [partial.text for partial in session.partials],
                chunk_count=len(session.chunks),
                duration=session.duration,
            )
        except Exception as exc:
            logger.warning("Transcript formatting failed session=%s: %s", session.id, exc)
            record_fallback("formatting", "error")
            formatted = None
        return formatted or fallback_transcript(session, self._chunk_interval)

    async def build_summary(self, transcript: str, *, free_text: bool = False) -> str:
        try:
            if free_text:
                summary = await self._summarizer.summarize(transcript)
            else:
                summary = await self._summarizer.summarize_transcript(transcript)
        except Exception as exc:
            logger.warning("Summary generation failed: %s", exc)
            record_fallback("summary", "error")
            summary = None
        if summary and summary.strip():
            return summary
        return build_text_summary(transcript) if free_text else build_structural_summary(transcript)

    async def finalize(
        self,
        session: RecordingSession,
        *,
        transcript: str | None = None,
        title: str | None = None,
    ) -> FinalizationResult:
        """Run steps 2-4 for a session the caller already moved to ``processing``.

        ``transcript`` short-circuits step 2 for uploads whose text was produced
        outside the chunk pipeline; its summary is then built as free text.
        """

        if session.status is not SessionStatus.PROCESSING:
            apply_transition(session, SessionCommand.STOP)

        if transcript is None:
            final_transcript = await self.build_transcript(session)
            summary = await self.build_summary(final_transcript)
        else:
            final_transcript = transcript
            summary = await self.build_summary(final_transcript, free_text=True)

        session.final_transcript = final_transcript
        session.final_summary = summary
        session.duration = max(session.duration, session.elapsed_seconds())

        persisted = True
        try:
            await self._store.store_transcript(
                session.id,
                final_transcript,
                summary,
                timestamp_chunks(session, self._chunk_interval),
            )
            if title:
                await self._store.update_session_title(session.id, title)
            await self._store.update_session_duration(session.id, session.duration)
            await self._store.update_session_status(session.id, SessionStatus.COMPLETED.value)
        except PersistenceError as exc:
            persisted = False
            logger.error("Persisting finalized session %s failed: %s", session.id, exc)
        except Exception:  # pragma: no cover - store implementation bug
            persisted = False
            logger.exception("Unexpected store failure finalizing session %s", session.id)

        apply_transition(session, SessionCommand.COMPLETE)
        record_finalization("completed" if persisted else "persistence_failed")
        transcript_logger.info(
            "final | session=%s | duration=%s | persisted=%s | summary=%s",
            session.id,
            session.duration,
            persisted,
            summary.replace("\n", " / "),
        )
        return FinalizationResult(
            transcript=final_transcript,
            summary=summary,
            duration=session.duration,
            persisted=persisted,
        )


__all__ = ["FinalizationPipeline", "fallback_transcript", "timestamp_chunks"]
