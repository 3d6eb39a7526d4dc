"""Wire the session pipeline stages to their adapters."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from scribe.config.settings import settings
from scribe.services.llm_client import resolve_text_generator
from scribe.services.media import FfmpegAudioExtractor
from scribe.services.session_store import SessionStore, SqlSessionStore
from scribe.services.summarizer import GeneratorProvider, SummarizationAdapter
from scribe.services.transcription import Transcriber, select_transcriber

from .finalization import FinalizationPipeline
from .ingestion import ChunkIngestionPipeline
from .machine import SessionStateMachine
from .registry import SessionRegistry
from .sweeper import IdleSessionSweeper


@dataclass
class SessionRuntime:
    machine: SessionStateMachine
    sweeper: IdleSessionSweeper


def build_runtime(
    *,
    store: SessionStore | None = None,
    transcriber: Transcriber | None = None,
    generator_provider: GeneratorProvider | None = None,
    extractor: FfmpegAudioExtractor | None = None,
) -> SessionRuntime:
    """Assemble a state machine and sweeper; unspecified adapters use the configured ones."""

    config = settings.sessions
    store = store if store is not None else SqlSessionStore()
    transcriber = transcriber if transcriber is not None else select_transcriber()
    summarizer = SummarizationAdapter(generator_provider or resolve_text_generator)

    registry = SessionRegistry(store)
    ingestion = ChunkIngestionPipeline(
        transcriber,
        summarizer,
        chunk_interval=config.chunk_interval_seconds,
        transcription_timeout=settings.transcribe.timeout_seconds,
        enhancement_window=config.enhancement_window,
        enhancement_timeout=config.enhancement_timeout_seconds,
    )
    finalization = FinalizationPipeline(
        summarizer, store, chunk_interval=config.chunk_interval_seconds
    )
    machine = SessionStateMachine(
        registry,
        store,
        ingestion,
        finalization,
        transcriber=transcriber,
        extractor=extractor or FfmpegAudioExtractor(),
        max_upload_bytes=config.max_upload_bytes,
        transcription_timeout=settings.transcribe.timeout_seconds,
    )
    sweeper = IdleSessionSweeper(
        registry,
        store,
        machine.sink_for,
        idle_grace=config.idle_grace_seconds,
        interval=config.sweep_interval_seconds,
        retention=config.interrupted_retention_seconds,
    )
    return SessionRuntime(machine=machine, sweeper=sweeper)


@lru_cache(maxsize=1)
def get_runtime() -> SessionRuntime:
    """Process-wide runtime shared by the WebSocket and REST controllers."""

    return build_runtime()


__all__ = ["SessionRuntime", "build_runtime", "get_runtime"]
