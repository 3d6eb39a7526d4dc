"""Service layer helpers for external integrations."""

from .llm_client import (
    BedrockLlmClient,
    LlmInvocationError,
    LlmTimeoutError,
    resolve_text_generator,
    reset_text_generator,
)
from .media import AudioExtractionError, FfmpegAudioExtractor, split_pcm
from .session_store import PersistenceError, SessionStore, SqlSessionStore
from .summarizer import SummarizationAdapter
from .transcription import (
    SimulatedTranscriber,
    TranscribeStreamingTranscriber,
    Transcriber,
    Transcription,
    TranscriptionError,
    select_transcriber,
)

__all__ = [
    "AudioExtractionError",
    "BedrockLlmClient",
    "FfmpegAudioExtractor",
    "LlmInvocationError",
    "LlmTimeoutError",
    "PersistenceError",
    "SessionStore",
    "SimulatedTranscriber",
    "SqlSessionStore",
    "SummarizationAdapter",
    "TranscribeStreamingTranscriber",
    "Transcriber",
    "Transcription",
    "TranscriptionError",
    "reset_text_generator",
    "resolve_text_generator",
    "select_transcriber",
    "split_pcm",
]
