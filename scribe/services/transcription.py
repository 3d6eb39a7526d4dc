"""Transcription adapters: Amazon Transcribe streaming and a simulator.

Both variants share one contract, ``transcribe(audio, arrival=...)`` returning
a :class:`Transcription`. The simulator is a labelled test double used when no
speech backend is configured; it is never mixed into the real engine.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent

from scribe.config.settings import settings
from scribe.services.media import FfmpegAudioExtractor

logger = logging.getLogger(__name__)

_DEFAULT_CONFIDENCE = 0.9


@dataclass(frozen=True)
class Transcription:
    """Text recognised in one piece of audio."""

    text: str
    confidence: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", max(0.0, min(1.0, float(self.confidence))))


class TranscriptionError(RuntimeError):
    """Raised when the speech backend fails to process audio."""


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes, *, arrival: float, pcm: bool = False) -> Transcription:
        ...


class TranscribeStreamingTranscriber:
    """Stream one chunk at a time to Amazon Transcribe."""

    _FRAME_BYTES = 8192

    def __init__(
        self,
        region: str,
        *,
        language_code: str = "en-US",
        media_sample_rate_hz: int = 16000,
        extractor: FfmpegAudioExtractor | None = None,
    ) -> None:
        self._language_code = language_code
        self._media_sample_rate_hz = media_sample_rate_hz
        self._extractor = extractor or FfmpegAudioExtractor(sample_rate_hz=media_sample_rate_hz)

        # Ensure credentials are available to the SDK
        if settings.aws.access_key:
            os.environ.setdefault("AWS_ACCESS_KEY_ID", settings.aws.access_key)
        if settings.aws.secret_key:
            os.environ.setdefault("AWS_SECRET_ACCESS_KEY", settings.aws.secret_key)

        self._client = TranscribeStreamingClient(region=region)

    async def transcribe(self, audio: bytes, *, arrival: float, pcm: bool = False) -> Transcription:
        if not audio:
            raise TranscriptionError("The audio chunk is empty.")

        try:
            pcm_data = audio if pcm else await self._extractor.extract_audio(audio)
        except Exception as exc:
            raise TranscriptionError(f"Audio conversion failed: {exc}") from exc

        stream = await self._client.start_stream_transcription(
            language_code=self._language_code,
            media_sample_rate_hz=self._media_sample_rate_hz,
            media_encoding="pcm",
        )
        handler = _CollectingTranscriptHandler(stream.output_stream)

        async def write_chunks() -> None:
            for i in range(0, len(pcm_data), self._FRAME_BYTES):
                await stream.input_stream.send_audio_event(
                    audio_chunk=pcm_data[i : i + self._FRAME_BYTES]
                )
            await stream.input_stream.end_stream()

        try:
            await asyncio.gather(write_chunks(), handler.handle_events())
        except Exception as exc:
            raise TranscriptionError(f"Streaming transcription failed: {exc}") from exc

        logger.debug(
            "Transcribed %s bytes into %s chars (confidence %.2f)",
            len(pcm_data),
            len(handler.transcript),
            handler.confidence,
        )
        return Transcription(text=handler.transcript.strip(), confidence=handler.confidence)


class _CollectingTranscriptHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream):
        super().__init__(transcript_result_stream)
        self.transcript = ""
        self._confidences: list[float] = []

    @property
    def confidence(self) -> float:
        if not self._confidences:
            return _DEFAULT_CONFIDENCE
        return sum(self._confidences) / len(self._confidences)

    async def handle_transcript_event(self, transcript_event: TranscriptEvent):
        for result in transcript_event.transcript.results:
            if result.is_partial or not result.alternatives:
                continue
            best = result.alternatives[0]
            self.transcript += best.transcript + " "
            for item in best.items or []:
                if item.confidence is not None:
                    self._confidences.append(float(item.confidence))


class SimulatedTranscriber:
    """Deterministic stand-in for a speech backend.

    Phrases rotate on an internal counter mixed with the chunk size and arrival
    time, so runs differ while the pipeline around it stays exercisable.
    """

    PHRASES = (
        "Thank you for joining today's discussion.",
        "Let's review the main points we need to cover.",
        "I'd like to share some thoughts on this topic.",
        "What are your views on this particular issue?",
        "That's a very interesting perspective to consider.",
        "Could you provide more details about that?",
        "I think we should explore this option further.",
        "Let me add some context to this discussion.",
        "Are there any questions about what we've covered?",
        "We should definitely move forward with this approach.",
        "I appreciate everyone's input on this matter.",
        "Let's discuss the next steps we need to take.",
        "This seems like the right direction to pursue.",
        "We need to consider all the available options.",
        "That makes perfect sense given the circumstances.",
    )

    def __init__(self) -> None:
        self._counter = 0

    async def transcribe(self, audio: bytes, *, arrival: float, pcm: bool = False) -> Transcription:
        if not audio:
            raise TranscriptionError("The audio chunk is empty.")
        self._counter += 1
        size_factor = len(audio) // 1000
        time_factor = int(arrival * 1000)
        index = (self._counter + size_factor + time_factor) % len(self.PHRASES)
        confidence = 0.80 + ((self._counter * 7 + len(audio)) % 19) / 100
        return Transcription(text=self.PHRASES[index], confidence=confidence)


@lru_cache(maxsize=1)
def select_transcriber() -> Transcriber:
    """Pick the transcription backend once per process."""

    if settings.transcribe.enabled:
        try:
            transcriber = TranscribeStreamingTranscriber(
                settings.transcribe.region,
                language_code=settings.transcribe.language_code,
                media_sample_rate_hz=settings.transcribe.sample_rate_hz,
            )
        except Exception as exc:  # pragma: no cover - configuration issue
            logger.warning("Amazon Transcribe unavailable, using simulator: %s", exc)
        else:
            logger.info("Transcription bound to Amazon Transcribe (%s)", settings.transcribe.region)
            return transcriber

    logger.info("Transcription bound to the simulated transcriber")
    return SimulatedTranscriber()


__all__ = [
    "SimulatedTranscriber",
    "TranscribeStreamingTranscriber",
    "Transcriber",
    "Transcription",
    "TranscriptionError",
    "select_transcriber",
]
