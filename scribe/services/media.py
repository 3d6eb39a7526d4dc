"""ffmpeg helpers for turning uploaded media into raw PCM audio."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile

from fastapi.concurrency import run_in_threadpool

from scribe.config.settings import settings

logger = logging.getLogger(__name__)


class AudioExtractionError(RuntimeError):
    """Raised when ffmpeg cannot produce audio from the given media."""


class FfmpegAudioExtractor:
    """Decode arbitrary media into mono ``s16le`` PCM at a fixed sample rate."""

    def __init__(
        self,
        *,
        binary: str | None = None,
        sample_rate_hz: int | None = None,
        volume_boost: float = 2.0,
    ) -> None:
        self._binary = binary or settings.ffmpeg_binary
        self._sample_rate_hz = sample_rate_hz or settings.transcribe.sample_rate_hz
        self._volume_boost = volume_boost

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    async def extract_audio(self, media_bytes: bytes) -> bytes:
        """Run ffmpeg in a worker thread and return the decoded PCM bytes."""

        if not media_bytes:
            raise AudioExtractionError("The uploaded media is empty.")
        pcm = await run_in_threadpool(self._extract_sync, media_bytes)
        if not pcm:
            raise AudioExtractionError("No audio track could be extracted from the media.")
        return pcm

    def _extract_sync(self, media_bytes: bytes) -> bytes:
        """Synchronous ffmpeg conversion using a temporary file to support seeking."""

        tmp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(delete=False, suffix=".media") as tmp_file:
                tmp_path = tmp_file.name
                tmp_file.write(media_bytes)

            process = subprocess.run(
                [
                    self._binary,
                    "-y",
                    "-i", tmp_path,
                    "-vn",
                    "-af", f"volume={self._volume_boost}",
                    "-f", "s16le",
                    "-acodec", "pcm_s16le",
                    "-ac", "1",
                    "-ar", str(self._sample_rate_hz),
                    "-threads", "0",
                    "pipe:1",
                ],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
            if not process.stdout:
                logger.warning(
                    "ffmpeg produced empty output. stderr: %s",
                    process.stderr.decode("utf-8", errors="replace"),
                )
            return process.stdout
        except FileNotFoundError as exc:
            raise AudioExtractionError(f"ffmpeg binary not found: {self._binary}") from exc
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg failed. stderr: %s", error_msg)
            raise AudioExtractionError(f"ffmpeg failed to extract audio: {error_msg}") from exc
        except OSError as exc:
            # Not executable, disk full while staging the upload, and similar.
            logger.error("ffmpeg could not run: %s", exc)
            raise AudioExtractionError(f"Audio extraction could not run: {exc}") from exc
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)


def split_pcm(pcm: bytes, *, sample_rate_hz: int, seconds: int) -> list[bytes]:
    """Cut 16-bit mono PCM into consecutive segments of ``seconds`` length."""

    segment_size = sample_rate_hz * 2 * seconds
    return [pcm[i : i + segment_size] for i in range(0, len(pcm), segment_size)]


__all__ = ["AudioExtractionError", "FfmpegAudioExtractor", "split_pcm"]
