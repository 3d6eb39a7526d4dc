"""Shared fakes for the realtime session tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
import sys
from typing import Any, Mapping
from uuid import UUID, uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from scribe.pipelines.session import build_runtime  # noqa: E402
from scribe.services.media import AudioExtractionError  # noqa: E402
from scribe.services.session_store import PersistenceError  # noqa: E402
from scribe.services.transcription import SimulatedTranscriber, Transcription  # noqa: E402


class FakeStore:
    """In-memory stand-in for the SQL store; ``fail`` names methods that raise."""

    def __init__(self, *, fail: set[str] | None = None) -> None:
        self.fail = set(fail or ())
        self.rows: dict[UUID, dict[str, Any]] = {}
        self.transcripts: dict[UUID, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise PersistenceError(f"{name} unavailable")

    async def create_session_stub(self, owner_id: str, mode: str) -> UUID:
        self._check("create_session_stub")
        session_id = uuid4()
        self.rows[session_id] = {"owner_id": owner_id, "mode": mode, "status": "recording"}
        self.calls.append(("create_session_stub", session_id))
        return session_id

    async def update_session_status(self, session_id: UUID, status: str) -> None:
        self.calls.append(("update_session_status", status))
        self._check("update_session_status")
        self.rows[session_id]["status"] = status

    async def update_session_duration(self, session_id: UUID, seconds: int) -> None:
        self.calls.append(("update_session_duration", seconds))
        self._check("update_session_duration")
        self.rows[session_id]["duration"] = seconds

    async def update_session_title(self, session_id: UUID, title: str) -> None:
        self.calls.append(("update_session_title", title))
        self._check("update_session_title")
        self.rows[session_id]["title"] = title

    async def store_transcript(self, session_id, content, summary, timestamp_chunks) -> None:
        self.calls.append(("store_transcript", session_id))
        self._check("store_transcript")
        self.transcripts[session_id] = {
            "content": content,
            "summary": summary,
            "timestamp_chunks": list(timestamp_chunks),
        }


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        self.events.append((event, dict(payload)))

    def named(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class ScriptedTranscriber:
    """Returns ``chunk-N`` texts after per-call delays; listed call numbers fail."""

    def __init__(self, delays: list[float] | None = None, *, failures: set[int] | None = None) -> None:
        self.delays = list(delays or [])
        self.failures = set(failures or ())
        self.calls = 0

    async def transcribe(self, audio: bytes, *, arrival: float, pcm: bool = False) -> Transcription:
        self.calls += 1
        call = self.calls
        if self.delays:
            await asyncio.sleep(self.delays[(call - 1) % len(self.delays)])
        if call in self.failures:
            raise RuntimeError(f"backend failure on call {call}")
        return Transcription(text=f"chunk-{call}", confidence=0.9)


class FakeExtractor:
    sample_rate_hz = 16000

    def __init__(self, pcm: bytes = b"\x01\x00" * 16000 * 7, *, fail: bool = False) -> None:
        self.pcm = pcm
        self.fail = fail
        self.calls = 0

    async def extract_audio(self, media_bytes: bytes) -> bytes:
        self.calls += 1
        if self.fail:
            raise AudioExtractionError("no audio stream found")
        return self.pcm


class StaticGenerator:
    """Text generator that always answers with ``reply``."""

    def __init__(self, reply: str | None = "generated") -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def invoke(self, *, system_prompt: str, user_prompt: str, **kwargs) -> str | None:
        self.prompts.append(user_prompt)
        return self.reply


class FailingGenerator:
    async def invoke(self, **kwargs) -> str | None:
        raise RuntimeError("model exploded")


async def no_generator():
    return None


def provider_for(generator):
    async def provide():
        return generator

    return provide


def make_runtime(
    *,
    store: FakeStore | None = None,
    transcriber=None,
    generator=None,
    extractor: FakeExtractor | None = None,
):
    return build_runtime(
        store=store or FakeStore(),
        transcriber=transcriber or SimulatedTranscriber(),
        generator_provider=provider_for(generator) if generator is not None else no_generator,
        extractor=extractor or FakeExtractor(),
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
