from __future__ import annotations

import asyncio
import time
import base64
from uuid import uuid4

import pytest

from scribe.pipelines.session import (
    AudioChunk,
    ChunkIngestionPipeline,
    InvalidChunkError,
    RecordingSession,
    SessionMode,
)
from scribe.services.summarizer import SummarizationAdapter

from conftest import (
    RecordingSink,
    ScriptedTranscriber,
    StaticGenerator,
    make_runtime,
    no_generator,
    provider_for,
)

CHUNK = base64.b64encode(b"\x00" * 1000).decode()


def _session() -> RecordingSession:
    return RecordingSession(
        id=uuid4(),
        connection_id="conn",
        owner_id="owner",
        mode=SessionMode.MICROPHONE,
    )


def test_partials_follow_arrival_order_despite_latency():
    """The first chunk resolves last but is still emitted first."""

    async def scenario():
        runtime = make_runtime(transcriber=ScriptedTranscriber([0.05, 0.0, 0.01]))
        machine = runtime.machine
        sink = RecordingSink()
        machine.connect("c1", sink)
        await machine.start("c1", "owner", SessionMode.MICROPHONE)
        await asyncio.gather(
            *(machine.ingest_chunk("c1", None, CHUNK, 1000.0 + i, 1000) for i in range(3))
        )
        return sink

    sink = asyncio.run(scenario())
    partials = sink.named("transcript:partial")

    assert [p["chunkNumber"] for p in partials] == [1, 2, 3]
    assert [p["text"] for p in partials] == ["chunk-1", "chunk-2", "chunk-3"]


def test_sessions_ingest_independently():
    async def scenario():
        runtime = make_runtime(transcriber=ScriptedTranscriber([0.01]))
        machine = runtime.machine
        sinks = {name: RecordingSink() for name in ("a", "b")}
        for name, sink in sinks.items():
            machine.connect(name, sink)
            await machine.start(name, name, SessionMode.MICROPHONE)
        await asyncio.gather(
            machine.ingest_chunk("a", None, CHUNK, 1.0),
            machine.ingest_chunk("b", None, CHUNK, 1.0),
            machine.ingest_chunk("a", None, CHUNK, 2.0),
        )
        return sinks

    sinks = asyncio.run(scenario())

    assert [p["chunkNumber"] for p in sinks["a"].named("transcript:partial")] == [1, 2]
    assert [p["chunkNumber"] for p in sinks["b"].named("transcript:partial")] == [1]


def test_adapter_failure_yields_empty_fragment_and_session_continues():
    async def scenario():
        runtime = make_runtime(transcriber=ScriptedTranscriber(failures={2}))
        machine = runtime.machine
        sink = RecordingSink()
        machine.connect("c1", sink)
        session = await machine.start("c1", "owner", SessionMode.MICROPHONE)
        for i in range(3):
            await machine.ingest_chunk("c1", session.id, CHUNK, 10.0 + i)
        return session, sink

    session, sink = asyncio.run(scenario())
    partials = sink.named("transcript:partial")

    assert [p["text"] for p in partials] == ["chunk-1", "", "chunk-3"]
    assert session.status.value == "recording"
    assert session.duration == 9


def test_transcription_timeout_counts_as_failure():
    async def scenario():
        pipeline = ChunkIngestionPipeline(
            ScriptedTranscriber([0.2]),
            SummarizationAdapter(no_generator),
            chunk_interval=3,
            transcription_timeout=0.01,
        )
        session = _session()
        partial = await pipeline.ingest(session, AudioChunk(b"abc", 5.0, 3))
        return session, partial

    session, partial = asyncio.run(scenario())

    assert partial.text == ""
    assert partial.confidence == 0.0
    assert len(session.chunks) == 1
    assert session.duration == 3


def test_enhancement_applies_once_window_is_full():
    async def scenario():
        generator = StaticGenerator("clarified third fragment")
        pipeline = ChunkIngestionPipeline(
            ScriptedTranscriber(),
            SummarizationAdapter(provider_for(generator)),
            chunk_interval=3,
            transcription_timeout=1.0,
            enhancement_window=3,
        )
        session = _session()
        partials = [
            await pipeline.ingest(session, AudioChunk(b"abc", float(i + 1), 3)) for i in range(3)
        ]
        return generator, partials

    generator, partials = asyncio.run(scenario())

    assert [p.emitted_text for p in partials[:2]] == ["chunk-1", "chunk-2"]
    assert partials[2].text == "chunk-3"
    assert partials[2].emitted_text == "clarified third fragment"
    assert len(generator.prompts) == 1
    assert "chunk-1 chunk-2 chunk-3" in generator.prompts[0]


@pytest.mark.parametrize(
    "chunk",
    [AudioChunk(b"", 1.0, 0), AudioChunk(b"abc", 0.0, 3), AudioChunk(b"abc", -4.0, 3)],
)
def test_invalid_chunks_are_rejected_before_recording_anything(chunk):
    async def scenario():
        pipeline = ChunkIngestionPipeline(
            ScriptedTranscriber(),
            SummarizationAdapter(no_generator),
            chunk_interval=3,
            transcription_timeout=1.0,
        )
        session = _session()
        with pytest.raises(InvalidChunkError):
            await pipeline.ingest(session, chunk)
        return session

    session = asyncio.run(scenario())

    assert session.chunks == []
    assert session.duration == 0


def test_slow_model_resolution_does_not_hold_up_ingestion():
    generator = StaticGenerator("clarified third fragment")

    async def slow_provider():
        await asyncio.sleep(1.0)
        return generator

    async def scenario():
        pipeline = ChunkIngestionPipeline(
            ScriptedTranscriber(),
            SummarizationAdapter(slow_provider),
            chunk_interval=3,
            transcription_timeout=1.0,
            enhancement_window=3,
            enhancement_timeout=0.1,
        )
        session = _session()
        for i in range(2):
            await pipeline.ingest(session, AudioChunk(b"abc", float(i + 1), 3))
        started = time.perf_counter()
        third = await pipeline.ingest(session, AudioChunk(b"abc", 3.0, 3))
        return third, time.perf_counter() - started

    third, elapsed = asyncio.run(scenario())

    assert elapsed < 0.5
    assert third.emitted_text == "chunk-3"
    assert generator.prompts == []


def test_model_resolved_in_background_serves_later_fragments():
    generator = StaticGenerator("clarified")
    resolutions: list[int] = []

    async def slow_provider():
        resolutions.append(1)
        await asyncio.sleep(0.2)
        return generator

    async def scenario():
        adapter = SummarizationAdapter(slow_provider)
        first = await adapter.enhance_fragment(["earlier"], "fragment", timeout=0.05)
        await asyncio.sleep(0.3)
        second = await adapter.enhance_fragment(["earlier"], "fragment", timeout=0.05)
        return first, second

    first, second = asyncio.run(scenario())

    assert first == "fragment"
    assert second == "clarified"
    assert resolutions == [1]
