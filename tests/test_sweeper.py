from __future__ import annotations

import asyncio
import base64

import pytest

from scribe.pipelines.session import CommandRejected, SessionMode, SessionStatus

from conftest import FakeStore, RecordingSink, make_runtime

CHUNK = base64.b64encode(b"\x00" * 10).decode()
GRACE = 300.0


def test_idle_recording_session_is_interrupted_and_rejects_commands():
    store = FakeStore()

    async def scenario():
        runtime = make_runtime(store=store)
        sink = RecordingSink()
        runtime.machine.connect("c1", sink)
        session = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)

        assert await runtime.sweeper.sweep(session.last_chunk_at + GRACE - 1) == []
        interrupted = await runtime.sweeper.sweep(session.last_chunk_at + GRACE + 1)

        codes = []
        for command in (
            runtime.machine.pause("c1", session.id),
            runtime.machine.resume("c1", session.id),
            runtime.machine.ingest_chunk("c1", session.id, CHUNK, 1.0),
        ):
            with pytest.raises(CommandRejected) as excinfo:
                await command
            codes.append(excinfo.value.code)
        return session, sink, interrupted, codes

    session, sink, interrupted, codes = asyncio.run(scenario())

    assert interrupted == [session]
    assert session.status is SessionStatus.INTERRUPTED
    assert sink.named("status:update")[-1]["status"] == "interrupted"
    assert codes == ["invalid_state", "invalid_state", "invalid_state"]
    assert store.rows[session.id]["status"] == "interrupted"


def test_recent_chunk_keeps_session_alive():
    async def scenario():
        runtime = make_runtime()
        runtime.machine.connect("c1", RecordingSink())
        session = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        await runtime.machine.ingest_chunk("c1", session.id, CHUNK, 1.0)
        interrupted = await runtime.sweeper.sweep(session.last_chunk_at + GRACE / 2)
        return session, interrupted

    session, interrupted = asyncio.run(scenario())

    assert interrupted == []
    assert session.status is SessionStatus.RECORDING


def test_paused_sessions_are_swept_too():
    async def scenario():
        runtime = make_runtime()
        runtime.machine.connect("c1", RecordingSink())
        session = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        await runtime.machine.pause("c1", session.id)
        await runtime.sweeper.sweep(session.last_chunk_at + GRACE + 1)
        return session

    assert asyncio.run(scenario()).status is SessionStatus.INTERRUPTED


def test_abandoned_session_is_detached_then_evicted():
    async def scenario():
        runtime = make_runtime()
        runtime.machine.connect("c1", RecordingSink())
        session = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        await runtime.machine.ingest_chunk("c1", session.id, CHUNK, 1.0)
        runtime.machine.disconnect("c1")

        swept_at = session.last_chunk_at + GRACE + 1
        await runtime.sweeper.sweep(swept_at)
        registry = runtime.machine.registry
        detached = registry.get("c1") is None and registry.find(session.id) is session

        await runtime.sweeper.sweep(swept_at + 3600)
        return session, registry, detached

    session, registry, detached = asyncio.run(scenario())

    assert detached
    assert registry.find(session.id) is None
    assert session.chunks == []


def test_new_start_replaces_interrupted_session():
    async def scenario():
        runtime = make_runtime()
        runtime.machine.connect("c1", RecordingSink())
        first = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        await runtime.sweeper.sweep(first.last_chunk_at + GRACE + 1)
        second = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        return runtime, first, second

    runtime, first, second = asyncio.run(scenario())

    assert second.id != first.id
    assert runtime.machine.registry.get("c1") is second
    assert runtime.machine.registry.find(first.id) is first


def test_processing_sessions_are_not_interrupted():
    async def scenario():
        runtime = make_runtime()
        runtime.machine.connect("c1", RecordingSink())
        session = await runtime.machine.start("c1", "owner", SessionMode.MICROPHONE)
        session.status = SessionStatus.PROCESSING
        return session, await runtime.sweeper.sweep(session.last_chunk_at + GRACE + 1)

    session, interrupted = asyncio.run(scenario())

    assert interrupted == []
    assert session.status is SessionStatus.PROCESSING
