"""Periodic sweep that interrupts sessions whose audio stopped arriving."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Callable

from scribe.services.session_store import PersistenceError, SessionStore

from .registry import SessionRegistry
from .state import SessionCommand, apply_transition, can_apply
from .types import EventSink, RecordingSession, SessionStatus

logger = logging.getLogger("scribe.pipelines.session")

SinkLookup = Callable[[str], "EventSink | None"]


class IdleSessionSweeper:
    """Interrupt idle ``recording``/``paused`` sessions and evict stale ones.

    A session is idle once ``idle_grace`` seconds have passed since its last
    chunk (or its start, if no chunk arrived). Interrupted sessions keep their
    data for ``retention`` seconds before they are dropped from memory.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        store: SessionStore,
        sink_lookup: SinkLookup,
        *,
        idle_grace: float,
        interval: float,
        retention: float,
    ) -> None:
        self._registry = registry
        self._store = store
        self._sink_lookup = sink_lookup
        self._idle_grace = idle_grace
        self._interval = interval
        self._retention = retention
        self._task: asyncio.Task[None] | None = None

    async def sweep(self, now: float | None = None) -> list[RecordingSession]:
        """Run one pass and return the sessions interrupted by it."""

        now = time.monotonic() if now is None else now
        interrupted: list[RecordingSession] = []

        for session in self._registry.active():
            if now - session.last_chunk_at < self._idle_grace:
                continue
            # Skip sessions busy with a command; the next pass will see them.
            if session.lock.locked():
                continue
            async with session.lock:
                if not can_apply(session.status, SessionCommand.INTERRUPT):
                    continue
                if now - session.last_chunk_at < self._idle_grace:
                    continue
                apply_transition(session, SessionCommand.INTERRUPT)
                session.interrupted_at = now
                await self._notify(session)
                try:
                    await self._store.update_session_status(
                        session.id, SessionStatus.INTERRUPTED.value
                    )
                except PersistenceError as exc:
                    logger.error("Could not persist interruption of %s: %s", session.id, exc)
                # An open connection keeps its interrupted session so later
                # commands are rejected as state violations.
                if self._sink_lookup(session.connection_id) is None:
                    self._registry.detach(session.connection_id)
                interrupted.append(session)
                logger.warning(
                    "Session interrupted after %.0fs without audio session=%s",
                    now - session.last_chunk_at,
                    session.id,
                )

        for session in self._registry.detached():
            if session.interrupted_at is not None and now - session.interrupted_at >= self._retention:
                self._registry.evict(session.id)
                session.release_buffers()
                logger.info("Evicted interrupted session %s", session.id)

        return interrupted

    async def _notify(self, session: RecordingSession) -> None:
        sink = self._sink_lookup(session.connection_id)
        if sink is None:
            return
        await sink.emit(
            "status:update",
            {"sessionId": str(session.id), "status": session.status.value},
        )

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Idle session sweep failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="idle-session-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


__all__ = ["IdleSessionSweeper"]
