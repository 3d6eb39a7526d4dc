"""In-memory registry of recording sessions keyed by connection.

Access discipline: the registry maps are the only state shared across
sessions. Under the asyncio model every insert/remove runs on the event loop
without awaiting in between, so the maps need no lock; a session's own fields
are guarded by ``RecordingSession.lock``.
"""

from __future__ import annotations

import logging
from typing import Iterator
from uuid import UUID

from scribe.services.session_store import SessionStore

from .types import RecordingSession, SessionMode, SessionStatus

logger = logging.getLogger("scribe.pipelines.session")


class SessionConflictError(RuntimeError):
    """Raised when a connection already owns a live session."""

    def __init__(self, session: RecordingSession) -> None:
        super().__init__(
            f"Connection already owns session {session.id} ({session.status.value})."
        )
        self.session = session


class SessionRegistry:
    """Connection-to-session map plus a holding area for interrupted sessions."""

    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._by_connection: dict[str, RecordingSession] = {}
        self._detached: dict[UUID, RecordingSession] = {}

    async def create(
        self,
        connection_id: str,
        mode: SessionMode,
        owner_id: str,
    ) -> RecordingSession:
        """Persist a stub row and register a new ``recording`` session."""

        current = self._by_connection.get(connection_id)
        if current is not None and current.is_live:
            raise SessionConflictError(current)

        session_id = await self._store.create_session_stub(owner_id, mode.value)

        # Re-check after the await: another start may have won the slot.
        current = self._by_connection.get(connection_id)
        if current is not None and current.is_live:
            raise SessionConflictError(current)
        if current is not None:
            self._park(connection_id)

        session = RecordingSession(
            id=session_id,
            connection_id=connection_id,
            owner_id=owner_id,
            mode=mode,
            status=SessionStatus.RECORDING,
        )
        self._by_connection[connection_id] = session
        logger.info(
            "Session registered session=%s connection=%s mode=%s",
            session.id,
            connection_id,
            mode.value,
        )
        return session

    def get(self, connection_id: str) -> RecordingSession | None:
        return self._by_connection.get(connection_id)

    def find(self, session_id: UUID) -> RecordingSession | None:
        """Look a session up by id across live and detached entries."""

        for session in self._by_connection.values():
            if session.id == session_id:
                return session
        return self._detached.get(session_id)

    def remove(self, connection_id: str) -> RecordingSession | None:
        return self._by_connection.pop(connection_id, None)

    def detach(self, connection_id: str) -> RecordingSession | None:
        """Move an interrupted session out of a closed connection's slot, keeping its data."""

        session = self._by_connection.get(connection_id)
        if session is None or session.status is not SessionStatus.INTERRUPTED:
            return None
        return self._park(connection_id)

    def _park(self, connection_id: str) -> RecordingSession:
        session = self._by_connection.pop(connection_id)
        if session.status is SessionStatus.INTERRUPTED:
            self._detached[session.id] = session
        return session

    def evict(self, session_id: UUID) -> RecordingSession | None:
        return self._detached.pop(session_id, None)

    def active(self) -> Iterator[RecordingSession]:
        """Snapshot of sessions still bound to a connection."""

        return iter(list(self._by_connection.values()))

    def detached(self) -> Iterator[RecordingSession]:
        return iter(list(self._detached.values()))

    def __len__(self) -> int:
        return len(self._by_connection)


__all__ = ["SessionConflictError", "SessionRegistry"]
