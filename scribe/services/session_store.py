"""Relational persistence for recording sessions and transcripts.

The realtime core calls each write exactly once; any SQLAlchemy failure is
raised as :class:`PersistenceError` and the caller decides what the client
sees. Nothing here retries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from scribe.database import session_scope
from scribe.models.recording_session import RecordingSession as SessionRow
from scribe.models.transcript import Transcript

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when a session write or read fails."""


class SessionStore(Protocol):
    """Persistence collaborator consumed by the realtime core."""

    async def create_session_stub(self, owner_id: str, mode: str) -> UUID:
        ...

    async def update_session_status(self, session_id: UUID, status: str) -> None:
        ...

    async def update_session_duration(self, session_id: UUID, seconds: int) -> None:
        ...

    async def update_session_title(self, session_id: UUID, title: str) -> None:
        ...

    async def store_transcript(
        self,
        session_id: UUID,
        content: str,
        summary: str,
        timestamp_chunks: Sequence[Mapping[str, Any]],
    ) -> None:
        ...


def _default_title(mode: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return f"Recording {stamp}" if mode != "video-upload" else f"Upload {stamp}"


class SqlSessionStore:
    """SQLAlchemy-backed implementation of :class:`SessionStore`."""

    async def create_session_stub(self, owner_id: str, mode: str) -> UUID:
        row = SessionRow(
            owner_id=owner_id,
            mode=mode,
            title=_default_title(mode),
            status="recording",
            duration=0,
        )
        try:
            async with session_scope() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Could not create session record: {exc}") from exc
        return row.id

    async def _update(self, session_id: UUID, **fields: Any) -> None:
        try:
            async with session_scope() as session:
                row = await session.get(SessionRow, session_id)
                if row is None:
                    raise PersistenceError(f"Session {session_id} does not exist.")
                for name, value in fields.items():
                    setattr(row, name, value)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Could not update session {session_id}: {exc}") from exc

    async def update_session_status(self, session_id: UUID, status: str) -> None:
        await self._update(session_id, status=status)

    async def update_session_duration(self, session_id: UUID, seconds: int) -> None:
        await self._update(session_id, duration=max(int(seconds), 0))

    async def update_session_title(self, session_id: UUID, title: str) -> None:
        await self._update(session_id, title=title[:255])

    async def store_transcript(
        self,
        session_id: UUID,
        content: str,
        summary: str,
        timestamp_chunks: Sequence[Mapping[str, Any]],
    ) -> None:
        try:
            async with session_scope() as session:
                session.add(
                    Transcript(
                        session_id=session_id,
                        content=content,
                        summary=summary,
                        timestamp_chunks=[dict(chunk) for chunk in timestamp_chunks],
                    )
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Could not store transcript for {session_id}: {exc}") from exc

    async def list_sessions(self) -> list[SessionRow]:
        """All persisted sessions newest first, transcripts eagerly loaded."""

        try:
            async with session_scope() as session:
                result = await session.execute(
                    select(SessionRow)
                    .options(selectinload(SessionRow.transcripts))
                    .order_by(SessionRow.created_at.desc())
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Could not list sessions: {exc}") from exc

    async def get_session(self, session_id: UUID) -> SessionRow | None:
        try:
            async with session_scope() as session:
                result = await session.execute(
                    select(SessionRow)
                    .options(selectinload(SessionRow.transcripts))
                    .where(SessionRow.id == session_id)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(f"Could not load session {session_id}: {exc}") from exc


__all__ = ["PersistenceError", "SessionStore", "SqlSessionStore"]
