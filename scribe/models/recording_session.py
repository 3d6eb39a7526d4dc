"""SQLAlchemy model for persisted recording sessions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from scribe.models.base import Base


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp used for row defaults."""
    return datetime.now(timezone.utc)


class RecordingSession(Base):
    __tablename__ = "recording_sessions"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    owner_id = Column(
        String(128),
        nullable=False,
        index=True,
    )
    title = Column(
        String(255),
        nullable=False,
    )
    mode = Column(
        String(32),
        nullable=False,
    )
    status = Column(
        String(32),
        nullable=False,
        index=True,
    )
    duration = Column(
        Integer,
        nullable=False,
        default=0,
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    # relationships
    transcripts = relationship(
        "Transcript",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Transcript.created_at",
    )
