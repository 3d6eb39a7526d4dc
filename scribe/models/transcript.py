"""SQLAlchemy model for finalized transcripts and their summaries."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from scribe.models.base import Base
from scribe.models.recording_session import RecordingSession, utc_now


class Transcript(Base):
    __tablename__ = "transcripts"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    session_id = Column(
        ForeignKey(RecordingSession.id, ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content = Column(
        Text,
        nullable=False,
    )
    summary = Column(
        Text,
        nullable=True,
    )
    timestamp_chunks = Column(
        JSONB,
        nullable=False,
        default=list,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    # relationships
    session = relationship("RecordingSession", back_populates="transcripts")
