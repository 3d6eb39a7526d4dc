from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TranscriptResponse(BaseModel):
    """Persisted transcript of a finished session."""

    id: UUID
    content: str
    summary: Optional[str] = None
    timestampChunks: List[Dict[str, Any]] = Field(default_factory=list)
    createdAt: datetime


class SessionResponse(BaseModel):
    """Persisted recording session as listed by the history endpoints."""

    id: UUID
    ownerId: str
    title: str
    mode: str
    status: str
    duration: int
    createdAt: datetime
    updatedAt: datetime
    transcripts: List[TranscriptResponse] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Any, *, include_content: bool = True) -> "SessionResponse":
        transcripts = [
            TranscriptResponse(
                id=transcript.id,
                content=transcript.content if include_content else "",
                summary=transcript.summary,
                timestampChunks=list(transcript.timestamp_chunks or []),
                createdAt=transcript.created_at,
            )
            for transcript in row.transcripts
        ]
        return cls(
            id=row.id,
            ownerId=row.owner_id,
            title=row.title,
            mode=row.mode,
            status=row.status,
            duration=row.duration,
            createdAt=row.created_at,
            updatedAt=row.updated_at,
            transcripts=transcripts,
        )


class LiveSessionResponse(BaseModel):
    """In-memory view of a session that has not finished yet."""

    sessionId: UUID
    status: str
    mode: str
    ownerId: str
    duration: int
    chunkCount: int
    startedAt: datetime
