"""Realtime WebSocket message schemas."""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator

from scribe.pipelines.session.types import SessionMode

_MODE_ALIASES = {
    "mic": SessionMode.MICROPHONE,
    "microphone": SessionMode.MICROPHONE,
    "tab": SessionMode.TAB_AUDIO,
    "tab-audio": SessionMode.TAB_AUDIO,
    "video": SessionMode.VIDEO_UPLOAD,
    "video-upload": SessionMode.VIDEO_UPLOAD,
}


class Envelope(BaseModel):
    """Frame wrapper used in both directions: ``{"event": ..., "data": {...}}``."""

    event: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class SessionStartPayload(BaseModel):
    ownerId: str = Field(
        default="anonymous",
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("ownerId", "userId", "owner_id"),
    )
    mode: SessionMode = SessionMode.MICROPHONE

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            mode = _MODE_ALIASES.get(value.strip().lower())
            if mode is None:
                raise ValueError(f"Unsupported capture mode: {value}")
            return mode
        return value


class SessionCommandPayload(BaseModel):
    """Payload of pause/resume/stop/cancel/status commands."""

    sessionId: Optional[UUID] = None


class AudioChunkPayload(BaseModel):
    sessionId: Optional[UUID] = None
    data: str = Field(..., min_length=1, description="Base64 encoded audio bytes")
    timestamp: float = Field(..., gt=0)
    size: Optional[int] = Field(default=None, ge=0)


class VideoUploadPayload(BaseModel):
    sessionId: Optional[UUID] = None
    data: str = Field(..., min_length=1, description="Base64 encoded video bytes")
    filename: str = Field(default="upload", max_length=200)
    fileSize: int = Field(..., ge=0)


__all__ = [
    "AudioChunkPayload",
    "Envelope",
    "SessionCommandPayload",
    "SessionStartPayload",
    "VideoUploadPayload",
]
