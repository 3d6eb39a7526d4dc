"""Pydantic schemas used as views in the MVC architecture."""

from .common import ErrorResponse
from .realtime import (
    AudioChunkPayload,
    Envelope,
    SessionCommandPayload,
    SessionStartPayload,
    VideoUploadPayload,
)
from .sessions import LiveSessionResponse, SessionResponse, TranscriptResponse

__all__ = [
    "AudioChunkPayload",
    "Envelope",
    "ErrorResponse",
    "LiveSessionResponse",
    "SessionCommandPayload",
    "SessionResponse",
    "SessionStartPayload",
    "TranscriptResponse",
    "VideoUploadPayload",
]
