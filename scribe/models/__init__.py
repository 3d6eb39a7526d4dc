"""SQLAlchemy models for the MVC architecture."""

from .base import Base
from .log import RequestLog  # noqa: F401
from .recording_session import RecordingSession  # noqa: F401
from .transcript import Transcript  # noqa: F401

__all__ = [
    "Base",
    "RecordingSession",
    "RequestLog",
    "Transcript",
]
