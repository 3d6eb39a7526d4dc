"""HTTP request audit rows."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, Integer, String

from scribe.models.base import Base
from scribe.models.recording_session import utc_now


class RequestLog(Base):
    __tablename__ = "request_logs"

    id = Column(Integer, primary_key=True)
    logged_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    method = Column(String(10), nullable=False)
    path = Column(String(2048), nullable=False)
    route = Column(String(256), nullable=True, index=True)
    status_code = Column(Integer, nullable=False)
    duration_ms = Column(Float, nullable=True)
    client_ip = Column(String(64), nullable=True)
    user_agent = Column(String(256), nullable=True)


__all__ = ["RequestLog"]
