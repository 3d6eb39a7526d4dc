"""Common response schemas."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of REST errors; ``code`` mirrors the realtime error codes when one applies."""

    detail: str
    code: Optional[str] = None
