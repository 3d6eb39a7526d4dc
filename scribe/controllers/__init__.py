"""FastAPI routers acting as controllers in the MVC architecture."""

from . import realtime, sessions

__all__ = ["realtime", "sessions"]
