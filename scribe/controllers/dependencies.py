"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from scribe.pipelines.session import SessionStateMachine, get_runtime
from scribe.services.session_store import SqlSessionStore


def get_state_machine() -> SessionStateMachine:
    """Process-wide session state machine."""

    return get_runtime().machine


def get_session_store() -> SqlSessionStore:
    return SqlSessionStore()


StateMachineDep = Annotated[SessionStateMachine, Depends(get_state_machine)]
SessionStoreDep = Annotated[SqlSessionStore, Depends(get_session_store)]


__all__ = ["get_session_store", "get_state_machine", "SessionStoreDep", "StateMachineDep"]
