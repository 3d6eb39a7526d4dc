"""Recording history endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse

from scribe.controllers.dependencies import SessionStoreDep, StateMachineDep
from scribe.services.session_store import PersistenceError
from scribe.views.common import ErrorResponse
from scribe.views.sessions import LiveSessionResponse, SessionResponse

router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
)

logger = logging.getLogger(__name__)


def _unavailable(exc: PersistenceError) -> HTTPException:
    logger.error("Session storage unavailable: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Session storage is unavailable",
    )


@router.get("", response_model=list[SessionResponse])
async def list_sessions(store: SessionStoreDep) -> list[SessionResponse]:
    """Persisted sessions, newest first, with transcript summaries only."""

    try:
        rows = await store.list_sessions()
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return [SessionResponse.from_row(row, include_content=False) for row in rows]


@router.get("/live/{session_id}", response_model=LiveSessionResponse)
async def get_live_session(session_id: UUID, machine: StateMachineDep) -> LiveSessionResponse:
    """In-memory status of a session that is still recording, processing or interrupted."""

    session = machine.registry.find(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Live session not found",
        )
    return LiveSessionResponse(**session.snapshot())


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: UUID, store: SessionStoreDep) -> SessionResponse:
    try:
        row = await store.get_session(session_id)
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return SessionResponse.from_row(row)


@router.get("/{session_id}/download", response_class=PlainTextResponse)
async def download_transcript(session_id: UUID, store: SessionStoreDep) -> PlainTextResponse:
    """Transcript and summary of a finished session as a text attachment."""

    try:
        row = await store.get_session(session_id)
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    if row is None or not row.transcripts:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transcript not found",
        )

    transcript = row.transcripts[-1]
    body = "\n".join(
        [
            row.title,
            "",
            "Summary",
            "",
            transcript.summary or "(no summary)",
            "",
            "Transcript",
            "",
            transcript.content,
            "",
        ]
    )
    return PlainTextResponse(
        body,
        headers={"Content-Disposition": f'attachment; filename="transcript-{session_id}.txt"'},
    )
