"""Realtime recording endpoint.

One WebSocket connection carries one recording at a time. Frames are JSON
envelopes ``{"event": ..., "data": {...}}``; each inbound frame is validated,
handed to :class:`SessionStateMachine` and fully handled before the next frame
is read, so commands from one connection apply in the order they were sent.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from scribe.controllers.dependencies import StateMachineDep
from scribe.pipelines.session import CommandRejected, SessionStateMachine
from scribe.telemetry import record_rejection
from scribe.views.realtime import (
    AudioChunkPayload,
    Envelope,
    SessionCommandPayload,
    SessionStartPayload,
    VideoUploadPayload,
)

router = APIRouter(tags=["realtime"])

logger = logging.getLogger(__name__)


class WebSocketEventSink:
    """Send envelopes to one client; sends after the socket closed are dropped."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self.closed = False

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        if self.closed:
            logger.debug("Socket closed, not sending %s", event)
            return
        try:
            await self._websocket.send_json({"event": event, "data": dict(payload)})
        except (WebSocketDisconnect, RuntimeError) as exc:
            self.closed = True
            logger.info("Client went away before %s could be delivered: %s", event, exc)


Handler = Callable[[SessionStateMachine, str, Any], Awaitable[Any]]


async def _start(machine: SessionStateMachine, connection_id: str, payload: SessionStartPayload) -> None:
    await machine.start(connection_id, payload.ownerId, payload.mode)


async def _chunk(machine: SessionStateMachine, connection_id: str, payload: AudioChunkPayload) -> None:
    await machine.ingest_chunk(
        connection_id, payload.sessionId, payload.data, payload.timestamp, payload.size
    )


async def _video(machine: SessionStateMachine, connection_id: str, payload: VideoUploadPayload) -> None:
    await machine.upload_video(
        connection_id, payload.sessionId, payload.data, payload.filename, payload.fileSize
    )


async def _pause(machine: SessionStateMachine, connection_id: str, payload: SessionCommandPayload) -> None:
    await machine.pause(connection_id, payload.sessionId)


async def _resume(machine: SessionStateMachine, connection_id: str, payload: SessionCommandPayload) -> None:
    await machine.resume(connection_id, payload.sessionId)


async def _stop(machine: SessionStateMachine, connection_id: str, payload: SessionCommandPayload) -> None:
    await machine.stop(connection_id, payload.sessionId)


async def _cancel(machine: SessionStateMachine, connection_id: str, payload: SessionCommandPayload) -> None:
    await machine.cancel(connection_id, payload.sessionId)


async def _status(machine: SessionStateMachine, connection_id: str, payload: SessionCommandPayload) -> None:
    await machine.status(connection_id, payload.sessionId)


HANDLERS: dict[str, tuple[type[BaseModel], Handler]] = {
    "session:start": (SessionStartPayload, _start),
    "audio:chunk": (AudioChunkPayload, _chunk),
    "video:upload": (VideoUploadPayload, _video),
    "session:pause": (SessionCommandPayload, _pause),
    "session:resume": (SessionCommandPayload, _resume),
    "session:stop": (SessionCommandPayload, _stop),
    "session:cancel": (SessionCommandPayload, _cancel),
    "session:status": (SessionCommandPayload, _status),
}


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"Invalid {location}: {first.get('msg', 'invalid value')}"


async def dispatch(
    machine: SessionStateMachine,
    connection_id: str,
    sink: WebSocketEventSink,
    raw: str,
) -> None:
    """Validate one inbound frame and run its command."""

    try:
        envelope = Envelope.model_validate_json(raw)
    except ValidationError as exc:
        record_rejection("invalid_payload")
        await sink.emit("error", {"message": _describe(exc), "code": "invalid_payload"})
        return

    entry = HANDLERS.get(envelope.event)
    if entry is None:
        record_rejection("invalid_payload")
        await sink.emit(
            "error",
            {"message": f"Unknown event: {envelope.event}", "code": "invalid_payload"},
        )
        return

    model, handler = entry
    try:
        payload = model.model_validate(envelope.data)
    except ValidationError as exc:
        record_rejection("invalid_payload")
        event = "video:error" if envelope.event == "video:upload" else "error"
        await sink.emit(event, {"message": _describe(exc), "code": "invalid_payload"})
        return

    try:
        await handler(machine, connection_id, payload)
    except CommandRejected as exc:
        record_rejection(exc.code)
        logger.info("Rejected %s from %s: %s (%s)", envelope.event, connection_id, exc.message, exc.code)
        await sink.emit(exc.event, exc.payload())


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, machine: StateMachineDep) -> None:
    """Drive recording sessions for one client connection."""

    await websocket.accept()
    connection_id = uuid4().hex
    sink = WebSocketEventSink(websocket)
    machine.connect(connection_id, sink)
    logger.info("Realtime client connected connection=%s", connection_id)

    try:
        while True:
            raw = await websocket.receive_text()
            await dispatch(machine, connection_id, sink, raw)
    except WebSocketDisconnect:
        logger.info("Realtime client disconnected connection=%s", connection_id)
    finally:
        sink.closed = True
        machine.disconnect(connection_id)
