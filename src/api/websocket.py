"""WebSocket endpoint for real-time ingestion progress updates.

Connects a client to one ingestion session via the ``ProgressTracker``
listener mechanism.  Each progress event is pushed as a JSON message with
``session_id``, ``stage``, ``progress``, ``message`` and ``extra``.

    client                          server
    ------                          ------
    connect          ------>        accept, register listener
                     <------        latest snapshot
                     <------        one message per event
    close            ------>        unregister listener

A client that connects late only receives the latest snapshot; earlier
events are not replayed.
"""

from __future__ import annotations

import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from src.models.ingestion import IngestionProgressEvent
from src.pipeline.progress_tracker import ProgressTracker
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def event_message(session_id: str, event: IngestionProgressEvent) -> dict:
    """Serialize *event* into the JSON shape pushed to clients."""
    return {
        "session_id": session_id,
        "stage": event.stage.value,
        "progress": round(event.progress_percent, 1),
        "message": event.message,
        "extra": event.extra,
    }


async def websocket_progress(websocket: WebSocket, session_id: str) -> None:
    """Stream ingestion progress updates for *session_id* over WebSocket.

    Parameters
    ----------
    websocket:
        The WebSocket connection managed by FastAPI / Starlette.
    session_id:
        The ingestion session to subscribe to.
    """
    progress_tracker: ProgressTracker = websocket.app.state.progress_tracker

    await websocket.accept()
    _logger.info("websocket_connected", session_id=session_id)

    async def _on_progress(sid: str, event: IngestionProgressEvent) -> None:
        # The socket may close between events; cleanup happens below.
        with contextlib.suppress(Exception):
            await websocket.send_json(event_message(sid, event))

    progress_tracker.register_listener(session_id, _on_progress)

    try:
        status = progress_tracker.get_status(session_id)
        await websocket.send_json({"session_id": session_id, **status})

        # Blocks until the client disconnects.
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", session_id=session_id)

    finally:
        progress_tracker.unregister_listener(session_id, _on_progress)
        _logger.debug("websocket_listener_cleaned_up", session_id=session_id)
