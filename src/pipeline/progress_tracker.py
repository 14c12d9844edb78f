"""Session-keyed fan-out of ingestion progress events.

Keeps the latest event for each session and broadcasts new events to the
listener callbacks registered for that session.  Sessions are independent,
so concurrent ingestion runs never see each other's events.

    ProgressReporter --publish()--> ProgressTracker --callback()--> WebSocket handler
                                                    --callback()--> (any other listener)

- A client that subscribes late only gets the latest snapshot, not a
  replay of earlier events.
- Listener errors are caught and logged; they never reach the pipeline.
- Both sync and async callbacks are supported.
- Snapshots of finished runs (``complete`` or ``error``) are kept for
  ``retention_seconds`` so late status polls still see the outcome, and
  at most ``max_sessions`` snapshots are held.  Runs still in flight are
  never evicted.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from src.models.ingestion import IngestionProgressEvent, IngestionStage
from src.utils.logging import get_logger

_TERMINAL_STAGES = frozenset({IngestionStage.COMPLETE, IngestionStage.ERROR})

DEFAULT_RETENTION_SECONDS = 600.0
DEFAULT_MAX_SESSIONS = 1000


class ProgressTracker:
    """Tracks and broadcasts ingestion progress via callbacks.

    Callbacks receive ``(session_id, event)`` where *event* is an
    :class:`IngestionProgressEvent`.

    Parameters
    ----------
    retention_seconds:
        How long the snapshot of a finished run stays queryable.
    max_sessions:
        Upper bound on stored snapshots; the oldest finished runs are
        evicted first once it is exceeded.
    clock:
        Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._retention_seconds = retention_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._latest: dict[str, IngestionProgressEvent] = {}
        # session_id -> time the run finished, oldest first.
        self._finished: dict[str, float] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, session_id: str, event: IngestionProgressEvent) -> None:
        """Record *event* as the session's latest state and notify listeners."""
        self._latest[session_id] = event
        self._finished.pop(session_id, None)
        if event.stage in _TERMINAL_STAGES:
            self._finished[session_id] = self._clock()
        self._evict()

        self._logger.debug(
            "progress_update",
            session_id=session_id,
            stage=event.stage.value,
            progress=round(event.progress_percent, 1),
            message=event.message,
        )

        await self._notify_listeners(session_id, event)

    def sink_for(self, session_id: str) -> Callable[[IngestionProgressEvent], Any]:
        """Return a reporter sink that publishes into *session_id*."""

        async def _sink(event: IngestionProgressEvent) -> None:
            await self.publish(session_id, event)

        return _sink

    def register_listener(self, session_id: str, callback: Callable) -> None:
        """Register a callback to receive progress events for a session."""
        listeners = self._listeners.setdefault(session_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                session_id=session_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, session_id: str, callback: Callable) -> None:
        """Remove a previously registered callback for a session."""
        listeners = self._listeners.get(session_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                session_id=session_id,
                remaining_listeners=len(listeners),
            )
        if not listeners:
            self._listeners.pop(session_id, None)

    def get_status(self, session_id: str) -> dict[str, Any]:
        """Return the latest stage and progress for a session.

        Returns
        -------
        dict
            Keys ``stage``, ``progress``, ``message`` and ``extra``.  An
            unknown session reports stage ``"pending"`` at 0 percent, as
            does a finished one whose snapshot has expired.
        """
        self._evict()
        event = self._latest.get(session_id)
        if event is None:
            return {"stage": "pending", "progress": 0.0, "message": "", "extra": {}}

        return {
            "stage": event.stage.value,
            "progress": event.progress_percent,
            "message": event.message,
            "extra": dict(event.extra),
        }

    def forget(self, session_id: str) -> None:
        """Drop the stored snapshot for a session immediately."""
        self._latest.pop(session_id, None)
        self._finished.pop(session_id, None)

    @property
    def session_count(self) -> int:
        """Number of snapshots currently held."""
        return len(self._latest)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _evict(self) -> None:
        """Drop expired finished snapshots, then the oldest ones over the cap."""
        cutoff = self._clock() - self._retention_seconds
        expired = [sid for sid, finished_at in self._finished.items() if finished_at < cutoff]

        overflow = len(self._latest) - len(expired) - self._max_sessions
        if overflow > 0:
            already = set(expired)
            remaining = [sid for sid in self._finished if sid not in already]
            expired.extend(remaining[:overflow])

        for sid in expired:
            self._finished.pop(sid, None)
            self._latest.pop(sid, None)

        if expired:
            self._logger.debug(
                "progress_snapshots_evicted",
                evicted=len(expired),
                remaining=len(self._latest),
            )

    async def _notify_listeners(self, session_id: str, event: IngestionProgressEvent) -> None:
        # Copy: a listener may unregister itself while we iterate.
        listeners = list(self._listeners.get(session_id, []))
        for callback in listeners:
            try:
                result = callback(session_id, event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    session_id=session_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
