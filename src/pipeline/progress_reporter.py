"""Per-run progress reporting for one ingestion request.

A :class:`ProgressReporter` is created for each ingestion run and pushes
:class:`~src.models.ingestion.IngestionProgressEvent` objects into a sink
(usually :meth:`ProgressTracker.publish` bound to a session id, or a CLI
printer).  Delivery is fire-and-forget:

    IngestionService --emit()--> ProgressReporter --sink(event)--> transport

- The percent never moves backwards within a run; a lower request is
  raised to the current value.
- Warnings carry the current percent unchanged.
- After a terminal event (``complete`` or ``error``) nothing more is sent.
- A sink that raises is logged and ignored; the pipeline keeps running.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.models.ingestion import IngestionProgressEvent, IngestionStage
from src.utils.logging import get_logger

ProgressSink = Callable[[IngestionProgressEvent], Awaitable[None] | None]

# Fixed checkpoints (percent) for each stage of a run.
VALIDATION_PERCENT = 5.0
EXTRACTION_TEXT_PERCENT = 10.0
EXTRACTION_IMAGE_PERCENT = 15.0
EXTRACTED_PERCENT = 20.0
CHUNKING_PERCENT = 20.0
EMBEDDING_START_PERCENT = 30.0
EMBEDDING_END_PERCENT = 70.0
STORING_PERCENT = 75.0
FINALIZING_PERCENT = 90.0
COMPLETE_PERCENT = 100.0


def embedding_percent(batches_done: int, total_batches: int) -> float:
    """Map embedding batch progress linearly onto 30..70."""
    if total_batches <= 0:
        return EMBEDDING_END_PERCENT
    fraction = min(1.0, max(0.0, batches_done / total_batches))
    return EMBEDDING_START_PERCENT + (EMBEDDING_END_PERCENT - EMBEDDING_START_PERCENT) * fraction


class ProgressReporter:
    """Emits a monotonic sequence of progress events for a single run.

    Parameters
    ----------
    sink:
        Sync or async callable receiving each event, or ``None`` to only
        record events locally (e.g. for batch jobs).
    run_id:
        Identifier bound into log lines.
    """

    def __init__(self, sink: ProgressSink | None = None, run_id: str | None = None) -> None:
        self._sink = sink
        self._run_id = run_id
        self._percent = 0.0
        self._terminal: IngestionStage | None = None
        self._history: list[IngestionProgressEvent] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def percent(self) -> float:
        return self._percent

    @property
    def history(self) -> list[IngestionProgressEvent]:
        """Events emitted so far by this reporter, oldest first."""
        return list(self._history)

    @property
    def terminal_stage(self) -> IngestionStage | None:
        return self._terminal

    def detach(self) -> None:
        """Stop delivering events (e.g. the client disconnected).

        The run keeps going; events are still recorded in :attr:`history`.
        """
        self._sink = None

    async def emit(
        self,
        stage: IngestionStage,
        message: str,
        percent: float | None = None,
        **extra: Any,
    ) -> IngestionProgressEvent | None:
        """Send one event.  Returns ``None`` if the run already ended."""
        if self._terminal is not None:
            self._logger.debug(
                "progress_after_terminal_ignored",
                run_id=self._run_id,
                stage=stage.value,
                terminal=self._terminal.value,
            )
            return None

        if percent is not None and stage is not IngestionStage.WARNING:
            self._percent = max(self._percent, min(100.0, max(0.0, percent)))

        event = IngestionProgressEvent(
            stage=stage,
            message=message,
            progress_percent=self._percent,
            extra=extra,
        )
        if stage.is_terminal:
            self._terminal = stage
        self._history.append(event)
        await self._deliver(event)
        return event

    async def warning(self, message: str, **extra: Any) -> IngestionProgressEvent | None:
        return await self.emit(IngestionStage.WARNING, message, **extra)

    async def error(self, message: str, **extra: Any) -> IngestionProgressEvent | None:
        return await self.emit(IngestionStage.ERROR, message, **extra)

    async def complete(self, message: str, **extra: Any) -> IngestionProgressEvent | None:
        return await self.emit(IngestionStage.COMPLETE, message, COMPLETE_PERCENT, **extra)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _deliver(self, event: IngestionProgressEvent) -> None:
        if self._sink is None:
            return
        try:
            result = self._sink(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            self._logger.warning(
                "progress_sink_error",
                run_id=self._run_id,
                stage=event.stage.value,
                error=str(exc),
            )
