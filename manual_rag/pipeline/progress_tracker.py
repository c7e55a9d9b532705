"""Advisory progress reporting for acquisition requests.

The caller's callback is invoked at each stage transition and is never
awaited.  A callback that returns an awaitable has it scheduled as a
task; a callback that raises (synchronously or in its task) is logged
and otherwise ignored.  Nothing a callback does can change which stage
runs next.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

import structlog

from manual_rag.models.acquisition import AcquisitionStage, ProgressEvent
from manual_rag.utils.logging import get_logger

ProgressCallback = Callable[[ProgressEvent], Any]


class ProgressReporter:
    """Delivers :class:`ProgressEvent` objects to an optional callback."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._events: list[ProgressEvent] = []
        self._pending: set[asyncio.Future] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def events(self) -> list[ProgressEvent]:
        """Events emitted so far, in order."""
        return list(self._events)

    def emit(self, stage: AcquisitionStage, detail: str | None = None) -> None:
        event = ProgressEvent(stage=stage, detail=detail)
        self._events.append(event)
        self._logger.debug("acquisition_stage", stage=stage.value, detail=detail)
        if self._callback is None:
            return

        try:
            result = self._callback(event)
        except Exception as exc:
            self._logger.warning("progress_callback_error", stage=stage.value, error=str(exc))
            return

        if inspect.isawaitable(result):
            self._schedule(result, stage)

    def _schedule(self, awaitable: Any, stage: AcquisitionStage) -> None:
        try:
            future = asyncio.ensure_future(awaitable)
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._logger.warning("progress_callback_not_scheduled", stage=stage.value, error=str(exc))
            return
        self._pending.add(future)
        future.add_done_callback(self._on_done)

    def _on_done(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self._logger.warning("progress_callback_error", error=str(exc))
