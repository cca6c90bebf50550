"""Shared concurrency primitives for non-blocking side work.

The fallback ladder must never wait on bookkeeping: usage rows, escalation
alerts and run metrics are written in background tasks so that a slow or
broken store cannot stretch a run's measured time or change its outcome.

:class:`BackgroundDispatcher` owns those tasks:

1. **dispatch** -- schedule a coroutine and return immediately.  The task
   is held in a set so it is not garbage-collected mid-flight.
2. **drain** -- await every in-flight task; used at shutdown and in tests.

A task that fails is logged here; failures never propagate to the caller
that dispatched it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

import structlog

from pharmaroute.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class BackgroundDispatcher:
    """Fire-and-forget task runner with a drainable pending set."""

    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, coro: Coroutine[Any, Any, Any], label: str = "") -> asyncio.Task[Any]:
        """Schedule *coro* on the running loop and return its task."""
        task = asyncio.create_task(coro, name=f"{self._name}:{label}" if label else None)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every pending task (up to *timeout* seconds)."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            _logger.warning(
                "background_drain_timeout",
                dispatcher=self._name,
                completed=len(done),
                pending=len(pending),
            )

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning(
                "background_task_failed",
                dispatcher=self._name,
                task=task.get_name(),
                error=str(exc),
            )
