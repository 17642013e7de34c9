"""Fire-and-forget search telemetry.

:meth:`TelemetryLogger.record` only enqueues; a background worker appends
records to the search log.  The queue is bounded: when it is full the new
record is dropped and counted (``telemetry_dropped``).  Write failures are
logged as ``telemetry_write_failed`` and discarded.  Neither ever reaches
the search caller.
"""

from __future__ import annotations

import asyncio
import contextlib

from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.models.options import TelemetryOptions
from designvault.models.search import SearchQueryRecord
from designvault.utils.logging import get_logger


class TelemetryLogger:
    """Bounded, non-blocking queue in front of an :class:`ISearchLogStore`."""

    def __init__(
        self,
        log_store: ISearchLogStore,
        options: TelemetryOptions | None = None,
    ) -> None:
        self._store = log_store
        self._options = options or TelemetryOptions()
        self._queue: asyncio.Queue[SearchQueryRecord] = asyncio.Queue(maxsize=self._options.queue_size)
        self._task: asyncio.Task[None] | None = None
        self._dropped = 0
        self._written = 0
        self._failed = 0
        self._logger = get_logger(__name__)

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def written(self) -> int:
        return self._written

    @property
    def failed(self) -> int:
        return self._failed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def record(self, record: SearchQueryRecord) -> bool:
        """Enqueue *record* without waiting.  Returns ``False`` if it was dropped."""
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self._dropped += 1
            self._logger.warning(
                "telemetry_dropped",
                record_id=record.id,
                user_id=record.user_id,
                queue_size=self._options.queue_size,
                dropped_total=self._dropped,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="telemetry-writer")
        self._logger.info("telemetry_started", queue_size=self._options.queue_size)

    async def drain(self) -> None:
        """Wait until every queued record has been written or discarded."""
        if self.running:
            await self._queue.join()
        else:
            await self._flush_inline()

    async def stop(self, timeout: float = 5.0) -> None:
        """Flush pending records (up to *timeout* seconds) and stop the worker."""
        try:
            await asyncio.wait_for(self.drain(), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning("telemetry_drain_timeout", pending=self.pending)

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._logger.info(
            "telemetry_stopped",
            written=self._written,
            failed=self._failed,
            dropped=self._dropped,
        )

    async def _run(self) -> None:
        while True:
            record = await self._queue.get()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def _flush_inline(self) -> None:
        while not self._queue.empty():
            record = self._queue.get_nowait()
            try:
                await self._write(record)
            finally:
                self._queue.task_done()

    async def _write(self, record: SearchQueryRecord) -> None:
        try:
            await self._store.append(record)
        except Exception as exc:
            self._failed += 1
            self._logger.warning(
                "telemetry_write_failed",
                record_id=record.id,
                error=str(exc),
            )
            return
        self._written += 1
