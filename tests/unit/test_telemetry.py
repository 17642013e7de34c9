"""Unit tests for the TelemetryLogger queue and worker."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from designvault.interfaces.search_log_store import ISearchLogStore
from designvault.models.options import TelemetryOptions
from designvault.models.search import SearchQueryRecord, SearchTier
from designvault.providers.store.sqlite_search_log_store import SQLiteSearchLogStore
from designvault.services.telemetry import TelemetryLogger
from designvault.utils.errors import TelemetryWriteError


def _record(record_id: str = "r1", user_id: str = "user-alice") -> SearchQueryRecord:
    return SearchQueryRecord(
        id=record_id,
        user_id=user_id,
        query="sofa",
        result_count=1,
        latency_ms=3.2,
        tier=SearchTier.STRUCTURED,
        created_at=datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc),
    )


def _log_store() -> MagicMock:
    store = MagicMock(spec=ISearchLogStore)
    store.append = AsyncMock(return_value=None)
    return store


class TestRecord:
    @pytest.mark.asyncio
    async def test_record_only_enqueues(self) -> None:
        store = _log_store()
        telemetry = TelemetryLogger(store)

        assert telemetry.record(_record()) is True
        assert telemetry.pending == 1
        store.append.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_queue_drops_and_counts(self) -> None:
        telemetry = TelemetryLogger(_log_store(), TelemetryOptions(queue_size=2))

        results = [telemetry.record(_record(f"r{i}")) for i in range(4)]

        assert results == [True, True, False, False]
        assert telemetry.dropped == 2
        assert telemetry.pending == 2

    @pytest.mark.asyncio
    async def test_drain_without_worker_flushes_inline(self) -> None:
        store = _log_store()
        telemetry = TelemetryLogger(store)
        telemetry.record(_record("r1"))
        telemetry.record(_record("r2"))

        await telemetry.drain()

        assert telemetry.written == 2
        assert telemetry.pending == 0
        assert [c.args[0].id for c in store.append.await_args_list] == ["r1", "r2"]


class TestWorker:
    @pytest.mark.asyncio
    async def test_worker_writes_queued_records(self) -> None:
        store = _log_store()
        telemetry = TelemetryLogger(store)
        await telemetry.start()
        assert telemetry.running is True

        for i in range(5):
            telemetry.record(_record(f"r{i}"))
        await telemetry.drain()

        assert telemetry.written == 5
        await telemetry.stop()
        assert telemetry.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        telemetry = TelemetryLogger(_log_store())
        await telemetry.start()
        first = telemetry._task
        await telemetry.start()

        assert telemetry._task is first
        await telemetry.stop()

    @pytest.mark.asyncio
    async def test_write_failures_are_counted_not_raised(self) -> None:
        store = _log_store()
        store.append = AsyncMock(
            side_effect=[TelemetryWriteError(message="disk full"), None, RuntimeError("odd")]
        )
        telemetry = TelemetryLogger(store)
        await telemetry.start()

        for i in range(3):
            telemetry.record(_record(f"r{i}"))
        await telemetry.stop()

        assert telemetry.failed == 2
        assert telemetry.written == 1

    @pytest.mark.asyncio
    async def test_stop_gives_up_on_hung_writer(self) -> None:
        store = _log_store()

        async def _hang(record: SearchQueryRecord) -> None:
            await asyncio.Event().wait()

        store.append = AsyncMock(side_effect=_hang)
        telemetry = TelemetryLogger(store)
        await telemetry.start()
        telemetry.record(_record())

        await asyncio.wait_for(telemetry.stop(timeout=0.05), timeout=2.0)

        assert telemetry.running is False
        assert telemetry.written == 0

    @pytest.mark.asyncio
    async def test_stop_flushes_pending_records(self, search_log_store: SQLiteSearchLogStore) -> None:
        telemetry = TelemetryLogger(search_log_store)
        await telemetry.start()
        telemetry.record(_record("r1"))
        telemetry.record(_record("r2"))

        await telemetry.stop()

        stored = await search_log_store.recent("user-alice")
        assert {r.id for r in stored} == {"r1", "r2"}
