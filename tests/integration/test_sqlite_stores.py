"""Integration tests for the SQLite assignment and usage stores.

Each test uses a temporary SQLite database to ensure isolation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from pharmaroute.models.assignment import StoredAssignment
from pharmaroute.models.extraction import TaskKind
from pharmaroute.models.usage import EscalationRecord, RunMetrics, UsageRecord
from pharmaroute.providers.storage.sqlite_assignment_store import SQLiteAssignmentStore
from pharmaroute.providers.storage.sqlite_usage_store import SQLiteUsageStore
from pharmaroute.utils.errors import AssignmentStoreError, RecordingError


@pytest_asyncio.fixture
async def assignment_store(tmp_path: Path) -> SQLiteAssignmentStore:
    """Create and initialize an assignment store with a temp DB."""
    store = SQLiteAssignmentStore(db_path=tmp_path / "assignments.db")
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def usage_store(tmp_path: Path) -> SQLiteUsageStore:
    """Create and initialize a usage store with a temp DB."""
    store = SQLiteUsageStore(db_path=tmp_path / "usage.db")
    await store.initialize()
    return store


def _usage(attempt_id: str, **overrides) -> UsageRecord:
    defaults = {
        "request_id": "req-1",
        "attempt_id": attempt_id,
        "tier_id": "business",
        "user_id": "user-7",
        "provider_id": "google",
        "assigned_provider_id": "openai",
        "model_name": "gemini-2.0-flash",
        "task_kind": TaskKind.OCR,
        "input_tokens": 100,
        "output_tokens": 20,
        "cost": 0.002,
        "response_time_ms": 400.0,
        "success": True,
    }
    defaults.update(overrides)
    return UsageRecord(**defaults)


# ======================================================================
# SQLiteAssignmentStore
# ======================================================================


class TestSQLiteAssignmentStore:
    @pytest.mark.asyncio
    async def test_rows_ordered_by_priority(self, assignment_store: SQLiteAssignmentStore) -> None:
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="business", provider_id="tesseract", priority=3))
        await assignment_store.upsert_assignment(
            StoredAssignment(tier_id="business", provider_id="openai", priority=1, model_name="gpt-4o-mini")
        )
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="business", provider_id="google", priority=2))
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="free", provider_id="google", priority=1))

        rows = await assignment_store.fetch_active_assignments("business")

        assert [row.provider_id for row in rows] == ["openai", "google", "tesseract"]
        assert rows[0].model_name == "gpt-4o-mini"
        assert all(row.is_active for row in rows)

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_row(self, assignment_store: SQLiteAssignmentStore) -> None:
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="free", provider_id="google", priority=1))
        await assignment_store.upsert_assignment(
            StoredAssignment(tier_id="free", provider_id="google", priority=4, max_tokens=512)
        )

        rows = await assignment_store.fetch_active_assignments("free")

        assert len(rows) == 1
        assert rows[0].priority == 4
        assert rows[0].max_tokens == 512

    @pytest.mark.asyncio
    async def test_inactive_rows_skipped(self, assignment_store: SQLiteAssignmentStore) -> None:
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="basic", provider_id="google"))
        await assignment_store.upsert_assignment(
            StoredAssignment(tier_id="basic", provider_id="anthropic", priority=2, is_active=False)
        )

        rows = await assignment_store.fetch_active_assignments("basic")
        assert [row.provider_id for row in rows] == ["google"]

    @pytest.mark.asyncio
    async def test_deactivate(self, assignment_store: SQLiteAssignmentStore) -> None:
        await assignment_store.upsert_assignment(StoredAssignment(tier_id="basic", provider_id="google"))

        assert await assignment_store.deactivate("basic", "google") is True
        assert await assignment_store.deactivate("basic", "google") is False
        assert await assignment_store.fetch_active_assignments("basic") == []

    @pytest.mark.asyncio
    async def test_unknown_tier_is_empty(self, assignment_store: SQLiteAssignmentStore) -> None:
        assert await assignment_store.fetch_active_assignments("platinum") == []

    @pytest.mark.asyncio
    async def test_uninitialized_db_raises(self, tmp_path: Path) -> None:
        store = SQLiteAssignmentStore(db_path=tmp_path / "empty.db")
        with pytest.raises(AssignmentStoreError, match="free"):
            await store.fetch_active_assignments("free")


# ======================================================================
# SQLiteUsageStore
# ======================================================================


class TestSQLiteUsageStore:
    @pytest.mark.asyncio
    async def test_record_attempts_and_stats(self, usage_store: SQLiteUsageStore) -> None:
        await usage_store.record_attempt(_usage("a1"))
        await usage_store.record_attempt(_usage("a2", cost=0.004, response_time_ms=600.0))
        await usage_store.record_attempt(_usage("a3", tier_id="free", user_id="user-9", cost=0.0))

        stats = await usage_store.get_usage_stats()
        assert stats.total_requests == 3
        assert stats.total_cost == pytest.approx(0.006)
        assert stats.total_tokens == 360

        business = await usage_store.get_usage_stats(tier_id="business")
        assert business.total_requests == 2
        assert business.avg_response_time_ms == pytest.approx(500.0)

        user = await usage_store.get_usage_stats(user_id="user-9")
        assert user.total_requests == 1

    @pytest.mark.asyncio
    async def test_empty_stats(self, usage_store: SQLiteUsageStore) -> None:
        stats = await usage_store.get_usage_stats()
        assert stats.total_requests == 0
        assert stats.total_cost == 0.0

    @pytest.mark.asyncio
    async def test_failed_attempt_row(self, usage_store: SQLiteUsageStore, tmp_path: Path) -> None:
        await usage_store.record_attempt(
            _usage("a1", success=False, error_kind="quota_billing", error_message="quota exceeded")
        )

        async with aiosqlite.connect(str(tmp_path / "usage.db")) as db:
            cursor = await db.execute("SELECT success, error_kind, task_kind FROM usage_records")
            row = await cursor.fetchone()

        assert row == (0, "quota_billing", "ocr")

    @pytest.mark.asyncio
    async def test_duplicate_attempt_id_raises(self, usage_store: SQLiteUsageStore) -> None:
        await usage_store.record_attempt(_usage("a1"))
        with pytest.raises(RecordingError):
            await usage_store.record_attempt(_usage("a1"))

    @pytest.mark.asyncio
    async def test_record_escalation(self, usage_store: SQLiteUsageStore, tmp_path: Path) -> None:
        await usage_store.record_escalation(
            EscalationRecord(
                request_id="req-1",
                attempt_id="a1",
                provider_id="openai",
                tier_id="business",
                title="AI provider quota exceeded: openai",
                error_message="quota exceeded",
            )
        )

        async with aiosqlite.connect(str(tmp_path / "usage.db")) as db:
            cursor = await db.execute("SELECT provider_id, alert_type, severity FROM escalations")
            rows = await cursor.fetchall()

        assert rows == [("openai", "ai_quota_error", "high")]

    @pytest.mark.asyncio
    async def test_record_run_replaces_same_request(self, usage_store: SQLiteUsageStore, tmp_path: Path) -> None:
        await usage_store.record_run(RunMetrics(request_id="req-1", tier_id="free", total_attempts=1))
        await usage_store.record_run(
            RunMetrics(request_id="req-1", tier_id="free", total_attempts=3, success=True, batch_detected=True)
        )

        async with aiosqlite.connect(str(tmp_path / "usage.db")) as db:
            cursor = await db.execute("SELECT total_attempts, success, batch_detected FROM run_metrics")
            rows = await cursor.fetchall()

        assert rows == [(3, 1, 1)]

    @pytest.mark.asyncio
    async def test_write_to_uninitialized_db_raises(self, tmp_path: Path) -> None:
        store = SQLiteUsageStore(db_path=tmp_path / "empty.db")
        with pytest.raises(RecordingError):
            await store.record_attempt(_usage("a1"))

    @pytest.mark.asyncio
    async def test_count_recent_attempts(self, usage_store: SQLiteUsageStore) -> None:
        now = datetime.now(timezone.utc)
        await usage_store.record_attempt(_usage("a1", timestamp=now - timedelta(hours=1)))
        await usage_store.record_attempt(_usage("a2", timestamp=now - timedelta(hours=23)))
        await usage_store.record_attempt(_usage("a3", timestamp=now - timedelta(days=2)))
        await usage_store.record_attempt(_usage("a4", timestamp=now, success=False, error_message="timeout"))
        await usage_store.record_attempt(_usage("a5", timestamp=now, user_id="user-9"))

        since = now - timedelta(hours=24)
        assert await usage_store.count_recent_attempts("user-7", since) == 2
        assert await usage_store.count_recent_attempts("user-9", since) == 1
        assert await usage_store.count_recent_attempts("user-404", since) == 0

    @pytest.mark.asyncio
    async def test_count_on_uninitialized_db_raises(self, tmp_path: Path) -> None:
        store = SQLiteUsageStore(db_path=tmp_path / "empty.db")
        with pytest.raises(RecordingError):
            await store.count_recent_attempts("user-7", datetime.now(timezone.utc))
