"""Unit tests for UsageRecorder."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pharmaroute.models.extraction import ExtractedFields, TaskKind
from pharmaroute.models.fallback import AttemptRecord, ErrorKind
from pharmaroute.models.usage import EscalationRecord, RunMetrics, UsageContext, UsageRecord
from pharmaroute.services.usage_recorder import UsageRecorder
from pharmaroute.utils.errors import RecordingError


def _context(**overrides) -> UsageContext:
    defaults = {"request_id": "req-1", "tier_id": "business", "user_id": "user-7", "image_count": 2}
    defaults.update(overrides)
    return UsageContext(**defaults)


def _success(provider: str = "google") -> AttemptRecord:
    return AttemptRecord(
        provider_id=provider,
        assigned_provider_id=provider,
        success=True,
        fields=ExtractedFields(batch_number="T36184B", confidence=0.8),
        model_name="gemini-2.0-flash",
        input_tokens=100,
        output_tokens=20,
        duration_ms=420.0,
        cost=0.0002,
    )


def _failure(error: str, provider: str = "openai", error_kind: ErrorKind | None = None) -> AttemptRecord:
    return AttemptRecord(
        provider_id=provider,
        assigned_provider_id=provider,
        success=False,
        error=error,
        error_kind=error_kind,
    )


# ======================================================================
# Usage rows
# ======================================================================


class TestRecordAttempt:
    @pytest.mark.asyncio
    async def test_success_row(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        attempt = _success()

        recorder.record(attempt, _context())
        await recorder.drain()

        row: UsageRecord = mock_usage_store.record_attempt.await_args.args[0]
        assert row.request_id == "req-1"
        assert row.attempt_id == attempt.attempt_id
        assert row.tier_id == "business"
        assert row.user_id == "user-7"
        assert row.provider_id == "google"
        assert row.task_kind is TaskKind.OCR
        assert row.input_tokens == 100
        assert row.cost == pytest.approx(0.0002)
        assert row.response_time_ms == pytest.approx(420.0)
        assert row.success is True
        assert row.error_kind is None
        mock_notifier.send_alert.assert_not_called()

    @pytest.mark.asyncio
    async def test_redirected_attempt_keeps_both_providers(self, mock_usage_store, mock_notifier) -> None:
        attempt = AttemptRecord(provider_id="google", assigned_provider_id="openai", success=True)
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(attempt, _context())
        await recorder.drain()

        row = mock_usage_store.record_attempt.await_args.args[0]
        assert (row.provider_id, row.assigned_provider_id) == ("google", "openai")

    @pytest.mark.asyncio
    async def test_failure_classified_from_message(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_failure("connection reset"), _context())
        await recorder.drain()

        row = mock_usage_store.record_attempt.await_args.args[0]
        assert row.success is False
        assert row.error_kind == "other"
        assert row.error_message == "connection reset"

    @pytest.mark.asyncio
    async def test_record_returns_before_write_completes(self, mock_usage_store, mock_notifier) -> None:
        gate = asyncio.Event()

        async def _slow_write(record):
            await gate.wait()

        mock_usage_store.record_attempt.side_effect = _slow_write
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_success(), _context())
        await asyncio.sleep(0)
        assert recorder.pending == 1

        gate.set()
        await recorder.drain()
        assert recorder.pending == 0

    @pytest.mark.asyncio
    async def test_store_failure_swallowed(self, mock_usage_store, mock_notifier) -> None:
        mock_usage_store.record_attempt.side_effect = RecordingError("disk full")
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_success(), _context())
        await recorder.drain()

        mock_usage_store.record_attempt.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_store_is_a_noop(self, mock_notifier) -> None:
        recorder = UsageRecorder(None, mock_notifier)
        recorder.record(_success(), _context())
        await recorder.drain()
        mock_notifier.send_alert.assert_not_called()


# ======================================================================
# Escalations
# ======================================================================


class TestEscalation:
    @pytest.mark.asyncio
    async def test_quota_failure_escalates_once(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        attempt = _failure("You exceeded your current quota", error_kind=ErrorKind.QUOTA_BILLING)

        recorder.record(attempt, _context())
        await recorder.drain()

        mock_notifier.send_alert.assert_awaited_once()
        escalation: EscalationRecord = mock_notifier.send_alert.await_args.args[0]
        assert escalation.provider_id == "openai"
        assert escalation.attempt_id == attempt.attempt_id
        assert escalation.alert_type == "ai_quota_error"
        assert escalation.severity == "high"
        assert escalation.title == "AI provider quota exceeded: openai"
        assert escalation.error_message == "You exceeded your current quota"
        mock_usage_store.record_escalation.assert_awaited_once_with(escalation)

        row = mock_usage_store.record_attempt.await_args.args[0]
        assert row.error_kind == "quota_billing"

    @pytest.mark.asyncio
    async def test_unclassified_quota_message_still_escalates(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        recorder.record(_failure("billing hard limit reached"), _context())
        await recorder.drain()
        mock_notifier.send_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_two_quota_failures_two_alerts(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_failure("quota exceeded", provider="openai", error_kind=ErrorKind.QUOTA_BILLING), _context())
        recorder.record(_failure("quota exceeded", provider="google", error_kind=ErrorKind.QUOTA_BILLING), _context())
        await recorder.drain()

        assert mock_notifier.send_alert.await_count == 2
        assert mock_usage_store.record_escalation.await_count == 2

    @pytest.mark.asyncio
    async def test_other_failure_not_escalated(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        recorder.record(_failure("timed out", error_kind=ErrorKind.OTHER), _context())
        await recorder.drain()
        mock_notifier.send_alert.assert_not_called()
        mock_usage_store.record_escalation.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_failure_still_persists_escalation(self, mock_usage_store, mock_notifier) -> None:
        mock_notifier.send_alert.side_effect = RecordingError("webhook down")
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_failure("quota", error_kind=ErrorKind.QUOTA_BILLING), _context())
        await recorder.drain()

        mock_usage_store.record_escalation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_escalation_store_failure_swallowed(self, mock_usage_store, mock_notifier) -> None:
        mock_usage_store.record_escalation.side_effect = RuntimeError("locked")
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record(_failure("quota", error_kind=ErrorKind.QUOTA_BILLING), _context())
        await recorder.drain()

        mock_notifier.send_alert.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_store_still_alerts(self, mock_notifier) -> None:
        recorder = UsageRecorder(None, mock_notifier)
        recorder.record(_failure("quota", error_kind=ErrorKind.QUOTA_BILLING), _context())
        await recorder.drain()
        mock_notifier.send_alert.assert_awaited_once()


# ======================================================================
# Run metrics
# ======================================================================


class TestRecordRun:
    @pytest.mark.asyncio
    async def test_metrics_persisted(self, mock_usage_store, mock_notifier) -> None:
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        metrics = RunMetrics(request_id="req-1", tier_id="free", strategy="primary", success=True)

        recorder.record_run(metrics)
        await recorder.drain()

        mock_usage_store.record_run.assert_awaited_once_with(metrics)

    @pytest.mark.asyncio
    async def test_metrics_failure_swallowed(self, mock_usage_store, mock_notifier) -> None:
        mock_usage_store.record_run.side_effect = RecordingError("disk full")
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        recorder.record_run(RunMetrics(request_id="req-1", tier_id="free"))
        await recorder.drain()

        assert recorder.pending == 0


# ======================================================================
# Recent usage counts
# ======================================================================


class TestCountRecentAttempts:
    @pytest.mark.asyncio
    async def test_delegates_to_store(self, mock_usage_store, mock_notifier) -> None:
        mock_usage_store.count_recent_attempts.return_value = 7
        recorder = UsageRecorder(mock_usage_store, mock_notifier)
        since = datetime.now(timezone.utc) - timedelta(hours=24)

        assert await recorder.count_recent_attempts("user-7", since) == 7
        mock_usage_store.count_recent_attempts.assert_awaited_once_with("user-7", since)

    @pytest.mark.asyncio
    async def test_unreadable_store_counts_as_zero(self, mock_usage_store, mock_notifier) -> None:
        mock_usage_store.count_recent_attempts.side_effect = RecordingError("database is locked")
        recorder = UsageRecorder(mock_usage_store, mock_notifier)

        assert await recorder.count_recent_attempts("user-7", datetime.now(timezone.utc)) == 0

    @pytest.mark.asyncio
    async def test_no_store_counts_as_zero(self, mock_notifier) -> None:
        recorder = UsageRecorder(None, mock_notifier)
        assert await recorder.count_recent_attempts("user-7", datetime.now(timezone.utc)) == 0
