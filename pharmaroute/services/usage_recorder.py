"""Usage and escalation recording for provider attempts.

Every provider call made during a fallback run produces one usage row.
A failed call whose error classifies as ``quota_billing`` additionally
produces one :class:`EscalationRecord`, which is sent to the alert
notifier and persisted.  There is no de-duplication: two quota failures
in the same run raise two alerts.

All writes happen in background tasks owned by a
:class:`BackgroundDispatcher`.  ``record`` returns immediately, and a
broken store or notifier is logged and otherwise ignored, so recording can
neither slow a run down nor change its outcome.
"""

from __future__ import annotations

from datetime import datetime

from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.interfaces.usage_store import IUsageStore
from pharmaroute.models.fallback import AttemptRecord, ErrorKind
from pharmaroute.models.usage import EscalationRecord, RunMetrics, UsageContext, UsageRecord
from pharmaroute.utils.concurrency import BackgroundDispatcher
from pharmaroute.utils.error_classifier import classify_error
from pharmaroute.utils.logging import get_logger


class UsageRecorder:
    """Non-blocking writer for usage rows, escalations and run metrics.

    Parameters
    ----------
    store:
        Persistence backend.  ``None`` disables persistence; escalations
        still reach the notifier.
    notifier:
        Operator alert channel for quota and billing failures.
    dispatcher:
        Background task owner; one is created when omitted.
    """

    def __init__(
        self,
        store: IUsageStore | None,
        notifier: IAlertNotifier | None,
        dispatcher: BackgroundDispatcher | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._dispatcher = dispatcher or BackgroundDispatcher(name="usage-recorder")
        self._logger = get_logger(__name__)

    @property
    def pending(self) -> int:
        return self._dispatcher.pending

    def record(self, attempt: AttemptRecord, context: UsageContext) -> None:
        """Schedule persistence (and escalation, if needed) of *attempt*."""
        self._dispatcher.dispatch(self._record_attempt(attempt, context), label=f"attempt:{attempt.attempt_id}")

    def record_run(self, metrics: RunMetrics) -> None:
        """Schedule persistence of one run's summary."""
        self._dispatcher.dispatch(self._record_run(metrics), label=f"run:{metrics.request_id}")

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every scheduled write to finish."""
        await self._dispatcher.drain(timeout)

    async def count_recent_attempts(self, user_id: str, since: datetime) -> int:
        """Successful calls persisted for *user_id* since *since*.

        Returns 0 when there is no store or the store cannot be read.
        """
        if self._store is None:
            return 0
        try:
            return await self._store.count_recent_attempts(user_id, since)
        except Exception as exc:
            self._logger.warning("usage_count_failed", user_id=user_id, error=str(exc))
            return 0

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def _record_attempt(self, attempt: AttemptRecord, context: UsageContext) -> None:
        error_kind = None
        if not attempt.success:
            error_kind = attempt.error_kind or classify_error(attempt.error)

        if self._store is not None:
            usage = UsageRecord(
                request_id=context.request_id,
                attempt_id=attempt.attempt_id,
                tier_id=context.tier_id,
                user_id=context.user_id,
                provider_id=attempt.provider_id,
                assigned_provider_id=attempt.assigned_provider_id,
                model_name=attempt.model_name,
                task_kind=attempt.task_kind,
                strategy=attempt.strategy,
                input_tokens=attempt.input_tokens,
                output_tokens=attempt.output_tokens,
                cost=attempt.cost,
                response_time_ms=attempt.duration_ms,
                success=attempt.success,
                error_kind=error_kind.value if error_kind else None,
                error_message=attempt.error,
                timestamp=attempt.timestamp,
            )
            try:
                await self._store.record_attempt(usage)
            except Exception as exc:
                self._logger.warning(
                    "usage_record_failed",
                    request_id=context.request_id,
                    attempt_id=attempt.attempt_id,
                    error=str(exc),
                )

        if error_kind is ErrorKind.QUOTA_BILLING:
            await self._escalate(attempt, context)

    async def _escalate(self, attempt: AttemptRecord, context: UsageContext) -> None:
        escalation = EscalationRecord(
            request_id=context.request_id,
            attempt_id=attempt.attempt_id,
            provider_id=attempt.provider_id,
            tier_id=context.tier_id,
            user_id=context.user_id,
            title=f"AI provider quota exceeded: {attempt.provider_id}",
            error_message=attempt.error or "",
        )
        self._logger.warning(
            "provider_quota_escalation",
            request_id=context.request_id,
            provider=attempt.provider_id,
            tier_id=context.tier_id,
        )

        if self._notifier is not None:
            try:
                await self._notifier.send_alert(escalation)
            except Exception as exc:
                self._logger.warning(
                    "escalation_alert_failed",
                    notifier=self._notifier.get_notifier_name(),
                    provider=attempt.provider_id,
                    error=str(exc),
                )

        if self._store is not None:
            try:
                await self._store.record_escalation(escalation)
            except Exception as exc:
                self._logger.warning(
                    "escalation_record_failed",
                    request_id=context.request_id,
                    provider=attempt.provider_id,
                    error=str(exc),
                )

    async def _record_run(self, metrics: RunMetrics) -> None:
        if self._store is None:
            return
        try:
            await self._store.record_run(metrics)
        except Exception as exc:
            self._logger.warning("run_metrics_record_failed", request_id=metrics.request_id, error=str(exc))
