"""Abstract base class for usage, escalation and run-metrics persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from pharmaroute.models.usage import EscalationRecord, RunMetrics, UsageRecord, UsageStats


class IUsageStore(ABC):
    """Contract for persisting per-attempt usage and per-run metrics.

    Every write is called from a background task; implementations may raise
    freely (the usage recorder logs and discards failures).
    """

    @abstractmethod
    async def record_attempt(self, record: UsageRecord) -> None:
        """Persist one provider call."""

    @abstractmethod
    async def record_escalation(self, record: EscalationRecord) -> None:
        """Persist one quota/billing escalation."""

    @abstractmethod
    async def record_run(self, metrics: RunMetrics) -> None:
        """Persist the summary of one fallback run."""

    @abstractmethod
    async def get_usage_stats(
        self,
        tier_id: str | None = None,
        user_id: str | None = None,
    ) -> UsageStats:
        """Return aggregate usage over persisted attempts, optionally filtered."""

    @abstractmethod
    async def count_recent_attempts(self, user_id: str, since: datetime) -> int:
        """Return how many successful calls *user_id* has made at or after *since*."""
