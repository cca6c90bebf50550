"""Abstract base class for operator alert delivery."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmaroute.models.usage import EscalationRecord


class IAlertNotifier(ABC):
    """Contract for telling an operator that a provider hit quota or billing limits."""

    @abstractmethod
    async def send_alert(self, escalation: EscalationRecord) -> None:
        """Deliver one escalation.  May raise; the caller logs and moves on."""

    @abstractmethod
    def get_notifier_name(self) -> str:
        """Return a short name used in logs (e.g. ``"log"``, ``"webhook"``)."""
