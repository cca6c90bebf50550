"""Alert notifier that emits escalations as structured error log events.

The default notifier: with JSON logging in production, log shippers pick up
``provider_quota_alert`` events and route them to whoever is on call.
"""

from __future__ import annotations

import structlog

from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.models.usage import EscalationRecord

logger = structlog.get_logger(logger_name=__name__)


class LogAlertNotifier(IAlertNotifier):
    """Writes each escalation to the log at error level."""

    async def send_alert(self, escalation: EscalationRecord) -> None:
        logger.error(
            "provider_quota_alert",
            alert_type=escalation.alert_type,
            severity=escalation.severity,
            provider=escalation.provider_id,
            tier_id=escalation.tier_id,
            user_id=escalation.user_id,
            request_id=escalation.request_id,
            attempt_id=escalation.attempt_id,
            error=escalation.error_message,
        )

    def get_notifier_name(self) -> str:
        return "log"
