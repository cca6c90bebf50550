"""Alert notifier that POSTs escalations to an operator webhook.

Any endpoint that accepts JSON works (chat incoming-webhooks, an internal
paging service, an email relay).  The payload is the escalation record
serialized with ``model_dump(mode="json")``.
"""

from __future__ import annotations

import httpx
import structlog

from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.models.usage import EscalationRecord
from pharmaroute.utils.errors import RecordingError

logger = structlog.get_logger(logger_name=__name__)


class WebhookAlertNotifier(IAlertNotifier):
    """Delivers escalations over HTTP using a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        webhook_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send_alert(self, escalation: EscalationRecord) -> None:
        payload = escalation.model_dump(mode="json")
        try:
            response = await self._http_client.post(self._webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RecordingError(
                f"Webhook alert delivery failed: {exc}",
                provider_name=escalation.provider_id,
            ) from exc
        logger.info(
            "webhook_alert_sent",
            provider=escalation.provider_id,
            attempt_id=escalation.attempt_id,
            status=response.status_code,
        )

    async def close(self) -> None:
        await self._http_client.aclose()

    def get_notifier_name(self) -> str:
        return "webhook"
