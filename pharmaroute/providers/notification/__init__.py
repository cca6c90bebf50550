"""Operator alert notifiers for quota and billing escalations."""

from pharmaroute.providers.notification.log_notifier import LogAlertNotifier
from pharmaroute.providers.notification.webhook_notifier import WebhookAlertNotifier

__all__ = ["LogAlertNotifier", "WebhookAlertNotifier"]
