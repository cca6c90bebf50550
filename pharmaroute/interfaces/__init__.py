"""Abstract interfaces (ports) for every external collaborator of the engine."""

from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.interfaces.assignment_store import IAssignmentStore
from pharmaroute.interfaces.cache_provider import ICacheProvider
from pharmaroute.interfaces.credential_provider import ICredentialProvider
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.interfaces.usage_store import IUsageStore

__all__ = [
    "IAlertNotifier",
    "IAssignmentStore",
    "ICacheProvider",
    "ICredentialProvider",
    "IProviderAdapter",
    "IUsageStore",
]
