"""Abstract base class for provider credential lookup."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ICredentialProvider(ABC):
    """Contract for resolving the API credential of a provider."""

    @abstractmethod
    def get_credential(self, provider_id: str) -> str:
        """Return the credential for *provider_id*.

        Raises
        ------
        CredentialError
            If no credential is configured for the provider.
        """
