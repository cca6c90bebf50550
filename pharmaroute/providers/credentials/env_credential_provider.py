"""Credential provider that reads vendor API keys from Settings.

Settings itself is populated from environment variables and ``.env``, so
``GOOGLE_AI_API_KEY``, ``OPENAI_API_KEY`` and ``ANTHROPIC_API_KEY`` map to
the ``google``, ``openai`` and ``anthropic`` provider ids respectively.
"""

from __future__ import annotations

from pharmaroute.config.settings import Settings
from pharmaroute.interfaces.credential_provider import ICredentialProvider
from pharmaroute.utils.errors import CredentialError

# provider id -> Settings attribute holding its key
_CREDENTIAL_FIELDS: dict[str, str] = {
    "google": "google_ai_api_key",
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


class EnvCredentialProvider(ICredentialProvider):
    """Resolves provider credentials from a :class:`Settings` instance."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def get_credential(self, provider_id: str) -> str:
        field = _CREDENTIAL_FIELDS.get(provider_id)
        if field is None:
            raise CredentialError(
                f"No credential mapping for provider '{provider_id}'",
                provider_name=provider_id,
            )
        value = getattr(self._settings, field, "")
        if not value:
            raise CredentialError(
                f"{field.upper()} is not configured",
                provider_name=provider_id,
            )
        return value
