"""Credential providers."""

from pharmaroute.providers.credentials.env_credential_provider import EnvCredentialProvider

__all__ = ["EnvCredentialProvider"]
