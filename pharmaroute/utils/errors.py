"""Custom exception hierarchy for pharmaroute.

All application exceptions inherit from :class:`PharmaRouteError`, which
carries an optional ``provider_name`` so error handlers can identify which
inference vendor (e.g. "google", "openai", "anthropic", "tesseract")
caused the failure.

The hierarchy is organized by routing concern:

    PharmaRouteError  (base -- catch-all for any pharmaroute error)
    +-- ProviderError            (an adapter call failed or returned garbage)
    +-- ProviderUnavailableError (vendor unreachable / adapter not configured)
    +-- RateLimitError           (vendor rate limit exceeded)
    +-- QuotaBillingError        (quota or billing failure -- escalated)
    +-- PreprocessingError       (image variant could not be produced)
    +-- AssignmentStoreError     (assignment configuration store failed)
    +-- CredentialError          (no usable credential for a provider)
    +-- ConfigurationError       (startup / missing config)
    +-- RecordingError           (usage or escalation persistence failed)

The fallback orchestrator never lets any of these reach its caller: each
one is converted into an attempt record, a decision-log entry, or a
degraded outcome.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pharmaroute.models.fallback import AttemptRecord


class PharmaRouteError(Exception):
    """Base exception for all pharmaroute errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------

class ProviderError(PharmaRouteError):
    """Raised when an adapter call fails or its response cannot be used.

    ``status_code`` holds the vendor's HTTP status when one is known, so the
    error classifier can recognise a 429 without parsing the message.
    """

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is unreachable or not configured.

    The orchestrator treats this exactly like any other transient provider
    failure and moves on to the next assignment.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, status_code=status_code)


class RateLimitError(ProviderError):
    """Raised when a vendor rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        status_code: int | None = 429,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, status_code=status_code)


class QuotaBillingError(PharmaRouteError):
    """Raised by the adapter invoker when a call failed on quota or billing.

    Carries the already-built :class:`AttemptRecord` so the orchestrator can
    append it to the attempt log and hand it to the usage recorder, which
    escalates it to an operator.
    """

    def __init__(
        self,
        attempt: AttemptRecord,
        message: str = "Provider quota or billing failure",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name or attempt.provider_id)
        self._attempt = attempt

    @property
    def attempt(self) -> AttemptRecord:
        return self._attempt


# ---------------------------------------------------------------------------
# Input / configuration errors
# ---------------------------------------------------------------------------

class PreprocessingError(PharmaRouteError):
    """Raised when an image variant cannot be produced (corrupt bytes, etc.)."""

    def __init__(
        self,
        message: str = "Image preprocessing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AssignmentStoreError(PharmaRouteError):
    """Raised when the provider-assignment store cannot be read."""

    def __init__(
        self,
        message: str = "Assignment store unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CredentialError(PharmaRouteError):
    """Raised when no usable credential exists for a provider."""

    def __init__(
        self,
        message: str = "No credential configured",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(PharmaRouteError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RecordingError(PharmaRouteError):
    """Raised by usage stores and alert notifiers when persistence fails.

    The usage recorder catches and logs it; it never reaches the orchestrator.
    """

    def __init__(
        self,
        message: str = "Usage recording failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
