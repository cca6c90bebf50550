"""Provider failure classification.

Quota and billing failures look different from vendor to vendor: some SDKs
expose an HTTP 429, others only a message such as "You exceeded your
current quota".  :func:`classify_error` folds both signals into a single
:class:`ErrorKind` so the orchestrator and the usage recorder can decide
whether a failure needs an operator escalation.
"""

from __future__ import annotations

from pharmaroute.models.fallback import ErrorKind

QUOTA_STATUS_CODES: frozenset[int] = frozenset({429})

# Matched case-insensitively as substrings of the error message.
QUOTA_BILLING_KEYWORDS: tuple[str, ...] = (
    "exceeded your current quota",
    "quota exceeded",
    "billing",
    "payment required",
    "insufficient funds",
    "rate limit exceeded",
    "too many requests",
    "quota",
    "billing details",
    "429",
    "rate_limit",
    "rate limit",
)


def classify_error(message: str | None, status_code: int | None = None) -> ErrorKind:
    """Classify a provider failure from its message and optional HTTP status."""
    if status_code is not None and status_code in QUOTA_STATUS_CODES:
        return ErrorKind.QUOTA_BILLING
    if not message:
        return ErrorKind.OTHER
    lowered = message.lower()
    if any(keyword in lowered for keyword in QUOTA_BILLING_KEYWORDS):
        return ErrorKind.QUOTA_BILLING
    return ErrorKind.OTHER


def extract_status_code(exc: BaseException) -> int | None:
    """Best-effort HTTP status lookup across the vendor SDK exception shapes."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_exception(exc: BaseException) -> ErrorKind:
    """Classify an exception raised by an adapter call."""
    return classify_error(str(exc), extract_status_code(exc))
