"""Unit tests for provider failure classification."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from pharmaroute.models.fallback import ErrorKind
from pharmaroute.utils.error_classifier import (
    classify_error,
    classify_exception,
    extract_status_code,
)
from pharmaroute.utils.errors import ProviderError, RateLimitError


class TestClassifyError:
    @pytest.mark.parametrize(
        "message",
        [
            "You exceeded your current quota, please check your plan and billing details.",
            "Quota exceeded for metric generate_content",
            "HTTP 429 Too Many Requests",
            "Payment required",
            "rate_limit_error: slow down",
            "BILLING hard limit reached",
        ],
    )
    def test_quota_and_billing_messages(self, message: str) -> None:
        assert classify_error(message) is ErrorKind.QUOTA_BILLING

    @pytest.mark.parametrize(
        "message",
        ["Connection reset by peer", "invalid image payload", "timed out after 25.0s"],
    )
    def test_other_failures(self, message: str) -> None:
        assert classify_error(message) is ErrorKind.OTHER

    def test_empty_and_missing_message(self) -> None:
        assert classify_error(None) is ErrorKind.OTHER
        assert classify_error("") is ErrorKind.OTHER

    def test_status_429_wins_over_message(self) -> None:
        assert classify_error("upstream said no", status_code=429) is ErrorKind.QUOTA_BILLING

    def test_other_status_falls_back_to_message(self) -> None:
        assert classify_error("bad gateway", status_code=502) is ErrorKind.OTHER


class TestClassifyException:
    def test_status_code_attribute(self) -> None:
        assert extract_status_code(ProviderError("nope", status_code=503)) == 503

    def test_nested_response_status(self) -> None:
        exc = RuntimeError("boom")
        exc.response = SimpleNamespace(status_code=429)  # type: ignore[attr-defined]
        assert extract_status_code(exc) == 429
        assert classify_exception(exc) is ErrorKind.QUOTA_BILLING

    def test_no_status_anywhere(self) -> None:
        assert extract_status_code(ValueError("x")) is None

    def test_rate_limit_error_is_quota(self) -> None:
        assert classify_exception(RateLimitError(provider_name="openai")) is ErrorKind.QUOTA_BILLING

    def test_plain_exception_is_other(self) -> None:
        assert classify_exception(ConnectionError("refused")) is ErrorKind.OTHER
