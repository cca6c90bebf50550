"""Shared pytest fixtures for the pharmaroute test suite."""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image, ImageDraw

from pharmaroute.config.settings import Settings
from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.interfaces.credential_provider import ICredentialProvider
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.interfaces.usage_store import IUsageStore
from pharmaroute.models.extraction import ProviderResponse, UsageInfo

# ---------------------------------------------------------------------------
# Settings & config
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def settings() -> Settings:
    """Settings with every vendor key configured and no .env influence."""
    return Settings(
        _env_file=None,
        google_ai_api_key="google-test",
        openai_api_key="sk-test",
        openai_base_url="",
        anthropic_api_key="anthropic-test",
        tesseract_cmd="",
        alert_webhook_url="",
    )


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal loaded configuration for testing."""
    return {
        "app": {"name": "pharmaroute", "env": "development"},
        "resolver": {"cache_ttl_seconds": 300},
        "providers": {"call_timeout_seconds": 5.0},
        "fallback": {
            "max_attempts": 5,
            "max_time_ms": 30000,
            "min_confidence": 0.6,
            "primary_acceptance_floor": 0.3,
            "preprocessing_acceptance_floor": 0.5,
            "enable_preprocessing_retry": True,
            "enable_manual_fallback": True,
        },
        "preprocessing": {
            "variations": [
                {"enhance_contrast": True, "sharpen": True, "quality": 0.95, "max_width": 1200},
                {"enhance_contrast": False, "sharpen": False, "quality": 0.8, "max_width": 600},
            ],
        },
        "logging": {"level": "INFO"},
    }


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


@pytest.fixture
def packaging_image_bytes() -> bytes:
    """A small JPEG that looks roughly like a printed carton label."""
    img = Image.new("RGB", (800, 600), (235, 235, 230))
    draw = ImageDraw.Draw(img)
    draw.text((40, 40), "Paracetamol 500mg Tablets", fill=(20, 20, 20))
    draw.text((40, 100), "BATCH: T36184B", fill=(20, 20, 20))
    draw.text((40, 160), "EXP: 12/2027", fill=(20, 20, 20))
    draw.text((40, 220), "Emzor Pharmaceutical Industries Ltd", fill=(20, 20, 20))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=90)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Provider responses & adapters
# ---------------------------------------------------------------------------


@pytest.fixture
def make_response() -> Callable[..., ProviderResponse]:
    """Factory for JSON-bearing provider responses.

    ``make_response("google", confidence=0.9, batchNumber="T36184B")``
    """

    def _factory(provider: str, confidence: float | None = None, **fields: Any) -> ProviderResponse:
        payload: dict[str, Any] = dict(fields)
        if confidence is not None:
            payload["confidence"] = confidence
        return ProviderResponse(
            content=json.dumps(payload),
            usage=UsageInfo(input_tokens=120, output_tokens=40),
            model=f"{provider}-model",
            provider=provider,
            response_time_ms=12.0,
        )

    return _factory


@pytest.fixture
def make_adapter() -> Callable[..., MagicMock]:
    """Factory for mocked provider adapters.

    Pass ``response`` for a fixed result, ``side_effect`` for an exception
    or a sequence of results.  The same behaviour is wired to both the text
    and the vision path.
    """

    def _factory(
        name: str,
        response: ProviderResponse | None = None,
        side_effect: Any = None,
        vision: bool = True,
    ) -> MagicMock:
        adapter = MagicMock(spec=IProviderAdapter)
        adapter.get_provider_name.return_value = name
        adapter.supports_vision.return_value = vision
        adapter.is_available.return_value = True
        adapter.process_vision = AsyncMock(return_value=response, side_effect=side_effect)
        adapter.process_text = AsyncMock(return_value=response, side_effect=side_effect)
        return adapter

    return _factory


# ---------------------------------------------------------------------------
# Collaborator mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_credentials() -> ICredentialProvider:
    """Credential provider that knows every remote vendor."""
    provider = MagicMock(spec=ICredentialProvider)
    provider.get_credential.side_effect = lambda provider_id: f"key-{provider_id}"
    return provider


@pytest.fixture
def mock_usage_store() -> IUsageStore:
    store = MagicMock(spec=IUsageStore)
    store.record_attempt = AsyncMock(return_value=None)
    store.record_escalation = AsyncMock(return_value=None)
    store.record_run = AsyncMock(return_value=None)
    store.get_usage_stats = AsyncMock()
    store.count_recent_attempts = AsyncMock(return_value=0)
    return store


@pytest.fixture
def mock_notifier() -> IAlertNotifier:
    notifier = MagicMock(spec=IAlertNotifier)
    notifier.send_alert = AsyncMock(return_value=None)
    notifier.get_notifier_name.return_value = "mock"
    return notifier
