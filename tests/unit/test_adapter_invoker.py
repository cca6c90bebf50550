"""Unit tests for the adapter invoker."""

from __future__ import annotations

import asyncio

import pytest

from pharmaroute.config.tier_defaults import DEFAULT_PROVIDER_CONFIGS
from pharmaroute.models.assignment import ProviderAssignment, ProviderConfig
from pharmaroute.models.extraction import ExtractionRequest, ProviderResponse, TaskKind, UsageInfo
from pharmaroute.models.fallback import ErrorKind
from pharmaroute.services.adapter_invoker import AdapterInvoker, estimate_cost
from pharmaroute.utils.errors import ProviderError, QuotaBillingError, RateLimitError


def _assignment(provider: str, tier: str = "free", task: TaskKind = TaskKind.OCR) -> ProviderAssignment:
    config = DEFAULT_PROVIDER_CONFIGS[provider].model_copy(update={"api_key": f"key-{provider}"})
    return ProviderAssignment(tier_id=tier, task_kind=task, provider_id=provider, priority=1, config=config)


def _ocr_request(images: list[bytes] | None = None) -> ExtractionRequest:
    return ExtractionRequest(task_kind=TaskKind.OCR, prompt="read it", images=images if images is not None else [b"img"])


# ======================================================================
# Successful calls
# ======================================================================


class TestInvokeSuccess:
    @pytest.mark.asyncio
    async def test_vision_call_normalizes_fields(self, make_adapter, make_response) -> None:
        adapter = make_adapter("google", make_response("google", confidence=0.92, batchNumber="T36184B"))
        invoker = AdapterInvoker({"google": adapter})

        result = await invoker.invoke(_assignment("google"), _ocr_request())

        assert result.fields is not None
        assert result.fields.batch_number == "T36184B"
        assert result.attempt.success is True
        assert result.attempt.confidence == pytest.approx(0.92)
        assert result.attempt.provider_id == "google"
        assert result.attempt.redirected is False
        assert result.attempt.model_name == "google-model"
        assert result.attempt.input_tokens == 120
        adapter.process_vision.assert_awaited_once()
        adapter.process_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_assignment_config_passed_through(self, make_adapter, make_response) -> None:
        adapter = make_adapter("google", make_response("google", confidence=0.5))
        assignment = _assignment("google")

        await AdapterInvoker({"google": adapter}).invoke(assignment, _ocr_request())

        _, config = adapter.process_vision.await_args.args
        assert config == assignment.config
        assert config.api_key == "key-google"

    @pytest.mark.asyncio
    async def test_text_path_without_images(self, make_adapter, make_response) -> None:
        adapter = make_adapter("anthropic", make_response("anthropic", confidence=0.8, productName="Amoxil"))
        request = ExtractionRequest(task_kind=TaskKind.VERIFY, prompt="is this a medicine?")

        result = await AdapterInvoker({"anthropic": adapter}).invoke(_assignment("anthropic", task=TaskKind.VERIFY), request)

        assert result.attempt.success is True
        assert result.attempt.task_kind is TaskKind.VERIFY
        adapter.process_text.assert_awaited_once()
        adapter.process_vision.assert_not_called()

    @pytest.mark.asyncio
    async def test_strategy_label_recorded(self, make_adapter, make_response) -> None:
        adapter = make_adapter("google", make_response("google", confidence=0.5))
        result = await AdapterInvoker({"google": adapter}).invoke(
            _assignment("google"), _ocr_request(), strategy="preprocessing-retry:abcd1234"
        )
        assert result.attempt.strategy == "preprocessing-retry:abcd1234"


# ======================================================================
# Vision redirect
# ======================================================================


class TestVisionRedirect:
    @pytest.mark.asyncio
    async def test_business_openai_vision_goes_to_google(self, make_adapter, make_response) -> None:
        openai = make_adapter("openai", make_response("openai", confidence=0.9))
        google = make_adapter("google", make_response("google", confidence=0.7, batchNumber="AB1234"))
        invoker = AdapterInvoker({"openai": openai, "google": google})

        result = await invoker.invoke(_assignment("openai", tier="business"), _ocr_request())

        assert result.attempt.provider_id == "google"
        assert result.attempt.assigned_provider_id == "openai"
        assert result.attempt.redirected is True
        openai.process_vision.assert_not_called()
        _, config = google.process_vision.await_args.args
        assert config is None

    @pytest.mark.asyncio
    async def test_text_request_not_redirected(self, make_adapter, make_response) -> None:
        openai = make_adapter("openai", make_response("openai", confidence=0.9))
        google = make_adapter("google", make_response("google", confidence=0.7))
        request = ExtractionRequest(task_kind=TaskKind.VERIFY, prompt="check")

        result = await AdapterInvoker({"openai": openai, "google": google}).invoke(
            _assignment("openai", tier="business", task=TaskKind.VERIFY), request
        )

        assert result.attempt.provider_id == "openai"
        openai.process_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unregistered_target_keeps_assigned_provider(self, make_adapter, make_response) -> None:
        openai = make_adapter("openai", make_response("openai", confidence=0.9))
        result = await AdapterInvoker({"openai": openai}).invoke(_assignment("openai", tier="business"), _ocr_request())
        assert result.attempt.provider_id == "openai"
        assert result.attempt.redirected is False

    def test_supports_vision_counts_redirect(self, make_adapter) -> None:
        invoker = AdapterInvoker({"openai": make_adapter("openai", vision=False), "google": make_adapter("google")})
        assert invoker.supports_vision("openai") is False
        assert invoker.supports_vision("openai", tier_id="business") is True
        assert invoker.supports_vision("anthropic") is False


# ======================================================================
# Failures
# ======================================================================


class TestInvokeFailures:
    @pytest.mark.asyncio
    async def test_missing_adapter(self) -> None:
        result = await AdapterInvoker({}).invoke(_assignment("anthropic"), _ocr_request())
        assert result.fields is None
        assert result.attempt.success is False
        assert "No adapter registered" in (result.attempt.error or "")
        assert result.attempt.error_kind is ErrorKind.OTHER

    @pytest.mark.asyncio
    async def test_adapter_without_vision(self, make_adapter) -> None:
        adapter = make_adapter("openai", vision=False)
        result = await AdapterInvoker({"openai": adapter}).invoke(_assignment("openai"), _ocr_request())
        assert result.attempt.success is False
        assert "does not support vision" in (result.attempt.error or "")
        adapter.process_vision.assert_not_called()

    @pytest.mark.asyncio
    async def test_exception_becomes_failed_attempt(self, make_adapter) -> None:
        adapter = make_adapter("google", side_effect=ProviderError("upstream 503", provider_name="google", status_code=503))
        result = await AdapterInvoker({"google": adapter}).invoke(_assignment("google"), _ocr_request())
        assert result.attempt.success is False
        assert result.attempt.error == "[google] upstream 503"
        assert result.attempt.error_kind is ErrorKind.OTHER
        assert result.attempt.cost == 0.0

    @pytest.mark.asyncio
    async def test_unsuccessful_response_becomes_failed_attempt(self, make_adapter) -> None:
        response = ProviderResponse(provider="google", success=False, error="image too small")
        adapter = make_adapter("google", response)
        result = await AdapterInvoker({"google": adapter}).invoke(_assignment("google"), _ocr_request())
        assert result.attempt.success is False
        assert result.attempt.error == "image too small"

    @pytest.mark.asyncio
    async def test_timeout(self, make_adapter) -> None:
        async def _hang(*args, **kwargs):
            await asyncio.sleep(5)

        adapter = make_adapter("google", side_effect=_hang)
        invoker = AdapterInvoker({"google": adapter}, call_timeout_seconds=0.01)

        result = await invoker.invoke(_assignment("google"), _ocr_request())

        assert result.attempt.success is False
        assert "timed out" in (result.attempt.error or "")

    @pytest.mark.asyncio
    async def test_rate_limit_exception_raises_quota_error(self, make_adapter) -> None:
        adapter = make_adapter("openai", side_effect=RateLimitError(provider_name="openai"))
        with pytest.raises(QuotaBillingError) as exc_info:
            await AdapterInvoker({"openai": adapter}).invoke(_assignment("openai"), _ocr_request())
        attempt = exc_info.value.attempt
        assert attempt.success is False
        assert attempt.error_kind is ErrorKind.QUOTA_BILLING
        assert attempt.provider_id == "openai"

    @pytest.mark.asyncio
    async def test_quota_message_in_response_raises(self, make_adapter) -> None:
        response = ProviderResponse(provider="google", success=False, error="You exceeded your current quota")
        adapter = make_adapter("google", response)
        with pytest.raises(QuotaBillingError) as exc_info:
            await AdapterInvoker({"google": adapter}).invoke(_assignment("google"), _ocr_request())
        assert exc_info.value.provider_name == "google"


# ======================================================================
# Cost estimation
# ======================================================================


class TestEstimateCost:
    def test_reported_cost_wins(self) -> None:
        usage = UsageInfo(input_tokens=1000, output_tokens=1000, cost=0.02)
        assert estimate_cost("google", usage, DEFAULT_PROVIDER_CONFIGS["google"]) == pytest.approx(0.02)

    def test_token_pricing(self) -> None:
        usage = UsageInfo(input_tokens=120, output_tokens=40)
        expected = 120 * 0.00000025 + 40 * 0.000001
        assert estimate_cost("google", usage, DEFAULT_PROVIDER_CONFIGS["google"]) == pytest.approx(expected)

    def test_static_estimate_without_pricing(self) -> None:
        assert estimate_cost("tesseract", UsageInfo(), DEFAULT_PROVIDER_CONFIGS["tesseract"]) == pytest.approx(0.001)

    def test_unknown_provider_default_estimate(self) -> None:
        assert estimate_cost("mystery", UsageInfo(), ProviderConfig()) == pytest.approx(0.005)
