"""Calls one provider adapter and turns the outcome into an attempt record.

The invoker is the only place that talks to :class:`IProviderAdapter`.
For every call it:

    1. picks the vision or text path (vision when the request carries
       images and asks for OCR)
    2. applies the tier's vision redirect, if one exists for the provider
    3. runs the adapter under a hard per-call timeout
    4. normalizes the response into :class:`ExtractedFields`
    5. estimates the call cost and builds exactly one :class:`AttemptRecord`

Every failure is folded into the record rather than raised, with one
exception: a quota or billing failure is raised as
:class:`QuotaBillingError` carrying the finished record, so the caller
can log it and make sure an operator hears about it.
"""

from __future__ import annotations

import asyncio
import time
from typing import NamedTuple

from pharmaroute.config.tier_defaults import (
    DEFAULT_COST_ESTIMATE,
    DEFAULT_PROVIDER_CONFIGS,
    STATIC_COST_ESTIMATES,
    vision_redirect_target,
)
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.models.assignment import ProviderAssignment, ProviderConfig
from pharmaroute.models.extraction import (
    ExtractedFields,
    ExtractionRequest,
    ProviderResponse,
    TaskKind,
    UsageInfo,
)
from pharmaroute.models.fallback import AttemptRecord, ErrorKind
from pharmaroute.services.response_parser import parse_provider_response
from pharmaroute.utils.error_classifier import classify_error, classify_exception
from pharmaroute.utils.errors import QuotaBillingError
from pharmaroute.utils.logging import get_logger

DEFAULT_CALL_TIMEOUT_SECONDS = 25.0


class InvocationResult(NamedTuple):
    """Normalized fields (``None`` on failure) plus the attempt record."""

    fields: ExtractedFields | None
    attempt: AttemptRecord


class AdapterInvoker:
    """Runs single provider calls for the fallback orchestrator."""

    def __init__(
        self,
        adapters: dict[str, IProviderAdapter],
        call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS,
    ) -> None:
        self._adapters = adapters
        self._timeout = call_timeout_seconds
        self._logger = get_logger(__name__)

    def supports_vision(self, provider_id: str, tier_id: str | None = None) -> bool:
        """Whether a vision call for *provider_id* has somewhere to go."""
        target = vision_redirect_target(tier_id, provider_id) if tier_id else None
        if target and target in self._adapters:
            return True
        adapter = self._adapters.get(provider_id)
        return adapter is not None and adapter.supports_vision()

    async def invoke(
        self,
        assignment: ProviderAssignment,
        request: ExtractionRequest,
        strategy: str = "primary",
        tier_id: str | None = None,
    ) -> InvocationResult:
        """Call the provider named by *assignment* once.

        Raises
        ------
        QuotaBillingError
            When the call failed on quota or billing.  The attached attempt
            is fully built; nothing else is raised.
        """
        tier = tier_id or assignment.tier_id
        assigned_id = assignment.provider_id
        called_id = assigned_id
        config: ProviderConfig | None = assignment.config
        use_vision = request.has_images and request.task_kind is TaskKind.OCR

        if use_vision:
            target = vision_redirect_target(tier, assigned_id)
            if target and target in self._adapters:
                # The target adapter uses its own credential and model.
                called_id = target
                config = None
                self._logger.info(
                    "vision_redirect",
                    tier_id=tier,
                    assigned_provider=assigned_id,
                    provider=called_id,
                )

        rate_config = config or DEFAULT_PROVIDER_CONFIGS.get(called_id, ProviderConfig())
        attempt_base = {
            "provider_id": called_id,
            "assigned_provider_id": assigned_id,
            "strategy": strategy,
            "task_kind": request.task_kind,
            "model_name": rate_config.model_name,
        }

        adapter = self._adapters.get(called_id)
        if adapter is None:
            return self._failed(attempt_base, f"No adapter registered for provider '{called_id}'", 0.0)
        if use_vision and not adapter.supports_vision():
            return self._failed(attempt_base, f"Provider '{called_id}' does not support vision", 0.0)

        start = time.perf_counter()
        try:
            call = adapter.process_vision(request, config) if use_vision else adapter.process_text(request, config)
            response: ProviderResponse = await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start) * 1000
            return self._failed(
                attempt_base,
                f"Provider call timed out after {self._timeout:.0f}s",
                elapsed_ms,
            )
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            return self._failed(attempt_base, str(exc), elapsed_ms, classify_exception(exc))

        elapsed_ms = (time.perf_counter() - start) * 1000
        if not response.success:
            error = response.error or "Provider reported failure"
            return self._failed(attempt_base, error, elapsed_ms, classify_error(error))

        fields = parse_provider_response(response)
        cost = estimate_cost(called_id, response.usage, rate_config)
        attempt = AttemptRecord(
            **{**attempt_base, "model_name": response.model or rate_config.model_name},
            success=True,
            fields=fields,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=elapsed_ms,
            cost=cost,
        )
        self._logger.info(
            "provider_attempt_succeeded",
            provider=called_id,
            strategy=strategy,
            confidence=round(fields.confidence, 4),
            fields_detected=fields.detected_field_count,
            duration_ms=round(elapsed_ms, 1),
        )
        return InvocationResult(fields=fields, attempt=attempt)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _failed(
        self,
        attempt_base: dict,
        error: str,
        elapsed_ms: float,
        error_kind: ErrorKind = ErrorKind.OTHER,
    ) -> InvocationResult:
        attempt = AttemptRecord(
            **attempt_base,
            success=False,
            error=error,
            error_kind=error_kind,
            duration_ms=elapsed_ms,
        )
        self._logger.warning(
            "provider_attempt_failed",
            provider=attempt.provider_id,
            strategy=attempt.strategy,
            error=error,
            error_kind=error_kind.value,
        )
        if error_kind is ErrorKind.QUOTA_BILLING:
            raise QuotaBillingError(attempt, message=error, provider_name=attempt.provider_id)
        return InvocationResult(fields=None, attempt=attempt)


def estimate_cost(provider_id: str, usage: UsageInfo, config: ProviderConfig) -> float:
    """Cost of one call: reported, else token-priced, else the static estimate."""
    if usage.cost is not None:
        return usage.cost
    token_cost = (
        usage.input_tokens * config.cost_per_input_token
        + usage.output_tokens * config.cost_per_output_token
    )
    if token_cost > 0:
        return token_cost
    return STATIC_COST_ESTIMATES.get(provider_id, DEFAULT_COST_ESTIMATE)
