"""Fallback orchestrator: the four-stage ladder behind every extraction.

Takes packaging images plus :class:`FallbackOptions` and always returns a
:class:`FallbackOutcome`.  The ladder runs its stages in a fixed order and
stops at the first one that produces an answer:

    1. PrimaryMultiStrategy     -- each resolved provider once, in order
    2. PreprocessingRetry       -- re-encoded image variants on the
                                   vision-capable retry providers
    3. ManualInputDegradation   -- ask the user to type the fields
    4. TextOnlyDegradation      -- continue without OCR at all

ARCHITECTURE NOTE:
    Stages 1 and 2 call providers and therefore draw on a shared attempt
    budget (``max_attempts`` provider calls and ``max_time_ms`` of wall
    clock for the whole run).  The budget is checked before every call;
    once it is spent, the ladder jumps straight to the degradation stages,
    which make no calls and cost nothing.

    Runs that carry a ``user_id`` are also subject to the tier's daily
    usage cap, checked before each provider call.  A provider skipped by
    the cap still produces a (failed) attempt, so it spends budget.

    All bookkeeping for one run lives in a private ``_RunContext`` owned by
    the coroutine executing the run.  Nothing is shared between runs except
    the resolver's cache, so concurrent runs do not interfere.  The frozen
    outcome is assembled from the context exactly once, on the way out.

    Usage rows, escalations and run metrics are handed to the
    :class:`UsageRecorder`, which writes them in background tasks; the
    measured run time never includes them.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from pharmaroute.config.domain_knowledge import DEFAULT_PHARMA_FORM, build_ocr_prompt, detect_pharma_form
from pharmaroute.config.tier_defaults import USAGE_LIMIT_WINDOW, daily_usage_limit, normalize_tier
from pharmaroute.models.assignment import ProviderAssignment
from pharmaroute.models.extraction import ExtractedFields, ExtractionRequest, TaskKind
from pharmaroute.models.fallback import (
    AttemptRecord,
    DecisionLogEntry,
    DegradationLevel,
    ErrorKind,
    FallbackOptions,
    FallbackOutcome,
    FallbackStage,
)
from pharmaroute.models.usage import RunMetrics, UsageContext
from pharmaroute.models.validation import ValidationResult
from pharmaroute.services.adapter_invoker import AdapterInvoker
from pharmaroute.services.assignment_resolver import AssignmentResolver
from pharmaroute.services.preprocessing_service import PreprocessingService
from pharmaroute.services.result_validator import ResultValidator
from pharmaroute.services.usage_recorder import UsageRecorder
from pharmaroute.utils.confidence import strategy_adjusted_confidence
from pharmaroute.utils.errors import PreprocessingError, QuotaBillingError
from pharmaroute.utils.logging import get_logger

DEFAULT_RETRY_PROVIDERS: tuple[str, ...] = ("anthropic", "google")

MANUAL_INPUT_RECOMMENDATIONS: tuple[str, ...] = (
    "Please provide the product information manually",
    "The system will guide you through the verification process",
    "Upload clearer images if possible for better accuracy",
)

TEXT_ONLY_RECOMMENDATIONS: tuple[str, ...] = (
    "System will continue with text-based verification only",
    "OCR extraction failed - using alternative verification methods",
    "Consider uploading images later for enhanced verification",
)

NO_IMAGE_RECOMMENDATION = "Upload at least one clear photo of the product packaging"


@dataclass
class _Candidate:
    fields: ExtractedFields
    attempt: AttemptRecord
    validation: ValidationResult

    @property
    def confidence(self) -> float:
        return self.fields.confidence


@dataclass
class _RunContext:
    """Mutable state of one run.  Never leaves the orchestrator."""

    request_id: str
    options: FallbackOptions
    tier_id: str
    image_count: int
    started: float = field(default_factory=time.monotonic)
    attempts: list[AttemptRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    decisions: list[DecisionLogEntry] = field(default_factory=list)
    best: _Candidate | None = None
    preprocessing_used: bool = False

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    @property
    def usage_context(self) -> UsageContext:
        return UsageContext(
            request_id=self.request_id,
            tier_id=self.tier_id,
            task_kind=self.options.task_kind,
            user_id=self.options.user_id,
            image_count=self.image_count,
        )

    def budget_exhausted(self) -> bool:
        return (
            len(self.attempts) >= self.options.max_attempts
            or self.elapsed_ms >= self.options.max_time_ms
        )

    def consider(self, candidate: _Candidate) -> None:
        if self.best is None or candidate.confidence > self.best.confidence:
            self.best = candidate


class FallbackOrchestrator:
    """Runs the fallback ladder for one extraction request at a time.

    All collaborators are injected; the orchestrator never builds its own
    resolver, adapters or stores.  ``retry_providers`` is the ordered list
    of providers tried during the preprocessing retry stage.
    """

    def __init__(
        self,
        resolver: AssignmentResolver,
        invoker: AdapterInvoker,
        validator: ResultValidator,
        preprocessing: PreprocessingService,
        recorder: UsageRecorder,
        retry_providers: list[str] | tuple[str, ...] = DEFAULT_RETRY_PROVIDERS,
        default_options: FallbackOptions | None = None,
    ) -> None:
        self._resolver = resolver
        self._invoker = invoker
        self._validator = validator
        self._preprocessing = preprocessing
        self._recorder = recorder
        self._retry_providers = tuple(retry_providers)
        self._default_options = default_options or FallbackOptions()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_fallback(
        self,
        images: list[bytes],
        options: FallbackOptions | None = None,
    ) -> FallbackOutcome:
        """Extract packaging fields from *images*, degrading gracefully.

        Never raises: unexpected errors are logged, recorded in
        ``errors`` and turned into the same degraded outcome the ladder
        would have reached (``manual_input`` or ``text_only``).
        """
        options = options or self._default_options
        run = _RunContext(
            request_id=uuid.uuid4().hex,
            options=options,
            tier_id=normalize_tier(options.tier_id),
            image_count=len(images),
        )
        self._logger.info(
            "fallback_run_started",
            request_id=run.request_id,
            tier_id=options.tier_id,
            task_kind=options.task_kind.value,
            images=len(images),
            max_attempts=options.max_attempts,
        )

        try:
            outcome = await self._run_ladder(run, images)
        except Exception as exc:
            self._logger.error("fallback_run_failed", request_id=run.request_id, error=str(exc))
            run.errors.append(f"Unexpected error in fallback processing: {exc}")
            outcome = self._degrade_to_floor(run)

        self._recorder.record_run(self._run_metrics(run, outcome))
        self._logger.info(
            "fallback_run_finished",
            request_id=run.request_id,
            success=outcome.success,
            strategy=outcome.strategy,
            provider=outcome.provider_id,
            degradation_level=outcome.degradation_level.value,
            attempts=outcome.total_attempts,
            total_time_ms=round(outcome.total_time_ms, 1),
        )
        return outcome

    # ------------------------------------------------------------------
    # Ladder
    # ------------------------------------------------------------------

    async def _run_ladder(self, run: _RunContext, images: list[bytes]) -> FallbackOutcome:
        options = run.options

        if options.task_kind is TaskKind.OCR and not images:
            self._decide(run, FallbackStage.PRIMARY_MULTI_STRATEGY, "No images supplied for OCR", level="warning")
            return self._degrade_to_floor(run, extra=[NO_IMAGE_RECOMMENDATION])

        assignments = await self._resolver.resolve(options.tier_id, options.task_kind)
        assignments = _prefer(assignments, options.preferred_providers)
        request = ExtractionRequest(
            task_kind=options.task_kind,
            prompt=self._prompt(options, len(images)),
            images=images,
        )

        outcome = await self._primary_stage(run, assignments, request)
        if outcome is not None:
            return outcome

        outcome = await self._preprocessing_stage(run, assignments, request)
        if outcome is not None:
            return outcome

        return self._degrade_to_floor(run)

    async def _primary_stage(
        self,
        run: _RunContext,
        assignments: list[ProviderAssignment],
        request: ExtractionRequest,
    ) -> FallbackOutcome | None:
        stage = FallbackStage.PRIMARY_MULTI_STRATEGY
        options = run.options
        self._decide(run, stage, f"Trying {len(assignments)} providers")

        for assignment in assignments:
            if run.budget_exhausted():
                self._decide(run, stage, "Attempt budget exhausted", level="warning")
                break
            candidate = await self._attempt(run, stage, assignment, request, "primary")
            if candidate is None:
                continue
            run.consider(candidate)
            if candidate.confidence > options.primary_acceptance_floor or candidate.confidence >= options.min_confidence:
                break

        if run.best is not None and run.best.confidence >= options.min_confidence:
            return self._succeed(run, stage, run.best)

        self._decide(
            run,
            stage,
            "No provider reached the minimum confidence",
            confidence=run.best.confidence if run.best else None,
        )
        return None

    async def _preprocessing_stage(
        self,
        run: _RunContext,
        assignments: list[ProviderAssignment],
        request: ExtractionRequest,
    ) -> FallbackOutcome | None:
        stage = FallbackStage.PREPROCESSING_RETRY
        options = run.options

        if not options.enable_preprocessing_retry:
            self._decide(run, stage, "Preprocessing retry disabled")
            return None
        if not request.images:
            self._decide(run, stage, "No images to preprocess")
            return None
        if run.budget_exhausted():
            self._decide(run, stage, "Skipped: attempt budget exhausted", level="warning")
            return None

        retry_assignments = self._retry_assignments(assignments, run.tier_id)
        if not retry_assignments:
            self._decide(run, stage, "No vision-capable provider for retries", level="warning")
            return None

        for config in self._preprocessing.variations:
            if run.budget_exhausted():
                self._decide(run, stage, "Attempt budget exhausted", level="warning")
                return None
            strategy = config.strategy_label
            try:
                variant = await self._preprocessing.apply(request.images[0], config)
            except PreprocessingError as exc:
                run.errors.append(f"{strategy}: {exc.message}")
                self._decide(run, stage, "Variant could not be produced", level="warning", strategy=strategy, error=exc.message)
                continue

            run.preprocessing_used = True
            retry_request = request.model_copy(update={"images": [variant.data, *request.images[1:]]})
            for assignment in retry_assignments:
                if run.budget_exhausted():
                    break
                candidate = await self._attempt(run, stage, assignment, retry_request, strategy)
                if candidate is None:
                    continue
                run.consider(candidate)
                if candidate.confidence > options.preprocessing_acceptance_floor:
                    return self._succeed(run, stage, candidate)

        self._decide(run, stage, "No preprocessing variant produced an acceptable result")
        return None

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _attempt(
        self,
        run: _RunContext,
        stage: FallbackStage,
        assignment: ProviderAssignment,
        request: ExtractionRequest,
        strategy: str,
    ) -> _Candidate | None:
        limit_error = await self._usage_limit_error(run)
        if limit_error is not None:
            attempt = AttemptRecord(
                provider_id=assignment.provider_id,
                assigned_provider_id=assignment.provider_id,
                strategy=strategy,
                task_kind=request.task_kind,
                error=limit_error,
                error_kind=ErrorKind.OTHER,
            )
            fields = None
        else:
            try:
                result = await self._invoker.invoke(assignment, request, strategy=strategy, tier_id=run.tier_id)
                attempt, fields = result.attempt, result.fields
            except QuotaBillingError as exc:
                attempt, fields = exc.attempt, None

        run.attempts.append(attempt)
        self._recorder.record(attempt, run.usage_context)

        if not attempt.success or fields is None:
            run.errors.append(f"{attempt.provider_id}: {attempt.error}")
            self._decide(
                run,
                stage,
                "Provider attempt failed",
                level="warning",
                provider=attempt.provider_id,
                strategy=strategy,
                error=attempt.error,
            )
            return None

        validation = self._validator.validate(fields, fields.raw_text)
        self._decide(
            run,
            stage,
            "Provider attempt completed",
            provider=attempt.provider_id,
            strategy=strategy,
            confidence=fields.confidence,
        )
        return _Candidate(fields=fields, attempt=attempt, validation=validation)

    async def _usage_limit_error(self, run: _RunContext) -> str | None:
        """Return an error message when the run's user is over the daily cap."""
        user_id = run.options.user_id
        if not user_id:
            return None
        limit = daily_usage_limit(run.tier_id)
        used = await self._recorder.count_recent_attempts(user_id, datetime.now(timezone.utc) - USAGE_LIMIT_WINDOW)
        if used < limit:
            return None
        return f"Daily AI usage limit exceeded ({used}/{limit})"

    def _retry_assignments(self, assignments: list[ProviderAssignment], tier_id: str) -> list[ProviderAssignment]:
        by_provider: dict[str, ProviderAssignment] = {}
        for assignment in assignments:
            by_provider.setdefault(assignment.provider_id, assignment)
        subset = [by_provider[p] for p in self._retry_providers if p in by_provider]
        if subset:
            return subset
        return [a for a in by_provider.values() if self._invoker.supports_vision(a.provider_id, tier_id)]

    # ------------------------------------------------------------------
    # Terminal states
    # ------------------------------------------------------------------

    def _succeed(self, run: _RunContext, stage: FallbackStage, candidate: _Candidate) -> FallbackOutcome:
        attempt = candidate.attempt
        self._decide(
            run,
            stage,
            "Result accepted",
            provider=attempt.provider_id,
            strategy=attempt.strategy,
            confidence=candidate.confidence,
        )
        return FallbackOutcome(
            request_id=run.request_id,
            success=True,
            fields=candidate.fields,
            validation=candidate.validation,
            strategy=attempt.strategy,
            provider_id=attempt.provider_id,
            degradation_level=DegradationLevel.NONE,
            total_attempts=len(run.attempts),
            total_time_ms=run.elapsed_ms,
            attempts=list(run.attempts),
            errors=list(run.errors),
            decisions=list(run.decisions),
            composite_confidence=candidate.validation.composite_confidence,
            adjusted_confidence=strategy_adjusted_confidence(
                candidate.confidence,
                attempt.provider_id,
                attempt.strategy,
                len(run.attempts),
            ),
            pharmaceutical_form=self._form(run, candidate.fields),
        )

    def _degrade_to_floor(self, run: _RunContext, extra: list[str] | None = None) -> FallbackOutcome:
        if run.options.enable_manual_fallback:
            return self._degrade(run, FallbackStage.MANUAL_INPUT_DEGRADATION, "Falling back to manual input", extra)
        return self._degrade(run, FallbackStage.TEXT_ONLY_DEGRADATION, "Falling back to text-only verification", extra)

    def _degrade(
        self,
        run: _RunContext,
        stage: FallbackStage,
        message: str,
        extra: list[str] | None = None,
    ) -> FallbackOutcome:
        if stage is FallbackStage.MANUAL_INPUT_DEGRADATION:
            level, recommendations = DegradationLevel.MANUAL_INPUT, MANUAL_INPUT_RECOMMENDATIONS
        else:
            level, recommendations = DegradationLevel.TEXT_ONLY, TEXT_ONLY_RECOMMENDATIONS
        self._decide(run, stage, message, level="warning")

        best = run.best
        return FallbackOutcome(
            request_id=run.request_id,
            success=False,
            fields=best.fields if best else None,
            validation=best.validation if best else None,
            degradation_level=level,
            total_attempts=len(run.attempts),
            total_time_ms=run.elapsed_ms,
            attempts=list(run.attempts),
            errors=list(run.errors),
            decisions=list(run.decisions),
            recommendations=[*(extra or []), *recommendations],
            composite_confidence=best.validation.composite_confidence if best else 0.0,
            pharmaceutical_form=self._form(run, best.fields if best else None),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _decide(
        self,
        run: _RunContext,
        stage: FallbackStage,
        message: str,
        level: str = "info",
        provider: str | None = None,
        strategy: str | None = None,
        confidence: float | None = None,
        error: str | None = None,
    ) -> None:
        run.decisions.append(
            DecisionLogEntry(
                level=level,
                stage=stage,
                message=message,
                provider=provider,
                strategy=strategy,
                confidence=confidence,
                error=error,
            )
        )
        log = self._logger.warning if level == "warning" else self._logger.info
        log(
            "fallback_decision",
            request_id=run.request_id,
            stage=stage.value,
            decision=message,
            provider=provider,
            strategy=strategy,
            confidence=round(confidence, 4) if confidence is not None else None,
            error=error,
        )

    @staticmethod
    def _prompt(options: FallbackOptions, image_count: int) -> str:
        if options.prompt or options.task_kind is not TaskKind.OCR:
            return options.prompt
        return build_ocr_prompt(DEFAULT_PHARMA_FORM, options.tier_id, image_count)

    @staticmethod
    def _form(run: _RunContext, fields: ExtractedFields | None) -> str:
        text = " ".join(
            part
            for part in (run.options.prompt, fields.product_name if fields else None, fields.raw_text if fields else None)
            if part
        )
        return detect_pharma_form(text) if text else DEFAULT_PHARMA_FORM

    @staticmethod
    def _run_metrics(run: _RunContext, outcome: FallbackOutcome) -> RunMetrics:
        fields = outcome.fields
        return RunMetrics(
            request_id=run.request_id,
            tier_id=run.tier_id,
            user_id=run.options.user_id,
            strategy=outcome.strategy or "failed",
            degradation_level=outcome.degradation_level.value,
            image_count=run.image_count,
            processing_time_ms=outcome.total_time_ms,
            total_attempts=outcome.total_attempts,
            confidence=outcome.confidence,
            composite_confidence=outcome.composite_confidence,
            success=outcome.success,
            preprocessing_used=run.preprocessing_used,
            pharmaceutical_form=outcome.pharmaceutical_form,
            batch_detected=bool(fields and fields.batch_number),
            expiry_detected=bool(fields and fields.expiry_date),
            manufacturer_detected=bool(fields and fields.manufacturer),
            cost=sum(a.cost for a in run.attempts),
            error_type="multiple_errors" if len(run.errors) > 1 else ("provider_error" if run.errors else None),
            error_message="; ".join(run.errors) or None,
            raw_text=fields.raw_text if fields else "",
        )


def _prefer(assignments: list[ProviderAssignment], preferred: list[str]) -> list[ProviderAssignment]:
    """Move *preferred* providers to the front, in the given order."""
    if not preferred:
        return list(assignments)
    rank = {provider: index for index, provider in enumerate(preferred)}
    return sorted(assignments, key=lambda a: rank.get(a.provider_id, len(rank)))
