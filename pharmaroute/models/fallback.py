"""Fallback ladder models: options, attempt records, decisions, outcome.

Architecture note:
    One fallback run owns a private, mutable run context inside the
    orchestrator (the source of truth while the ladder executes).  Everything the
    caller sees is built from that context as frozen models at return time:
    :class:`AttemptRecord` entries are created once per provider call and
    never mutated, and :class:`FallbackOutcome` is assembled exactly once.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from pharmaroute.models.extraction import ExtractedFields, TaskKind
from pharmaroute.models.validation import ValidationResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class ErrorKind(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Failure classification used for escalation."""

    QUOTA_BILLING = "quota_billing"
    OTHER = "other"


class DegradationLevel(str, Enum):  # noqa: UP042
    """How far the ladder fell short of a confident answer."""

    NONE = "none"
    MANUAL_INPUT = "manual_input"
    TEXT_ONLY = "text_only"


class FallbackStage(str, Enum):  # noqa: UP042
    """States of the fallback ladder, in forced order."""

    PRIMARY_MULTI_STRATEGY = "primary_multi_strategy"
    PREPROCESSING_RETRY = "preprocessing_retry"
    MANUAL_INPUT_DEGRADATION = "manual_input_degradation"
    TEXT_ONLY_DEGRADATION = "text_only_degradation"


class AttemptRecord(BaseModel):
    """One provider call made during a fallback run.

    ``provider_id`` is the adapter actually called; ``assigned_provider_id``
    differs from it only when a vision redirect applied.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    attempt_id: str = Field(default_factory=_new_id)
    provider_id: str
    assigned_provider_id: str
    strategy: str = "primary"
    task_kind: TaskKind = TaskKind.OCR
    success: bool = False
    fields: ExtractedFields | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    model_name: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: float = 0.0
    cost: float = 0.0
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def confidence(self) -> float:
        return self.fields.confidence if self.fields is not None else 0.0

    @property
    def redirected(self) -> bool:
        return self.provider_id != self.assigned_provider_id


class DecisionLogEntry(BaseModel):
    """A state transition or notable decision taken by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)
    level: str = "info"
    stage: FallbackStage
    message: str
    provider: str | None = None
    strategy: str | None = None
    confidence: float | None = None
    error: str | None = None


class FallbackOptions(BaseModel):
    """Caller-supplied knobs for one fallback run.  Every field has a default."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=5, ge=1)
    max_time_ms: int = Field(default=30000, ge=1)
    preferred_providers: list[str] = Field(default_factory=list)
    tier_id: str = "free"
    enable_preprocessing_retry: bool = True
    min_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    enable_manual_fallback: bool = True
    task_kind: TaskKind = TaskKind.OCR
    prompt: str = ""
    primary_acceptance_floor: float = Field(default=0.3, ge=0.0, le=1.0)
    preprocessing_acceptance_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    user_id: str | None = None


class FallbackOutcome(BaseModel):
    """Terminal result of one fallback run.

    A degraded outcome is success-shaped: ``success`` is ``False`` and
    ``recommendations`` tell the user what to do next, but nothing is raised.
    When a low-confidence candidate was found it is still returned in
    ``fields`` so manual entry can start from it.
    """

    model_config = ConfigDict(frozen=True)

    request_id: str
    success: bool = False
    fields: ExtractedFields | None = None
    validation: ValidationResult | None = None
    strategy: str | None = None
    provider_id: str | None = None
    degradation_level: DegradationLevel = DegradationLevel.NONE
    total_attempts: int = 0
    total_time_ms: float = 0.0
    attempts: list[AttemptRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    decisions: list[DecisionLogEntry] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    composite_confidence: float = 0.0
    adjusted_confidence: float = 0.0
    pharmaceutical_form: str = "general"

    @property
    def confidence(self) -> float:
        return self.fields.confidence if self.fields is not None else 0.0
