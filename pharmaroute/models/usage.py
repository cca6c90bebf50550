"""Usage, escalation and run-metrics persistence models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from pharmaroute.models.extraction import TaskKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageContext(BaseModel):
    """Request-scoped context attached to every usage row."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    tier_id: str
    task_kind: TaskKind = TaskKind.OCR
    user_id: str | None = None
    image_count: int = 0


class UsageRecord(BaseModel):
    """One persisted provider call."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    request_id: str
    attempt_id: str
    tier_id: str
    user_id: str | None = None
    provider_id: str
    assigned_provider_id: str
    model_name: str = ""
    task_kind: TaskKind = TaskKind.OCR
    strategy: str = "primary"
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    response_time_ms: float = 0.0
    success: bool = False
    error_kind: str | None = None
    error_message: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class EscalationRecord(BaseModel):
    """An operator alert raised for a quota or billing failure."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    attempt_id: str
    provider_id: str
    tier_id: str
    user_id: str | None = None
    alert_type: str = "ai_quota_error"
    severity: str = "high"
    title: str = "AI provider quota exceeded"
    error_message: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class RunMetrics(BaseModel):
    """Per-run summary written once when a fallback run finishes."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    tier_id: str
    user_id: str | None = None
    strategy: str | None = None
    degradation_level: str = "none"
    image_count: int = 0
    processing_time_ms: float = 0.0
    total_attempts: int = 0
    confidence: float = 0.0
    composite_confidence: float = 0.0
    success: bool = False
    preprocessing_used: bool = False
    pharmaceutical_form: str = "general"
    batch_detected: bool = False
    expiry_detected: bool = False
    manufacturer_detected: bool = False
    cost: float = 0.0
    error_type: str | None = None
    error_message: str | None = None
    raw_text: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


class UsageStats(BaseModel):
    """Aggregate usage statistics over persisted attempts."""

    model_config = ConfigDict(frozen=True)

    total_requests: int = 0
    total_cost: float = 0.0
    total_tokens: int = 0
    avg_response_time_ms: float = 0.0
