"""Pydantic v2 data models for the pharmaroute engine."""

from pharmaroute.models.assignment import ProviderAssignment, ProviderConfig, StoredAssignment
from pharmaroute.models.extraction import (
    ExtractedFields,
    ExtractionRequest,
    ProviderResponse,
    TaskKind,
    UsageInfo,
)
from pharmaroute.models.fallback import (
    AttemptRecord,
    DecisionLogEntry,
    DegradationLevel,
    ErrorKind,
    FallbackOptions,
    FallbackOutcome,
    FallbackStage,
)
from pharmaroute.models.preprocessing import PreprocessedImage, PreprocessingConfig
from pharmaroute.models.usage import (
    EscalationRecord,
    RunMetrics,
    UsageContext,
    UsageRecord,
    UsageStats,
)
from pharmaroute.models.validation import (
    ConfidenceInterpretation,
    FieldValidation,
    ValidationDetail,
    ValidationResult,
)

__all__ = [
    "AttemptRecord",
    "ConfidenceInterpretation",
    "DecisionLogEntry",
    "DegradationLevel",
    "ErrorKind",
    "EscalationRecord",
    "ExtractedFields",
    "ExtractionRequest",
    "FallbackOptions",
    "FallbackOutcome",
    "FallbackStage",
    "FieldValidation",
    "PreprocessedImage",
    "PreprocessingConfig",
    "ProviderAssignment",
    "ProviderConfig",
    "ProviderResponse",
    "RunMetrics",
    "StoredAssignment",
    "TaskKind",
    "UsageContext",
    "UsageInfo",
    "UsageRecord",
    "UsageStats",
    "ValidationDetail",
    "ValidationResult",
]
