"""Validation result models produced by the result validator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FieldValidation(BaseModel):
    """Plausibility verdict for one extracted field."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class ValidationDetail(BaseModel):
    """Per-field verdicts for one candidate extraction."""

    model_config = ConfigDict(frozen=True)

    batch_number: FieldValidation = Field(default_factory=FieldValidation)
    product_name: FieldValidation = Field(default_factory=FieldValidation)
    expiry_date: FieldValidation = Field(default_factory=FieldValidation)
    manufacturer: FieldValidation = Field(default_factory=FieldValidation)


class ValidationResult(BaseModel):
    """Composite verdict for one candidate extraction.

    ``is_valid`` requires both a composite confidence of at least 0.5 and a
    valid batch number -- the batch is what downstream verification keys on.
    """

    model_config = ConfigDict(frozen=True)

    details: ValidationDetail = Field(default_factory=ValidationDetail)
    composite_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_valid: bool = False
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class ConfidenceInterpretation(BaseModel):
    """Human-readable reading of a confidence score."""

    model_config = ConfigDict(frozen=True)

    level: str
    description: str
    recommendation: str
