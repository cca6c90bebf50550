"""Request and response models for a single extraction call.

Defines the immutable request a caller hands to the engine, the normalized
response every provider adapter returns, and the :class:`ExtractedFields`
shape the rest of the engine works with.  Providers return loosely-typed
payloads (camelCase or snake_case keys, singular or list values, JSON
embedded in prose); those are normalized into ``ExtractedFields`` once, at
the invoker boundary, so nothing downstream branches on key presence.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskKind(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """What the caller wants a provider to do."""

    OCR = "ocr"          # Read text fields off packaging photos
    VERIFY = "verify"    # Text-based verification / classification
    EXTRACT = "extract"  # Structured extraction from free text


class ExtractionRequest(BaseModel):
    """A single request handed to a provider adapter.

    Immutable once constructed; preprocessing retries build a new request
    with the re-encoded image rather than mutating this one.
    """

    model_config = ConfigDict(frozen=True)

    task_kind: TaskKind = TaskKind.OCR
    prompt: str = ""
    images: list[bytes] = Field(default_factory=list)
    max_tokens: int | None = None
    temperature: float | None = None

    @property
    def has_images(self) -> bool:
        return bool(self.images)


class UsageInfo(BaseModel):
    """Token usage and (optionally) provider-reported cost for one call."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    cost: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ProviderResponse(BaseModel):
    """Normalized response returned by every :class:`IProviderAdapter`.

    ``extracted_data`` is deliberately loose -- it is whatever structured
    payload the vendor produced.  The response parser turns it into
    :class:`ExtractedFields`.
    """

    model_config = ConfigDict(frozen=True)

    content: str = ""
    extracted_data: dict[str, Any] | None = None
    usage: UsageInfo = Field(default_factory=UsageInfo)
    model: str = ""
    provider: str
    response_time_ms: float = 0.0
    success: bool = True
    error: str | None = None


class ExtractedFields(BaseModel):
    """Packaging fields recovered from one provider response.

    Every text field is independently optional.  Blank strings are
    normalized to ``None`` so "not found" has exactly one representation.
    """

    model_config = ConfigDict(frozen=True)

    product_name: str | None = None
    batch_number: str | None = None
    expiry_date: str | None = None
    manufacturer: str | None = None
    raw_text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("product_name", "batch_number", "expiry_date", "manufacturer", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value).strip() or None

    @property
    def detected_field_count(self) -> int:
        return sum(
            1
            for value in (self.product_name, self.batch_number, self.expiry_date, self.manufacturer)
            if value is not None
        )
