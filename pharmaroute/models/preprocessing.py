"""Image preprocessing variation models."""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, ConfigDict, Field


class PreprocessingConfig(BaseModel):
    """One re-encoding recipe applied to a source image before a retry."""

    model_config = ConfigDict(frozen=True)

    enhance_contrast: bool = True
    sharpen: bool = True
    quality: float = Field(default=0.95, gt=0.0, le=1.0)
    max_width: int = Field(default=1200, ge=1)
    max_height: int = Field(default=1600, ge=1)

    @property
    def config_hash(self) -> str:
        """Short stable identifier used in strategy labels."""
        key = (
            f"{int(self.enhance_contrast)}:{int(self.sharpen)}:"
            f"{self.quality:.2f}:{self.max_width}:{self.max_height}"
        )
        return hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]

    @property
    def strategy_label(self) -> str:
        return f"preprocessing-retry:{self.config_hash}"


class PreprocessedImage(BaseModel):
    """Output of applying one :class:`PreprocessingConfig`."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    original_size: int
    processed_size: int
    original_dimensions: tuple[int, int]
    processed_dimensions: tuple[int, int]
    enhancements: list[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0
