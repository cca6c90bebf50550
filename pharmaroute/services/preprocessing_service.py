"""Preprocessing variations for the retry stage of the fallback ladder.

Holds the ordered list of :class:`PreprocessingConfig` variations (from
``preprocessing.variations`` in ``config/config.yaml``, or the built-in
four when the section is missing) and runs the CPU-bound re-encode in a
worker thread so the event loop keeps serving other runs.
"""

from __future__ import annotations

import asyncio
from typing import Any

from pydantic import ValidationError

from pharmaroute.models.preprocessing import PreprocessedImage, PreprocessingConfig
from pharmaroute.utils.errors import ConfigurationError
from pharmaroute.utils.image_preprocessor import ImagePreprocessor
from pharmaroute.utils.logging import get_logger

# Strong cleanup first, then progressively lighter touches.
DEFAULT_VARIATIONS: tuple[PreprocessingConfig, ...] = (
    PreprocessingConfig(enhance_contrast=True, sharpen=True, quality=0.95, max_width=1200),
    PreprocessingConfig(enhance_contrast=True, sharpen=False, quality=0.9, max_width=800),
    PreprocessingConfig(enhance_contrast=False, sharpen=True, quality=1.0, max_width=1600),
    PreprocessingConfig(enhance_contrast=False, sharpen=False, quality=0.8, max_width=600),
)


def load_variations(config: dict[str, Any] | None) -> list[PreprocessingConfig]:
    """Read the variation list from a loaded config dict.

    Raises:
        ConfigurationError: If a variation entry is malformed.
    """
    entries = ((config or {}).get("preprocessing") or {}).get("variations")
    if not entries:
        return list(DEFAULT_VARIATIONS)
    try:
        return [PreprocessingConfig(**entry) for entry in entries]
    except (TypeError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid preprocessing variation: {exc}") from exc


class PreprocessingService:
    """Applies preprocessing variations off the event loop."""

    def __init__(
        self,
        preprocessor: ImagePreprocessor | None = None,
        variations: list[PreprocessingConfig] | None = None,
    ) -> None:
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._variations = list(variations) if variations else list(DEFAULT_VARIATIONS)
        self._logger = get_logger(__name__)

    @property
    def variations(self) -> list[PreprocessingConfig]:
        return list(self._variations)

    async def apply(self, image: bytes, config: PreprocessingConfig) -> PreprocessedImage:
        """Produce one variant of *image*.

        Raises:
            PreprocessingError: If the image cannot be decoded or encoded.
        """
        result = await asyncio.to_thread(self._preprocessor.apply_variation, image, config)
        self._logger.debug(
            "preprocessing_variant_ready",
            strategy=config.strategy_label,
            enhancements=result.enhancements,
            original_size=result.original_size,
            processed_size=result.processed_size,
            processing_time_ms=round(result.processing_time_ms, 1),
        )
        return result
