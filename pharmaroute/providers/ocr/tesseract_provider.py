"""Tesseract OCR adapter -- the local, offline engine at the end of every tier.

Wraps pytesseract.  Vision requests run Tesseract over every image and
concatenate the text; text requests pass the supplied text straight
through so the response parser's heuristics can still recover fields when
every remote vendor is unreachable.  The adapter reports no confidence of
its own: the heuristic parse score is used instead.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image

from pharmaroute.config.settings import Settings
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.models.assignment import ProviderConfig
from pharmaroute.models.extraction import ExtractionRequest, ProviderResponse
from pharmaroute.utils.errors import ProviderError, ProviderUnavailableError
from pharmaroute.utils.logging import get_logger

_MODEL_NAME = "tesseract-ocr"


class TesseractAdapter(IProviderAdapter):
    """Provider adapter backed by Google Tesseract via pytesseract."""

    def __init__(self, settings: Settings | None = None, lang: str = "eng") -> None:
        self._lang = lang
        self._logger = get_logger(__name__)
        if settings is not None and settings.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    # ------------------------------------------------------------------
    # IProviderAdapter implementation
    # ------------------------------------------------------------------

    async def process_text(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        text = request.prompt.strip()
        if not text:
            return ProviderResponse(
                provider=self.get_provider_name(),
                model=_MODEL_NAME,
                success=False,
                error="No text supplied for local analysis",
            )
        return ProviderResponse(content=text, provider=self.get_provider_name(), model=_MODEL_NAME)

    async def process_vision(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        if not request.images:
            raise ProviderError("Vision request carries no images", provider_name=self.get_provider_name())
        if not self.is_available():
            raise ProviderUnavailableError(
                "Tesseract binary is not installed",
                provider_name=self.get_provider_name(),
            )

        start = time.perf_counter()
        try:
            texts = [await asyncio.to_thread(self._ocr_image, image) for image in request.images]
        except Exception as exc:
            elapsed = time.perf_counter() - start
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                error=str(exc),
                processing_time=round(elapsed, 3),
            )
            raise ProviderError(
                f"Tesseract OCR failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        combined = "\n".join(text.strip() for text in texts if text.strip())
        if not combined:
            return ProviderResponse(
                provider=self.get_provider_name(),
                model=_MODEL_NAME,
                response_time_ms=elapsed_ms,
                success=False,
                error="Tesseract returned no text",
            )

        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            images=len(request.images),
            characters=len(combined),
            response_time_ms=round(elapsed_ms, 1),
        )
        return ProviderResponse(
            content=combined,
            provider=self.get_provider_name(),
            model=_MODEL_NAME,
            response_time_ms=elapsed_ms,
        )

    def supports_vision(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be found."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ocr_image(self, image_bytes: bytes) -> str:
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        return pytesseract.image_to_string(image, lang=self._lang)
