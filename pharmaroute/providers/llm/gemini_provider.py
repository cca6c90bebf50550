"""Google Gemini provider adapter.

Wraps the ``google-genai`` client to implement :class:`IProviderAdapter`.
Gemini is the first OCR choice on most tiers: it is cheap, fast, and reads
small batch and expiry print well.  Calls go through ``client.aio`` so the
event loop is never blocked.
"""

from __future__ import annotations

import time

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from pharmaroute.config.settings import Settings
from pharmaroute.config.tier_defaults import DEFAULT_PROVIDER_CONFIGS
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.models.assignment import ProviderConfig
from pharmaroute.models.extraction import ExtractionRequest, ProviderResponse, UsageInfo
from pharmaroute.providers.llm.media import detect_media_type
from pharmaroute.utils.errors import ProviderError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)


class GeminiAdapter(IProviderAdapter):
    """Provider adapter backed by the Google Gemini API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.google_ai_api_key
        self._default_model = settings.google_model or DEFAULT_PROVIDER_CONFIGS["google"].model_name
        self._clients: dict[str, genai.Client] = {}

    # ------------------------------------------------------------------
    # IProviderAdapter implementation
    # ------------------------------------------------------------------

    async def process_text(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        return await self._generate(request, config, [request.prompt], event="gemini_text")

    async def process_vision(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        if not request.images:
            raise ProviderError("Vision request carries no images", provider_name=self.get_provider_name())
        contents: list = [request.prompt]
        contents.extend(
            types.Part.from_bytes(data=image, mime_type=detect_media_type(image))
            for image in request.images
        )
        return await self._generate(request, config, contents, event="gemini_vision")

    def supports_vision(self) -> bool:
        return True

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "google"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _client_for(self, api_key: str) -> genai.Client:
        if api_key not in self._clients:
            self._clients[api_key] = genai.Client(api_key=api_key)
        return self._clients[api_key]

    async def _generate(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None,
        contents: list,
        event: str,
    ) -> ProviderResponse:
        api_key = (config.api_key if config else "") or self._api_key
        model = (config.model_name if config else "") or self._default_model
        generation_config = types.GenerateContentConfig(
            temperature=request.temperature if request.temperature is not None else (
                config.temperature if config else 0.1
            ),
            max_output_tokens=request.max_tokens or (config.max_tokens if config else 2048),
        )

        start = time.perf_counter()
        try:
            response = await self._client_for(api_key).aio.models.generate_content(
                model=model,
                contents=contents,
                config=generation_config,
            )
        except genai_errors.APIError as exc:
            if exc.code == 429:
                raise RateLimitError(
                    message=f"Gemini rate limit: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise ProviderError(
                message=f"Gemini API error: {exc}",
                provider_name=self.get_provider_name(),
                status_code=exc.code,
            ) from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        text = response.text
        if not text:
            raise ProviderError(
                message="Gemini returned no text content",
                provider_name=self.get_provider_name(),
            )

        metadata = response.usage_metadata
        usage = UsageInfo(
            input_tokens=(metadata.prompt_token_count or 0) if metadata else 0,
            output_tokens=(metadata.candidates_token_count or 0) if metadata else 0,
        )
        logger.info(
            event,
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            response_time_ms=round(elapsed_ms, 1),
        )
        return ProviderResponse(
            content=text,
            usage=usage,
            model=model,
            provider=self.get_provider_name(),
            response_time_ms=elapsed_ms,
        )
