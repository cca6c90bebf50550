"""OpenAI-compatible provider adapter.

Wraps the ``openai`` async client to implement :class:`IProviderAdapter`.
When ``openai_base_url`` is configured the client points at that
OpenAI-compatible endpoint instead of the default one.

On the business tier this adapter's assignment is a text model; vision OCR
for it is redirected to the Google adapter by the invoker, so
:meth:`process_vision` is only reached on tiers without that redirect.
"""

from __future__ import annotations

import time

import openai
import structlog

from pharmaroute.config.settings import Settings
from pharmaroute.config.tier_defaults import DEFAULT_PROVIDER_CONFIGS
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.models.assignment import ProviderConfig
from pharmaroute.models.extraction import ExtractionRequest, ProviderResponse, UsageInfo
from pharmaroute.providers.llm.media import detect_media_type, encode_image
from pharmaroute.utils.errors import ProviderError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = (
    "You extract product information from pharmaceutical packaging. "
    "Answer with JSON only."
)


class OpenAIAdapter(IProviderAdapter):
    """Provider adapter backed by an OpenAI-compatible chat completions API.

    ``gpt-4o-mini`` handles text by default and ``gpt-4o`` handles vision;
    both can be overridden via settings.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url
        self._text_model = settings.openai_model or DEFAULT_PROVIDER_CONFIGS["openai"].model_name
        self._vision_model = settings.openai_vision_model or "gpt-4o"
        # Custom endpoints are assumed text-only unless a vision model is named.
        self._has_vision = bool(settings.openai_vision_model) or not settings.openai_base_url
        self._clients: dict[str, openai.AsyncOpenAI] = {}

    # ------------------------------------------------------------------
    # IProviderAdapter implementation
    # ------------------------------------------------------------------

    async def process_text(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        model = (config.model_name if config else "") or self._text_model
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": request.prompt},
        ]
        return await self._create(request, config, model, messages, event="openai_text")

    async def process_vision(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        if not self._has_vision:
            raise ProviderError(
                message="Vision not supported by this provider configuration",
                provider_name=self.get_provider_name(),
            )
        if not request.images:
            raise ProviderError("Vision request carries no images", provider_name=self.get_provider_name())

        parts: list[dict] = [{"type": "text", "text": request.prompt}]
        for image in request.images:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{detect_media_type(image)};base64,{encode_image(image)}"},
                }
            )
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": parts},
        ]
        return await self._create(request, config, self._vision_model, messages, event="openai_vision")

    def supports_vision(self) -> bool:
        return self._has_vision

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "openai"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _client_for(self, api_key: str) -> openai.AsyncOpenAI:
        if api_key not in self._clients:
            client_kwargs: dict = {"api_key": api_key}
            if self._base_url:
                client_kwargs["base_url"] = self._base_url
            self._clients[api_key] = openai.AsyncOpenAI(**client_kwargs)
        return self._clients[api_key]

    async def _create(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None,
        model: str,
        messages: list[dict],
        event: str,
    ) -> ProviderResponse:
        api_key = (config.api_key if config else "") or self._api_key
        max_tokens = request.max_tokens or (config.max_tokens if config else 2048)
        temperature = request.temperature if request.temperature is not None else (
            config.temperature if config else 0.1
        )

        start = time.perf_counter()
        try:
            response = await self._client_for(api_key).chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"OpenAI rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                message=f"OpenAI API error: {exc}",
                provider_name=self.get_provider_name(),
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"OpenAI API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        content = response.choices[0].message.content
        if content is None:
            raise ProviderError(
                message="OpenAI returned empty response",
                provider_name=self.get_provider_name(),
            )

        usage = UsageInfo(
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
        )
        logger.info(
            event,
            model=model,
            tokens=usage.total_tokens,
            response_time_ms=round(elapsed_ms, 1),
        )
        return ProviderResponse(
            content=content,
            usage=usage,
            model=model,
            provider=self.get_provider_name(),
            response_time_ms=elapsed_ms,
        )
