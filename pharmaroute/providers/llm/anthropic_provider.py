"""Anthropic provider adapter.

Wraps the ``anthropic`` async client to implement :class:`IProviderAdapter`.
Supports both text and vision requests via the Claude Messages API.

Key differences from the OpenAI adapter:
    - System prompt is a separate parameter, not a message in the list
    - Vision uses "image" content blocks with a base64 source
    - Response content is a list of blocks; only text blocks are kept
"""

from __future__ import annotations

import time

import anthropic
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


class AnthropicAdapter(IProviderAdapter):
    """Provider adapter backed by the Anthropic Claude API.

    One ``AsyncAnthropic`` client is kept per credential, so assignments
    carrying their own key do not rebuild a client on every call.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._default_model = settings.anthropic_model or DEFAULT_PROVIDER_CONFIGS["anthropic"].model_name
        self._clients: dict[str, anthropic.AsyncAnthropic] = {}

    # ------------------------------------------------------------------
    # IProviderAdapter implementation
    # ------------------------------------------------------------------

    async def process_text(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        content = [{"type": "text", "text": request.prompt}]
        return await self._create(request, config, content, event="anthropic_text")

    async def process_vision(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None = None,
    ) -> ProviderResponse:
        if not request.images:
            raise ProviderError("Vision request carries no images", provider_name=self.get_provider_name())
        # Anthropic expects images before the text prompt.
        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": detect_media_type(image),
                    "data": encode_image(image),
                },
            }
            for image in request.images
        ]
        content.append({"type": "text", "text": request.prompt})
        return await self._create(request, config, content, event="anthropic_vision")

    def supports_vision(self) -> bool:
        return True

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _client_for(self, api_key: str) -> anthropic.AsyncAnthropic:
        if api_key not in self._clients:
            self._clients[api_key] = anthropic.AsyncAnthropic(api_key=api_key)
        return self._clients[api_key]

    async def _create(
        self,
        request: ExtractionRequest,
        config: ProviderConfig | None,
        content: list[dict],
        event: str,
    ) -> ProviderResponse:
        api_key = (config.api_key if config else "") or self._api_key
        model = (config.model_name if config else "") or self._default_model
        max_tokens = request.max_tokens or (config.max_tokens if config else 2048)
        temperature = request.temperature if request.temperature is not None else (
            config.temperature if config else 0.1
        )

        start = time.perf_counter()
        try:
            response = await self._client_for(api_key).messages.create(
                model=model,
                max_tokens=max_tokens,
                system=_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": content}],
                temperature=temperature,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"Anthropic rate limit: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIStatusError as exc:
            raise ProviderError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
                status_code=exc.status_code,
            ) from exc
        except anthropic.APIError as exc:
            raise ProviderError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        elapsed_ms = (time.perf_counter() - start) * 1000
        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise ProviderError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            event,
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            response_time_ms=round(elapsed_ms, 1),
        )
        return ProviderResponse(
            content="\n".join(text_blocks),
            usage=UsageInfo(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            model=model,
            provider=self.get_provider_name(),
            response_time_ms=elapsed_ms,
        )
