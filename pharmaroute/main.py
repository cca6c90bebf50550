"""pharmaroute engine entry point.

Wires adapters, stores, services and the fallback orchestrator together via
dependency injection.  Loads configuration from ``.env`` and
``config/config.yaml`` and configures structured logging.

Also provides the standalone ``run_fallback`` helper for CLI or scripting
usage: it builds an engine, runs one request and shuts the engine down.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from pharmaroute.config.loader import load_config
from pharmaroute.config.settings import Settings
from pharmaroute.interfaces.alert_notifier import IAlertNotifier
from pharmaroute.interfaces.provider_adapter import IProviderAdapter
from pharmaroute.models.fallback import FallbackOptions, FallbackOutcome
from pharmaroute.pipeline.orchestrator import FallbackOrchestrator
from pharmaroute.providers.cache.memory_cache import MemoryCacheProvider
from pharmaroute.providers.credentials.env_credential_provider import EnvCredentialProvider
from pharmaroute.providers.llm.anthropic_provider import AnthropicAdapter
from pharmaroute.providers.llm.gemini_provider import GeminiAdapter
from pharmaroute.providers.llm.openai_provider import OpenAIAdapter
from pharmaroute.providers.notification.log_notifier import LogAlertNotifier
from pharmaroute.providers.notification.webhook_notifier import WebhookAlertNotifier
from pharmaroute.providers.ocr.tesseract_provider import TesseractAdapter
from pharmaroute.providers.storage.sqlite_assignment_store import SQLiteAssignmentStore
from pharmaroute.providers.storage.sqlite_usage_store import SQLiteUsageStore
from pharmaroute.services.adapter_invoker import AdapterInvoker
from pharmaroute.services.assignment_resolver import AssignmentResolver
from pharmaroute.services.preprocessing_service import PreprocessingService, load_variations
from pharmaroute.services.result_validator import ResultValidator
from pharmaroute.services.usage_recorder import UsageRecorder
from pharmaroute.utils.image_preprocessor import ImagePreprocessor
from pharmaroute.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_adapters(app_settings: Settings) -> dict[str, IProviderAdapter]:
    """Build one adapter per vendor with a configured key, plus Tesseract.

    Tesseract needs no key and is always registered: it is the last entry
    of every tier's provider list.
    """
    adapters: dict[str, IProviderAdapter] = {}
    if app_settings.google_ai_api_key:
        adapters["google"] = GeminiAdapter(settings=app_settings)
    if app_settings.openai_api_key:
        adapters["openai"] = OpenAIAdapter(settings=app_settings)
    if app_settings.anthropic_api_key:
        adapters["anthropic"] = AnthropicAdapter(settings=app_settings)
    adapters["tesseract"] = TesseractAdapter(settings=app_settings)
    return adapters


def _build_notifier(app_settings: Settings, http_client: httpx.AsyncClient) -> IAlertNotifier:
    """Webhook alerts when a URL is configured, log-only alerts otherwise."""
    if app_settings.alert_webhook_url:
        return WebhookAlertNotifier(
            webhook_url=app_settings.alert_webhook_url,
            http_client=http_client,
            timeout=app_settings.alert_webhook_timeout_seconds,
        )
    return LogAlertNotifier()


def build_default_options(app_config: dict[str, Any]) -> FallbackOptions:
    """Per-run defaults from the ``fallback`` config section."""
    fallback = app_config.get("fallback", {})
    known = FallbackOptions.model_fields
    return FallbackOptions(**{key: value for key, value in fallback.items() if key in known})


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_engine(
    custom_settings: Settings | None = None,
    app_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Construct every component of the engine.

    Parameters
    ----------
    custom_settings:
        Application settings.  Uses module-level ``settings`` if not provided.
    app_config:
        Loaded YAML config.  Uses module-level ``config`` if not provided.

    Returns
    -------
    dict
        A flat dict of named components.  ``orchestrator`` is the entry
        point; stores must be initialized with :func:`initialize_engine`
        before the first run.
    """
    s = custom_settings or settings
    cfg = app_config if app_config is not None else config

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=s.alert_webhook_timeout_seconds)

    # -- Adapters --
    adapters = _build_adapters(s)

    # -- Stores --
    assignment_store = SQLiteAssignmentStore(db_path=s.assignment_db_path)
    usage_store = SQLiteUsageStore(db_path=s.usage_db_path)

    # -- Services --
    cache_ttl = cfg.get("resolver", {}).get("cache_ttl_seconds", s.assignment_cache_ttl_seconds)
    resolver = AssignmentResolver(
        store=assignment_store,
        cache=MemoryCacheProvider(ttl=cache_ttl),
        credentials=EnvCredentialProvider(settings=s),
    )
    call_timeout = cfg.get("providers", {}).get("call_timeout_seconds", s.provider_call_timeout_seconds)
    invoker = AdapterInvoker(adapters=adapters, call_timeout_seconds=call_timeout)
    validator = ResultValidator()
    preprocessing = PreprocessingService(
        preprocessor=ImagePreprocessor(),
        variations=load_variations(cfg),
    )
    notifier = _build_notifier(s, http_client)
    recorder = UsageRecorder(store=usage_store, notifier=notifier)

    orchestrator = FallbackOrchestrator(
        resolver=resolver,
        invoker=invoker,
        validator=validator,
        preprocessing=preprocessing,
        recorder=recorder,
        retry_providers=s.preprocessing_retry_providers,
        default_options=build_default_options(cfg),
    )

    _logger.info(
        "engine_built",
        adapters=sorted(adapters),
        notifier=notifier.get_notifier_name(),
        preprocessing_variations=len(preprocessing.variations),
    )

    return {
        "http_client": http_client,
        "adapters": adapters,
        "assignment_store": assignment_store,
        "usage_store": usage_store,
        "resolver": resolver,
        "invoker": invoker,
        "validator": validator,
        "preprocessing": preprocessing,
        "notifier": notifier,
        "recorder": recorder,
        "orchestrator": orchestrator,
        "settings": s,
    }


async def initialize_engine(components: dict[str, Any]) -> None:
    """Create the SQLite tables used by the stores."""
    await components["assignment_store"].initialize()
    await components["usage_store"].initialize()


async def shutdown_engine(components: dict[str, Any]) -> None:
    """Flush pending recordings and release the shared HTTP client."""
    await components["recorder"].drain()
    await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Standalone helper (CLI / scripting)
# ---------------------------------------------------------------------------


async def run_fallback(
    images: list[bytes],
    options: FallbackOptions | None = None,
    custom_settings: Settings | None = None,
) -> FallbackOutcome:
    """Run one extraction request end to end on a freshly built engine."""
    components = build_engine(custom_settings)
    await initialize_engine(components)
    try:
        return await components["orchestrator"].run_fallback(images, options)
    finally:
        await shutdown_engine(components)
