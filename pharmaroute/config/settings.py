"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# Two sources, in priority order:
#
#   1. **Environment variables** -- e.g. GOOGLE_AI_API_KEY=AIza...
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# apply when neither source sets a field.  Empty strings mean "not
# configured": the credential provider treats the vendor as unavailable
# and the resolver drops it from the tier's list.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """pharmaroute application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider credentials ===
    google_ai_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    anthropic_api_key: str = ""
    tesseract_cmd: str = ""  # Path to the tesseract binary when not on PATH

    # === Model overrides (empty = tier table default) ===
    google_model: str = ""
    openai_model: str = ""
    openai_vision_model: str = ""
    anthropic_model: str = ""

    # === Routing ===
    assignment_db_path: str = "data/assignments.db"
    assignment_cache_ttl_seconds: int = 300
    provider_call_timeout_seconds: float = 25.0
    preprocessing_retry_providers: list[str] = ["anthropic", "google"]

    # === Fallback defaults (per-run FallbackOptions override these) ===
    fallback_max_attempts: int = 5
    fallback_max_time_ms: int = 30000
    fallback_min_confidence: float = 0.6
    primary_acceptance_floor: float = 0.3
    preprocessing_acceptance_floor: float = 0.5
    enable_preprocessing_retry: bool = True
    enable_manual_fallback: bool = True

    # === Usage & escalation ===
    usage_db_path: str = "data/usage.db"
    alert_webhook_url: str = ""
    alert_webhook_timeout_seconds: float = 10.0

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_providers(self) -> list[str]:
        """Return provider ids that have credentials configured, plus local engines."""
        providers: list[str] = []
        if self.google_ai_api_key:
            providers.append("google")
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        providers.append("tesseract")
        return providers
