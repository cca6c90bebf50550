"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- Static defaults checked into the repo
#   2. .env file           -- Local developer overrides (not committed)
#   3. Environment vars    -- Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# environment-based values from Settings on top.  The preprocessing
# variation list only lives in YAML; fallback knobs can come from either.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from pharmaroute.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings to overlay; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "providers": {
            "available": settings.get_available_providers(),
            "call_timeout_seconds": settings.provider_call_timeout_seconds,
        },
        "resolver": {
            "cache_ttl_seconds": settings.assignment_cache_ttl_seconds,
        },
        "fallback": {
            "max_attempts": settings.fallback_max_attempts,
            "max_time_ms": settings.fallback_max_time_ms,
            "min_confidence": settings.fallback_min_confidence,
            "primary_acceptance_floor": settings.primary_acceptance_floor,
            "preprocessing_acceptance_floor": settings.preprocessing_acceptance_floor,
            "enable_preprocessing_retry": settings.enable_preprocessing_retry,
            "enable_manual_fallback": settings.enable_manual_fallback,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
