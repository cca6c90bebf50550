"""Tier routing policy: default provider tables, reassignment and redirects.

# ─── PRODUCT POLICY ────────────────────────────────────────────────────
#
# Everything in this module is product policy rather than engine logic:
#
#   1. DEFAULT_TIER_TABLE -- the hard-coded per-tier provider lists used
#      whenever the assignment store is unreachable or yields nothing.
#      Every tier ends in the local ``tesseract`` engine, so a tier can
#      never run out of providers entirely.
#   2. reassign_task_kind() -- on the ``standard`` tier only ``google``
#      performs OCR; every other remote vendor is reserved for
#      verification.  Other tiers keep the requested task kind.
#   3. DAILY_USAGE_LIMITS -- successful provider calls a user may make per
#      rolling 24 hours on each tier.  Once reached, remaining providers
#      are skipped with a failed attempt instead of being called.
#   4. VISION_REDIRECTS -- the single documented redirect: on ``business``
#      the ``openai`` assignment is a text model, so vision OCR calls are
#      sent to the ``google`` adapter's vision path instead.
#
# Tiers are ordered free < basic < standard < business.  Unknown tiers
# resolve as ``free``.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import timedelta
from typing import NamedTuple

from pharmaroute.models.assignment import ProviderAssignment, ProviderConfig
from pharmaroute.models.extraction import TaskKind

KNOWN_TIERS: tuple[str, ...] = ("free", "basic", "standard", "business")
LOWEST_TIER = KNOWN_TIERS[0]

# Providers that run in-process and need no credential.
LOCAL_PROVIDERS: frozenset[str] = frozenset({"tesseract"})

_ALL_TASKS: frozenset[TaskKind] = frozenset(TaskKind)

# tier -> {assigned provider -> provider whose vision path is used instead}
VISION_REDIRECTS: dict[str, dict[str, str]] = {
    "business": {"openai": "google"},
}

# Static per-call cost estimates (USD) used when neither the provider nor
# the model config supplies pricing.
STATIC_COST_ESTIMATES: dict[str, float] = {
    "anthropic": 0.015,
    "google": 0.0025,
    "openai": 0.01,
    "tesseract": 0.001,
}
DEFAULT_COST_ESTIMATE = 0.005

# Successful provider calls per user per rolling window.
DAILY_USAGE_LIMITS: dict[str, int] = {
    "free": 50,
    "basic": 200,
    "standard": 1000,
    "business": 100000,
}
USAGE_LIMIT_WINDOW = timedelta(hours=24)


class DefaultEntry(NamedTuple):
    """One row of the static tier table."""

    provider_id: str
    priority: int
    task_kinds: frozenset[TaskKind]
    config: ProviderConfig


# Per-provider default model configuration.  Credentials are injected by
# the resolver at resolution time.
DEFAULT_PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "google": ProviderConfig(
        model_name="gemini-2.0-flash",
        temperature=0.1,
        max_tokens=2048,
        cost_per_input_token=0.00000025,
        cost_per_output_token=0.000001,
    ),
    "openai": ProviderConfig(
        model_name="gpt-4o-mini",
        temperature=0.1,
        max_tokens=2048,
        cost_per_input_token=0.00000015,
        cost_per_output_token=0.0000006,
    ),
    "anthropic": ProviderConfig(
        model_name="claude-3-haiku-20240307",
        temperature=0.1,
        max_tokens=2048,
        cost_per_input_token=0.00000025,
        cost_per_output_token=0.00000125,
    ),
    "tesseract": ProviderConfig(
        model_name="tesseract-ocr",
        temperature=0.0,
        max_tokens=1024,
    ),
}


def _entry(provider_id: str, priority: int, task_kinds: frozenset[TaskKind] = _ALL_TASKS) -> DefaultEntry:
    return DefaultEntry(provider_id, priority, task_kinds, DEFAULT_PROVIDER_CONFIGS[provider_id])


DEFAULT_TIER_TABLE: dict[str, tuple[DefaultEntry, ...]] = {
    "free": (
        _entry("google", 1),
        _entry("tesseract", 2),
    ),
    "basic": (
        _entry("google", 1),
        _entry("tesseract", 2),
    ),
    "standard": (
        _entry("google", 1, frozenset({TaskKind.OCR})),
        _entry("anthropic", 1, frozenset({TaskKind.VERIFY, TaskKind.EXTRACT})),
        _entry("anthropic", 2, frozenset({TaskKind.OCR})),
        _entry("tesseract", 3),
    ),
    "business": (
        _entry("openai", 1),
        _entry("google", 2),
        _entry("tesseract", 3),
    ),
}


def normalize_tier(tier_id: str) -> str:
    """Return *tier_id* if it is a known tier, otherwise the lowest tier."""
    return tier_id if tier_id in KNOWN_TIERS else LOWEST_TIER


def is_local_provider(provider_id: str) -> bool:
    return provider_id in LOCAL_PROVIDERS


def reassign_task_kind(tier_id: str, provider_id: str, requested: TaskKind) -> TaskKind:
    """Return the task kind a stored assignment effectively serves.

    Store rows do not pin a task kind that survives tier policy: on the
    ``standard`` tier an OCR request keeps ``ocr`` only for ``google`` (and
    local engines); every other remote vendor is reassigned to ``verify``.
    Every other tier serves the requested kind unchanged.
    """
    if tier_id == "standard" and requested is TaskKind.OCR:
        if provider_id == "google" or is_local_provider(provider_id):
            return TaskKind.OCR
        return TaskKind.VERIFY
    return requested


def vision_redirect_target(tier_id: str, provider_id: str) -> str | None:
    """Return the provider whose vision path replaces *provider_id*, if any."""
    return VISION_REDIRECTS.get(tier_id, {}).get(provider_id)


def default_assignments(tier_id: str, task_kind: TaskKind) -> list[ProviderAssignment]:
    """Return the static default list for *tier_id* and *task_kind*.

    Unknown tiers get the lowest tier's list.  The result is ordered by
    priority with table order breaking ties, and carries no credentials.
    """
    tier = normalize_tier(tier_id)
    rows = [row for row in DEFAULT_TIER_TABLE[tier] if task_kind in row.task_kinds]
    rows.sort(key=lambda row: row.priority)
    return [
        ProviderAssignment(
            tier_id=tier,
            task_kind=task_kind,
            provider_id=row.provider_id,
            priority=row.priority,
            config=row.config,
        )
        for row in rows
    ]


def daily_usage_limit(tier_id: str) -> int:
    """Return the per-user daily call cap for *tier_id* (unknown tiers get the lowest)."""
    return DAILY_USAGE_LIMITS[normalize_tier(tier_id)]
