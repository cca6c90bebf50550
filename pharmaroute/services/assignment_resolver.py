"""Resolves a tier and task kind to a priority-ordered provider list.

Resolution path, in order:

    1. TTL cache keyed by ``"<tier>:<task>"``
    2. the assignment store (single refresh at a time under an asyncio lock)
    3. the static default table in :mod:`pharmaroute.config.tier_defaults`

Store rows carry no task kind of their own.  Every row is passed through
the tier reassignment rule and kept only when it serves the requested
kind; survivors are sorted by priority and get their credential injected.
A provider whose credential cannot be found is dropped on its own, the
rest of the list survives.

The resolver never raises for a known tier and never returns an empty
list: if the store is down, or every row was filtered away, the defaults
are used.  Defaults produced because the store *failed* are not cached so
that the next call retries the store.
"""

from __future__ import annotations

import asyncio

from pharmaroute.config.tier_defaults import (
    DEFAULT_PROVIDER_CONFIGS,
    KNOWN_TIERS,
    default_assignments,
    is_local_provider,
    normalize_tier,
    reassign_task_kind,
)
from pharmaroute.interfaces.assignment_store import IAssignmentStore
from pharmaroute.interfaces.cache_provider import ICacheProvider
from pharmaroute.interfaces.credential_provider import ICredentialProvider
from pharmaroute.models.assignment import ProviderAssignment, ProviderConfig, StoredAssignment
from pharmaroute.models.extraction import TaskKind
from pharmaroute.utils.errors import CredentialError
from pharmaroute.utils.logging import get_logger


class AssignmentResolver:
    """Tier-aware provider list lookup with caching and static fallback.

    Parameters
    ----------
    store:
        Assignment configuration store.  ``None`` means "defaults only".
    cache:
        Cache for resolved lists.  Entries expire after the cache's TTL.
    credentials:
        Credential lookup for remote vendors.
    """

    def __init__(
        self,
        store: IAssignmentStore | None,
        cache: ICacheProvider,
        credentials: ICredentialProvider,
    ) -> None:
        self._store = store
        self._cache = cache
        self._credentials = credentials
        self._refresh_lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(self, tier_id: str, task_kind: TaskKind) -> list[ProviderAssignment]:
        """Return the ordered provider list for *tier_id* and *task_kind*."""
        tier = normalize_tier(tier_id)
        if tier != tier_id:
            self._logger.warning("unknown_tier", tier_id=tier_id, fallback_tier=tier)

        key = _cache_key(tier, task_kind)
        cached = await self._cache.get(key)
        if cached is not None:
            return list(cached)

        async with self._refresh_lock:
            # Another coroutine may have refreshed while we waited.
            cached = await self._cache.get(key)
            if cached is not None:
                return list(cached)

            if self._store is None:
                resolved = self._defaults(tier, task_kind)
                await self._cache.set(key, tuple(resolved))
                return resolved

            try:
                rows = await self._store.fetch_active_assignments(tier)
            except Exception as exc:
                self._logger.warning(
                    "assignment_store_unavailable",
                    tier_id=tier,
                    task_kind=task_kind.value,
                    error=str(exc),
                )
                return self._defaults(tier, task_kind)

            resolved = self._from_rows(tier, task_kind, rows)
            if not resolved:
                self._logger.info(
                    "assignment_store_empty",
                    tier_id=tier,
                    task_kind=task_kind.value,
                    rows=len(rows),
                )
                resolved = self._defaults(tier, task_kind)

            await self._cache.set(key, tuple(resolved))
            self._logger.debug(
                "assignments_resolved",
                tier_id=tier,
                task_kind=task_kind.value,
                providers=[a.provider_id for a in resolved],
            )
            return resolved

    async def invalidate(self, tier_id: str | None = None) -> None:
        """Drop cached lists for *tier_id*, or for every tier when ``None``."""
        await self._cache.clear(f"{tier_id}:" if tier_id else "")
        self._logger.info("assignment_cache_invalidated", tier_id=tier_id or "all")

    @staticmethod
    def known_tiers() -> tuple[str, ...]:
        return KNOWN_TIERS

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _from_rows(
        self,
        tier: str,
        task_kind: TaskKind,
        rows: list[StoredAssignment],
    ) -> list[ProviderAssignment]:
        matching = [
            row
            for row in rows
            if row.is_active and reassign_task_kind(tier, row.provider_id, task_kind) is task_kind
        ]
        # sorted() is stable, so equal priorities keep store order.
        matching = sorted(matching, key=lambda row: row.priority)

        resolved: list[ProviderAssignment] = []
        for row in matching:
            config = self._inject_credential(row.provider_id, _row_config(row))
            if config is None:
                continue
            resolved.append(
                ProviderAssignment(
                    tier_id=tier,
                    task_kind=task_kind,
                    provider_id=row.provider_id,
                    priority=row.priority,
                    config=config,
                )
            )
        return resolved

    def _defaults(self, tier: str, task_kind: TaskKind) -> list[ProviderAssignment]:
        defaults = default_assignments(tier, task_kind)
        resolved: list[ProviderAssignment] = []
        for assignment in defaults:
            config = self._inject_credential(assignment.provider_id, assignment.config)
            if config is not None:
                resolved.append(assignment.model_copy(update={"config": config}))
        if resolved:
            return resolved
        # Never strip a default list down to nothing: the local engines stay.
        return [a for a in defaults if is_local_provider(a.provider_id)] or defaults

    def _inject_credential(self, provider_id: str, config: ProviderConfig) -> ProviderConfig | None:
        """Return *config* with its API key set, or ``None`` to drop the provider."""
        if is_local_provider(provider_id):
            return config
        try:
            api_key = self._credentials.get_credential(provider_id)
        except CredentialError as exc:
            self._logger.warning("provider_credential_missing", provider=provider_id, error=exc.message)
            return None
        except Exception as exc:
            self._logger.warning("provider_credential_lookup_failed", provider=provider_id, error=str(exc))
            return None
        if not api_key:
            self._logger.warning("provider_credential_missing", provider=provider_id)
            return None
        return config.model_copy(update={"api_key": api_key})


def _cache_key(tier: str, task_kind: TaskKind) -> str:
    return f"{tier}:{task_kind.value}"


def _row_config(row: StoredAssignment) -> ProviderConfig:
    default = DEFAULT_PROVIDER_CONFIGS.get(row.provider_id, ProviderConfig())
    return ProviderConfig(
        model_name=row.model_name or default.model_name,
        temperature=row.temperature,
        max_tokens=row.max_tokens,
        cost_per_input_token=row.cost_per_input_token or default.cost_per_input_token,
        cost_per_output_token=row.cost_per_output_token or default.cost_per_output_token,
    )
