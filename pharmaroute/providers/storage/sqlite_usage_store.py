"""SQLite-backed usage, escalation and run-metrics store.

Persists one row per provider call (``usage_records``), one row per
quota/billing escalation (``escalations``) and one row per fallback run
(``run_metrics``) in ``data/usage.db``.  Uses ``aiosqlite`` for async I/O.
All writes are made from the usage recorder's background tasks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from pharmaroute.interfaces.usage_store import IUsageStore
from pharmaroute.models.usage import EscalationRecord, RunMetrics, UsageRecord, UsageStats
from pharmaroute.utils.errors import RecordingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/usage.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS usage_records (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id           TEXT    NOT NULL,
    attempt_id           TEXT    NOT NULL UNIQUE,
    tier_id              TEXT    NOT NULL,
    user_id              TEXT,
    provider_id          TEXT    NOT NULL,
    assigned_provider_id TEXT    NOT NULL,
    model_name           TEXT    NOT NULL DEFAULT '',
    task_kind            TEXT    NOT NULL,
    strategy             TEXT    NOT NULL,
    input_tokens         INTEGER NOT NULL DEFAULT 0,
    output_tokens        INTEGER NOT NULL DEFAULT 0,
    cost                 REAL    NOT NULL DEFAULT 0,
    response_time_ms     REAL    NOT NULL DEFAULT 0,
    success              INTEGER NOT NULL,
    error_kind           TEXT,
    error_message        TEXT,
    created_at           TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS escalations (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id    TEXT    NOT NULL,
    attempt_id    TEXT    NOT NULL,
    provider_id   TEXT    NOT NULL,
    tier_id       TEXT    NOT NULL,
    user_id       TEXT,
    alert_type    TEXT    NOT NULL,
    severity      TEXT    NOT NULL,
    title         TEXT    NOT NULL,
    error_message TEXT    NOT NULL,
    created_at    TEXT    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS run_metrics (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id            TEXT    NOT NULL UNIQUE,
    tier_id               TEXT    NOT NULL,
    user_id               TEXT,
    strategy              TEXT,
    degradation_level     TEXT    NOT NULL,
    image_count           INTEGER NOT NULL,
    processing_time_ms    REAL    NOT NULL,
    total_attempts        INTEGER NOT NULL,
    confidence            REAL    NOT NULL,
    composite_confidence  REAL    NOT NULL,
    success               INTEGER NOT NULL,
    preprocessing_used    INTEGER NOT NULL,
    pharmaceutical_form   TEXT    NOT NULL,
    batch_detected        INTEGER NOT NULL,
    expiry_detected       INTEGER NOT NULL,
    manufacturer_detected INTEGER NOT NULL,
    cost                  REAL    NOT NULL,
    error_type            TEXT,
    error_message         TEXT,
    raw_text              TEXT    NOT NULL DEFAULT '',
    created_at            TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_usage_tier ON usage_records(tier_id);",
    "CREATE INDEX IF NOT EXISTS idx_usage_user ON usage_records(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_usage_user_time ON usage_records(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_usage_provider ON usage_records(provider_id);",
    "CREATE INDEX IF NOT EXISTS idx_escalations_provider ON escalations(provider_id);",
]

_INSERT_USAGE_SQL = """\
INSERT INTO usage_records (
    request_id, attempt_id, tier_id, user_id, provider_id, assigned_provider_id,
    model_name, task_kind, strategy, input_tokens, output_tokens, cost,
    response_time_ms, success, error_kind, error_message, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_ESCALATION_SQL = """\
INSERT INTO escalations (
    request_id, attempt_id, provider_id, tier_id, user_id,
    alert_type, severity, title, error_message, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_RUN_SQL = """\
INSERT OR REPLACE INTO run_metrics (
    request_id, tier_id, user_id, strategy, degradation_level, image_count,
    processing_time_ms, total_attempts, confidence, composite_confidence,
    success, preprocessing_used, pharmaceutical_form, batch_detected,
    expiry_detected, manufacturer_detected, cost, error_type, error_message,
    raw_text, created_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


class SQLiteUsageStore(IUsageStore):
    """SQLite-backed usage persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the usage tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("usage_db_initialized", path=str(self._db_path))

    async def record_attempt(self, record: UsageRecord) -> None:
        await self._execute(
            _INSERT_USAGE_SQL,
            (
                record.request_id,
                record.attempt_id,
                record.tier_id,
                record.user_id,
                record.provider_id,
                record.assigned_provider_id,
                record.model_name,
                record.task_kind.value,
                record.strategy,
                record.input_tokens,
                record.output_tokens,
                record.cost,
                record.response_time_ms,
                1 if record.success else 0,
                record.error_kind,
                record.error_message,
                record.timestamp.isoformat(),
            ),
        )

    async def record_escalation(self, record: EscalationRecord) -> None:
        await self._execute(
            _INSERT_ESCALATION_SQL,
            (
                record.request_id,
                record.attempt_id,
                record.provider_id,
                record.tier_id,
                record.user_id,
                record.alert_type,
                record.severity,
                record.title,
                record.error_message,
                record.timestamp.isoformat(),
            ),
        )

    async def record_run(self, metrics: RunMetrics) -> None:
        await self._execute(
            _INSERT_RUN_SQL,
            (
                metrics.request_id,
                metrics.tier_id,
                metrics.user_id,
                metrics.strategy,
                metrics.degradation_level,
                metrics.image_count,
                metrics.processing_time_ms,
                metrics.total_attempts,
                metrics.confidence,
                metrics.composite_confidence,
                1 if metrics.success else 0,
                1 if metrics.preprocessing_used else 0,
                metrics.pharmaceutical_form,
                1 if metrics.batch_detected else 0,
                1 if metrics.expiry_detected else 0,
                1 if metrics.manufacturer_detected else 0,
                metrics.cost,
                metrics.error_type,
                metrics.error_message,
                metrics.raw_text,
                metrics.timestamp.isoformat(),
            ),
        )

    async def get_usage_stats(
        self,
        tier_id: str | None = None,
        user_id: str | None = None,
    ) -> UsageStats:
        """Return totals over ``usage_records``, optionally filtered."""
        clauses: list[str] = []
        params: list[str] = []
        if tier_id:
            clauses.append("tier_id = ?")
            params.append(tier_id)
        if user_id:
            clauses.append("user_id = ?")
            params.append(user_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT COUNT(*) AS total_requests, "
                "COALESCE(SUM(cost), 0) AS total_cost, "
                "COALESCE(SUM(input_tokens + output_tokens), 0) AS total_tokens, "
                "COALESCE(AVG(response_time_ms), 0) AS avg_response_time_ms "
                f"FROM usage_records{where}",
                tuple(params),
            )
            row = await cursor.fetchone()

        return UsageStats(
            total_requests=row["total_requests"],
            total_cost=float(row["total_cost"]),
            total_tokens=int(row["total_tokens"]),
            avg_response_time_ms=float(row["avg_response_time_ms"]),
        )

    async def count_recent_attempts(self, user_id: str, since: datetime) -> int:
        """Count successful ``usage_records`` rows for *user_id* since *since*.

        Timestamps are stored as UTC ISO-8601 strings, so *since* is
        normalized to UTC before the string comparison.
        """
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "SELECT COUNT(*) FROM usage_records "
                    "WHERE user_id = ? AND success = 1 AND created_at >= ?",
                    (user_id, since.astimezone(timezone.utc).isoformat()),
                )
                row = await cursor.fetchone()
        except (aiosqlite.Error, OSError) as exc:
            raise RecordingError(f"Usage store read failed: {exc}") from exc
        return int(row[0]) if row else 0

    async def _execute(self, sql: str, params: tuple) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(sql, params)
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise RecordingError(f"Usage store write failed: {exc}") from exc
