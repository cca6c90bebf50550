"""SQLite-backed provider-assignment store.

Persists tier-to-provider assignments in a local SQLite database at
``data/assignments.db``.  Uses ``aiosqlite`` for async I/O.  An admin tool
(or the CLI) edits rows; the resolver only ever reads active rows.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from pharmaroute.interfaces.assignment_store import IAssignmentStore
from pharmaroute.models.assignment import StoredAssignment
from pharmaroute.utils.errors import AssignmentStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/assignments.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS provider_assignments (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    tier_id                 TEXT    NOT NULL,
    provider_id             TEXT    NOT NULL,
    priority                INTEGER NOT NULL DEFAULT 1,
    model_name              TEXT    NOT NULL DEFAULT '',
    temperature             REAL    NOT NULL DEFAULT 0.1,
    max_tokens              INTEGER NOT NULL DEFAULT 1000,
    cost_per_input_token    REAL    NOT NULL DEFAULT 0,
    cost_per_output_token   REAL    NOT NULL DEFAULT 0,
    is_active               INTEGER NOT NULL DEFAULT 1,
    updated_at              TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(tier_id, provider_id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_assignments_tier ON provider_assignments(tier_id, is_active);",
]

_UPSERT_SQL = """\
INSERT INTO provider_assignments (
    tier_id, provider_id, priority, model_name, temperature, max_tokens,
    cost_per_input_token, cost_per_output_token, is_active
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(tier_id, provider_id)
DO UPDATE SET priority              = excluded.priority,
              model_name            = excluded.model_name,
              temperature           = excluded.temperature,
              max_tokens            = excluded.max_tokens,
              cost_per_input_token  = excluded.cost_per_input_token,
              cost_per_output_token = excluded.cost_per_output_token,
              is_active             = excluded.is_active,
              updated_at            = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_SELECT_ACTIVE_SQL = """\
SELECT tier_id, provider_id, priority, model_name, temperature, max_tokens,
       cost_per_input_token, cost_per_output_token, is_active
FROM provider_assignments
WHERE tier_id = ? AND is_active = 1
ORDER BY priority ASC, id ASC;
"""


class SQLiteAssignmentStore(IAssignmentStore):
    """SQLite-backed assignment persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the assignments table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("assignment_db_initialized", path=str(self._db_path))

    async def upsert_assignment(self, assignment: StoredAssignment) -> None:
        """Insert or replace the row for ``(tier_id, provider_id)``."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_SQL,
                (
                    assignment.tier_id,
                    assignment.provider_id,
                    assignment.priority,
                    assignment.model_name,
                    assignment.temperature,
                    assignment.max_tokens,
                    assignment.cost_per_input_token,
                    assignment.cost_per_output_token,
                    1 if assignment.is_active else 0,
                ),
            )
            await db.commit()
        logger.info(
            "assignment_upserted",
            tier_id=assignment.tier_id,
            provider=assignment.provider_id,
            priority=assignment.priority,
            active=assignment.is_active,
        )

    async def deactivate(self, tier_id: str, provider_id: str) -> bool:
        """Mark a row inactive.  Returns ``True`` if a row was changed."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "UPDATE provider_assignments SET is_active = 0, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') "
                "WHERE tier_id = ? AND provider_id = ? AND is_active = 1",
                (tier_id, provider_id),
            )
            await db.commit()
            changed = cursor.rowcount > 0
        logger.info("assignment_deactivated", tier_id=tier_id, provider=provider_id, changed=changed)
        return changed

    async def fetch_active_assignments(self, tier_id: str) -> list[StoredAssignment]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_ACTIVE_SQL, (tier_id,))
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as exc:
            raise AssignmentStoreError(f"Could not read assignments for tier '{tier_id}': {exc}") from exc

        return [
            StoredAssignment(
                tier_id=row["tier_id"],
                provider_id=row["provider_id"],
                priority=row["priority"],
                model_name=row["model_name"],
                temperature=row["temperature"],
                max_tokens=row["max_tokens"],
                cost_per_input_token=row["cost_per_input_token"],
                cost_per_output_token=row["cost_per_output_token"],
                is_active=bool(row["is_active"]),
            )
            for row in rows
        ]
