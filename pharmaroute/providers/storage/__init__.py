"""SQLite persistence for assignments and usage."""

from pharmaroute.providers.storage.sqlite_assignment_store import SQLiteAssignmentStore
from pharmaroute.providers.storage.sqlite_usage_store import SQLiteUsageStore

__all__ = ["SQLiteAssignmentStore", "SQLiteUsageStore"]
