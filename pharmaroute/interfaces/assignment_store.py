"""Abstract base class for the provider-assignment configuration store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pharmaroute.models.assignment import StoredAssignment


class IAssignmentStore(ABC):
    """Contract for reading tier-to-provider assignments.

    Implementations may be backed by SQLite, a remote admin database, or a
    static file.  Any failure should surface as
    :class:`~pharmaroute.utils.errors.AssignmentStoreError`; the resolver
    also tolerates arbitrary exceptions and falls back to static defaults.
    """

    @abstractmethod
    async def fetch_active_assignments(self, tier_id: str) -> list[StoredAssignment]:
        """Return every active assignment row for *tier_id*, in any order."""
