"""Provider assignment models.

A :class:`ProviderAssignment` binds a subscriber tier and task kind to one
provider at a given priority, together with the resolved
:class:`ProviderConfig` (model name, credential, sampling parameters and
per-token pricing).  :class:`StoredAssignment` is the raw row shape read
from the assignment store before task reassignment and credential injection.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pharmaroute.models.extraction import TaskKind


class ProviderConfig(BaseModel):
    """Per-provider call configuration resolved for one assignment."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_name: str = ""
    # Never rendered in repr -- assignments end up in debug logs.
    api_key: str = Field(default="", repr=False)
    temperature: float = 0.1
    max_tokens: int = 1000
    cost_per_input_token: float = 0.0
    cost_per_output_token: float = 0.0


class ProviderAssignment(BaseModel):
    """One entry of a tier's priority-ordered provider list.

    Lower ``priority`` runs first.  Priorities within a tier/task group need
    not be unique; ties keep resolution order.
    """

    model_config = ConfigDict(frozen=True)

    tier_id: str
    task_kind: TaskKind
    provider_id: str
    priority: int = Field(default=1, ge=1)
    config: ProviderConfig = Field(default_factory=ProviderConfig)


class StoredAssignment(BaseModel):
    """A raw assignment row as persisted in the assignment store.

    Rows carry no task kind: the resolver derives the kind each row serves
    from the tier reassignment rule at resolution time.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    tier_id: str
    provider_id: str
    priority: int = Field(default=1, ge=1)
    model_name: str = ""
    temperature: float = 0.1
    max_tokens: int = 1000
    cost_per_input_token: float = 0.0
    cost_per_output_token: float = 0.0
    is_active: bool = True
