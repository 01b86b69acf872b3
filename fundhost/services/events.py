"""Domain events returned by mutating service operations.

Services never dispatch side effects themselves: they return the persisted
entity together with the events it produced. Callers decide what to do with
them (ActivityService.record stores them as the audit trail).
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from fundhost.constants.activities import ActivityType

T = TypeVar("T")


@dataclass
class DomainEvent:
    type: ActivityType
    collective_id: int | None = None
    from_collective_id: int | None = None
    host_collective_id: int | None = None
    user_id: int | None = None
    expense_id: int | None = None
    transaction_id: int | None = None
    data: dict = field(default_factory=dict)


@dataclass
class Persisted(Generic[T]):
    """Outcome of a create/update: the entity, its events, and whether a row was created."""

    entity: T
    events: list[DomainEvent] = field(default_factory=list)
    created: bool = True

    def event_types(self) -> list[ActivityType]:
        return [event.type for event in self.events]


__all__ = ["DomainEvent", "Persisted"]
