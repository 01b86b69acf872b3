"""Activity service: persists domain events as the audit trail."""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from fundhost.models.activity import Activity
from fundhost.services.events import DomainEvent

logger = logging.getLogger(__name__)


class ActivityService:
    """Stores DomainEvents returned by other services."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def record(self, events: Iterable[DomainEvent], commit: bool = True) -> list[Activity]:
        """Create one Activity row per event.

        Args:
            events: Events returned in a Persisted result
            commit: Commit the session after adding the rows

        Returns:
            Created Activity objects
        """
        activities = [
            Activity(
                type=event.type.value,
                user_id=event.user_id,
                collective_id=event.collective_id,
                from_collective_id=event.from_collective_id,
                host_collective_id=event.host_collective_id,
                expense_id=event.expense_id,
                transaction_id=event.transaction_id,
                data=event.data,
            )
            for event in events
        ]
        self.db.add_all(activities)
        if commit:
            self.db.commit()
        logger.debug("Recorded %d activities", len(activities))
        return activities

    def list_for_expense(self, expense_id: int) -> list[Activity]:
        return (
            self.db.query(Activity)
            .filter(Activity.expense_id == expense_id)
            .order_by(Activity.id)
            .all()
        )

    def list_for_collective(self, collective_id: int, activity_type: str | None = None) -> list[Activity]:
        query = self.db.query(Activity).filter(Activity.collective_id == collective_id)
        if activity_type:
            query = query.filter(Activity.type == activity_type)
        return query.order_by(Activity.id).all()


__all__ = ["ActivityService"]
