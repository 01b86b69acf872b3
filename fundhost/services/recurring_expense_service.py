"""Recurring expense service: schedules and drafting of the next expense."""

import logging
import uuid
from datetime import datetime

from dateutil.parser import isoparse
from sqlalchemy import or_
from sqlalchemy.orm import Session

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.expenses import ExpenseStatus
from fundhost.errors import NotFoundError
from fundhost.models.expense import Expense
from fundhost.models.recurring_expense import RecurringExpense, RecurringExpenseInterval
from fundhost.models.types import utcnow
from fundhost.services.events import Persisted
from fundhost.services.expense_service import ExpenseService

logger = logging.getLogger(__name__)

# Fields copied from the previous expense to the new draft
COPIED_EXPENSE_FIELDS = (
    "description",
    "long_description",
    "tags",
    "type",
    "private_message",
    "invoice_info",
    "payout_method_id",
    "recurring_expense_id",
    "user_id",
    "currency",
)

E2E_DRAFT_KEY = "draft-key"


class RecurringExpenseService:
    """Service for RecurringExpense operations."""

    def __init__(self, db_session: Session, expenses: ExpenseService):
        """Initialize with database session and expense service."""
        self.db = db_session
        self.expenses = expenses

    def get_by_id(self, recurring_expense_id: int) -> RecurringExpense | None:
        return (
            self.db.query(RecurringExpense)
            .filter(RecurringExpense.id == recurring_expense_id, RecurringExpense.not_deleted())
            .first()
        )

    def create_from_expense(
        self,
        expense: Expense,
        interval: RecurringExpenseInterval | str,
        end_at: datetime | str | None = None,
    ) -> RecurringExpense:
        """Make ``expense`` the first occurrence of a new schedule.

        ``end_at`` accepts a datetime or an ISO 8601 string.
        """
        if isinstance(end_at, str):
            end_at = isoparse(end_at)
        recurring = RecurringExpense(
            collective_id=expense.collective_id,
            from_collective_id=expense.from_collective_id,
            last_drafted_at=utcnow(),
            interval=interval,
            end_at=end_at,
        )
        self.db.add(recurring)
        self.db.flush()
        expense.recurring_expense_id = recurring.id
        self.db.commit()
        logger.info(
            "Expense %s now recurs every %s (schedule %s)",
            expense.id,
            recurring.interval.value,
            recurring.id,
        )
        return recurring

    def get_last_expense(self, recurring: RecurringExpense) -> Expense | None:
        return (
            self.db.query(Expense)
            .filter(Expense.recurring_expense_id == recurring.id, Expense.not_deleted())
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .first()
        )

    def _new_draft_key(self) -> str:
        if get_settings().deterministic_draft_keys:
            return E2E_DRAFT_KEY
        return str(uuid.uuid4())

    def create_next_expense(self, recurring: RecurringExpense) -> Persisted[Expense]:
        """Draft the next expense of the schedule from the last one.

        The draft is invited: the payee completes it through the invite URL
        carried by the COLLECTIVE_EXPENSE_RECURRING_DRAFTED event.

        Raises:
            NotFoundError: if the schedule has no previous expense
        """
        previous = self.get_last_expense(recurring)
        if previous is None:
            raise NotFoundError(
                f"Could not find previous expense for RecurringExpense #{recurring.id}"
            )

        incurred_at = utcnow()
        draft_key = self._new_draft_key()
        items = previous.active_items
        amount = sum(item.amount for item in items) or previous.amount or 1

        draft = Expense(
            **{field: getattr(previous, field) for field in COPIED_EXPENSE_FIELDS},
            from_collective_id=recurring.from_collective_id,
            collective_id=recurring.collective_id,
            last_edited_by_id=previous.user_id,
            incurred_at=incurred_at,
            amount=amount,
            status=ExpenseStatus.DRAFT,
            data={
                "items": [
                    {
                        "amount": item.amount,
                        "description": item.description,
                        "url": item.url,
                        "incurred_at": incurred_at.isoformat(),
                    }
                    for item in items
                ],
                "attached_files": [{"url": file.url} for file in previous.attached_files],
                "payee": {"id": previous.from_collective_id},
                "invited_by_collective_id": recurring.from_collective_id,
                "draft_key": draft_key,
                "payee_location": previous.payee_location,
            },
        )
        self.db.add(draft)
        recurring.last_drafted_at = incurred_at
        self.db.commit()
        logger.info("Drafted expense %s from schedule %s", draft.id, recurring.id)

        website_url = get_settings().website_url.rstrip("/")
        invite_url = f"{website_url}/{previous.collective.slug}/expenses/{draft.id}?key={draft_key}"
        event = self.expenses.build_activity(
            draft,
            ActivityType.COLLECTIVE_EXPENSE_RECURRING_DRAFTED,
            previous.user_id,
            {**draft.data, "invite_url": invite_url},
        )
        event.data["description"] = draft.description
        return Persisted(draft, [event])

    def get_recurring_expenses_due(self, now: datetime | None = None) -> list[RecurringExpense]:
        """Schedules whose last draft is at least one interval old and not ended."""
        now = now or utcnow()
        candidates = (
            self.db.query(RecurringExpense)
            .filter(
                RecurringExpense.last_drafted_at.isnot(None),
                or_(RecurringExpense.end_at.is_(None), RecurringExpense.end_at > now),
                RecurringExpense.not_deleted(),
            )
            .order_by(RecurringExpense.id)
            .all()
        )
        return [recurring for recurring in candidates if recurring.is_due(now)]


__all__ = ["RecurringExpenseService", "E2E_DRAFT_KEY"]
