"""RecurringExpense ORM model: schedule for drafting copies of an expense."""

from datetime import datetime
from enum import Enum

from dateutil.relativedelta import relativedelta
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class RecurringExpenseInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def delta(self) -> relativedelta:
        """Length of one interval."""
        return {
            RecurringExpenseInterval.DAY: relativedelta(days=1),
            RecurringExpenseInterval.WEEK: relativedelta(weeks=1),
            RecurringExpenseInterval.MONTH: relativedelta(months=1),
            RecurringExpenseInterval.QUARTER: relativedelta(months=3),
            RecurringExpenseInterval.YEAR: relativedelta(years=1),
        }[self]


class RecurringExpense(Base, BaseModel, ParanoidMixin):
    """A new draft expense is generated once per interval until end_at."""

    __tablename__ = "recurring_expenses"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    interval: Mapped[RecurringExpenseInterval] = mapped_column(nullable=False)
    last_drafted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    end_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @validates("interval")
    def _validate_interval(self, key, value):
        return to_enum(RecurringExpenseInterval, value, key)

    def is_due(self, now: datetime) -> bool:
        """Whether a new draft should be generated at ``now``."""
        if self.last_drafted_at is None or self.deleted_at is not None:
            return False
        if self.end_at is not None and self.end_at <= now:
            return False
        return self.last_drafted_at <= now - self.interval.delta
