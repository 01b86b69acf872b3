"""ExpenseItem ORM model: one line of an expense."""

from datetime import datetime

from sqlalchemy import Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_supported_currency, is_url
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime, utcnow


class ExpenseItem(Base, BaseModel, ParanoidMixin):
    __tablename__ = "expense_items"

    expense_id: Mapped[int] = mapped_column(ForeignKey("expenses.id"), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    expense_currency_fx_rate: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True, comment="Receipt URL")
    incurred_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    expense: Mapped["Expense"] = relationship("Expense", back_populates="items")  # noqa: F821

    @validates("amount")
    def _validate_amount(self, key, value):
        if value is None or int(value) < 0:
            raise ValidationError(key, "Item amount cannot be negative")
        return int(value)

    @validates("currency")
    def _validate_currency(self, key, value):
        if value is not None and not is_supported_currency(value):
            raise ValidationError(key, f"Unsupported currency: {value}")
        return value

    @validates("url")
    def _validate_url(self, key, value):
        if value and not is_url(value):
            raise ValidationError(key, f"Invalid URL: {value}")
        return value or None

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "expense_currency_fx_rate": self.expense_currency_fx_rate,
            "description": self.description,
            "url": self.url,
            "incurred_at": self.incurred_at,
        }
