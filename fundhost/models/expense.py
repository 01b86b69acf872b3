"""Expense ORM model: a reimbursement claim against a collective's balance."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.expenses import (
    ExpenseFeesPayer,
    ExpenseStatus,
    ExpenseType,
    LegacyPayoutMethod,
)
from fundhost.errors import ValidationError
from fundhost.lib.sanitize_html import SIMPLIFIED, sanitize_html
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import has_only_keys, is_iso_country, is_supported_currency, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime, utcnow

PAYEE_LOCATION_KEYS = ("address", "country", "name", "lat", "long", "structured")


class Expense(Base, BaseModel, ParanoidMixin):
    """
    Claim submitted by a payee (from_collective) to be paid by a collective.

    Status lifecycle: DRAFT -> PENDING -> APPROVED/REJECTED -> PROCESSING -> PAID/ERROR.
    Transitions are performed by ExpenseService; a PAID expense can never be
    approved or rejected again.
    """

    __tablename__ = "expenses"

    # Actors
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    last_edited_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    # Accounts
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True, comment="Payee"
    )
    host_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, comment="Host at payment time"
    )

    # Payment channel
    payout_method_id: Mapped[int | None] = mapped_column(
        ForeignKey("payout_methods.id"), nullable=True
    )
    virtual_card_id: Mapped[str | None] = mapped_column(
        ForeignKey("virtual_cards.id"), nullable=True, index=True
    )
    recurring_expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("recurring_expenses.id"), nullable=True
    )

    # Content
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    long_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    private_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    invoice_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    legacy_payout_method: Mapped[LegacyPayoutMethod] = mapped_column(
        default=LegacyPayoutMethod.MANUAL, nullable=False
    )
    status: Mapped[ExpenseStatus] = mapped_column(
        default=ExpenseStatus.PENDING, nullable=False, index=True
    )
    type: Mapped[ExpenseType] = mapped_column(default=ExpenseType.UNCLASSIFIED, nullable=False)
    fees_payer: Mapped[ExpenseFeesPayer] = mapped_column(
        default=ExpenseFeesPayer.COLLECTIVE, nullable=False
    )
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    incurred_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    on_hold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payee_location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_expenses_collective_status", "collective_id", "status"),)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])  # noqa: F821
    collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[collective_id]
    )
    from_collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[from_collective_id]
    )
    payout_method: Mapped["PayoutMethod | None"] = relationship("PayoutMethod")  # noqa: F821
    items: Mapped[list["ExpenseItem"]] = relationship(  # noqa: F821
        "ExpenseItem", back_populates="expense", order_by="ExpenseItem.id"
    )
    attached_files: Mapped[list["ExpenseAttachedFile"]] = relationship(  # noqa: F821
        "ExpenseAttachedFile", back_populates="expense", order_by="ExpenseAttachedFile.id"
    )

    @validates("amount")
    def _validate_amount(self, key, value):
        if value is None or int(value) < 1:
            raise ValidationError(key, "Amount must be at least 1")
        return int(value)

    @validates("currency")
    def _validate_currency(self, key, value):
        if not is_supported_currency(value):
            raise ValidationError(key, f"Unsupported currency: {value}")
        return value

    @validates("description")
    def _validate_description(self, key, value):
        value = " ".join((value or "").split())
        if not value:
            raise ValidationError(key, "Description cannot be empty")
        if len(value) > 255:
            raise ValidationError(key, "Description must be 255 characters or less")
        return value

    @validates("long_description", "private_message")
    def _sanitize_content(self, key, value):
        return sanitize_html(value, SIMPLIFIED)

    @validates("status")
    def _validate_status(self, key, value):
        return to_enum(ExpenseStatus, value, key)

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(ExpenseType, value, key)

    @validates("legacy_payout_method")
    def _validate_legacy_payout_method(self, key, value):
        return to_enum(LegacyPayoutMethod, value, key)

    @validates("fees_payer")
    def _validate_fees_payer(self, key, value):
        return to_enum(ExpenseFeesPayer, value, key)

    @validates("tags")
    def _validate_tags(self, key, value):
        tags = sanitize_tags(value)
        validate_tags(tags, key)
        return tags

    @validates("reference")
    def _validate_reference(self, key, value):
        if value is None:
            return None
        value = value.strip()
        return value or None

    @validates("payee_location")
    def _validate_payee_location(self, key, value):
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValidationError(key, "Payee location must be an object")
        if not has_only_keys(value, PAYEE_LOCATION_KEYS):
            raise ValidationError(
                key, f"Payee location can only contain: {', '.join(PAYEE_LOCATION_KEYS)}"
            )
        country = value.get("country")
        if country is not None and not is_iso_country(country):
            raise ValidationError(key, f"Invalid country: {country}")
        return value

    @property
    def active_items(self) -> list:
        return [item for item in self.items if item.deleted_at is None]

    @property
    def taxes(self) -> list:
        return (self.data or {}).get("taxes") or []

    @property
    def gross_amount(self) -> int:
        """Sum of item amounts converted to the expense currency (before taxes)."""
        return round(
            sum(item.amount * (item.expense_currency_fx_rate or 1) for item in self.active_items)
        )

    @property
    def minimal(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "description": self.description,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status.value,
        }

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "status": self.status.value,
            "description": self.description,
            "long_description": self.long_description,
            "amount": self.amount,
            "gross_amount": self.gross_amount,
            "taxes": self.taxes,
            "currency": self.currency,
            "tags": self.tags,
            "legacy_payout_method": self.legacy_payout_method.value,
            "fees_payer": self.fees_payer.value,
            "reference": self.reference,
            "on_hold": self.on_hold,
            "user_id": self.user_id,
            "last_edited_by_id": self.last_edited_by_id,
            "collective_id": self.collective_id,
            "from_collective_id": self.from_collective_id,
            "host_collective_id": self.host_collective_id,
            "payout_method_id": self.payout_method_id,
            "virtual_card_id": self.virtual_card_id,
            "recurring_expense_id": self.recurring_expense_id,
            "incurred_at": self.incurred_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, status={self.status}, amount={self.amount} {self.currency})>"
