"""Transaction ORM model: double-entry ledger rows."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.constants.transactions import DEBT_KINDS, TransactionKind, TransactionType
from fundhost.errors import ValidationError
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class Transaction(Base, BaseModel, ParanoidMixin):
    """
    One leg of a double-entry movement.

    Both legs share transaction_group; the CREDIT leg has a positive amount on
    the receiving collective, the DEBIT leg the negated amount on the payer.
    """

    __tablename__ = "transactions"

    uuid: Mapped[str] = mapped_column(
        String(36), default=lambda: str(uuid.uuid4()), nullable=False, unique=True
    )
    transaction_group: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    type: Mapped[TransactionType] = mapped_column(nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(nullable=False, index=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_in_host_currency: Mapped[int | None] = mapped_column(Integer, nullable=True)
    host_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    net_amount_in_collective_currency: Mapped[int | None] = mapped_column(Integer, nullable=True)

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    host_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"), nullable=True, index=True)

    is_debt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_refund: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    refund_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cleared_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_transactions_group_kind", "transaction_group", "kind"),)

    # Set by TransactionSettlementService.attach_statuses_to_transactions, not persisted
    settlement_status = None

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(TransactionType, value, key)

    @validates("kind")
    def _validate_kind(self, key, value):
        return to_enum(TransactionKind, value, key)

    @validates("amount")
    def _validate_amount(self, key, value):
        if self.type == TransactionType.CREDIT and value < 0:
            raise ValidationError(key, "CREDIT amount cannot be negative")
        if self.type == TransactionType.DEBIT and value > 0:
            raise ValidationError(key, "DEBIT amount cannot be positive")
        return value

    @property
    def is_settlement_debt(self) -> bool:
        return self.is_debt and self.kind in DEBT_KINDS

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "uuid": self.uuid,
            "transaction_group": self.transaction_group,
            "type": self.type.value,
            "kind": self.kind.value,
            "amount": self.amount,
            "currency": self.currency,
            "amount_in_host_currency": self.amount_in_host_currency,
            "host_currency": self.host_currency,
            "net_amount_in_collective_currency": self.net_amount_in_collective_currency,
            "collective_id": self.collective_id,
            "from_collective_id": self.from_collective_id,
            "host_collective_id": self.host_collective_id,
            "expense_id": self.expense_id,
            "order_id": self.order_id,
            "is_debt": self.is_debt,
            "is_refund": self.is_refund,
            "description": self.description,
            "settlement_status": self.settlement_status,
            "created_at": self.created_at,
        }
