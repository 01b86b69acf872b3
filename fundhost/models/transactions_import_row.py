"""TransactionsImportRow ORM model: one staged bank line."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class TransactionsImportRowStatus(str, Enum):
    PENDING = "PENDING"
    LINKED = "LINKED"
    IGNORED = "IGNORED"
    ON_HOLD = "ON_HOLD"


class TransactionsImportRow(Base, BaseModel, ParanoidMixin):
    __tablename__ = "transactions_import_rows"

    transactions_import_id: Mapped[int] = mapped_column(
        ForeignKey("transactions_imports.id"), nullable=False, index=True
    )
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_value: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[TransactionsImportRowStatus] = mapped_column(
        default=TransactionsImportRowStatus.PENDING, nullable=False, index=True
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("transactions_import_id", "source_id", name="uq_import_row_source"),
    )

    transactions_import: Mapped["TransactionsImport"] = relationship(  # noqa: F821
        "TransactionsImport", back_populates="rows"
    )

    @validates("status")
    def _validate_status(self, key, value):
        return to_enum(TransactionsImportRowStatus, value, key)
