"""TransactionSettlement ORM model: status of a host's debt to the platform."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.constants.transactions import SettlementStatus, TransactionKind
from fundhost.lib.validators import to_enum
from fundhost.models import Base, ParanoidMixin, TimestampMixin


class TransactionSettlement(Base, TimestampMixin, ParanoidMixin):
    """
    Keyed by (transaction_group, kind): there is no surrogate id.

    OWED -> INVOICED (attached to a settlement expense) -> SETTLED (expense paid).
    """

    __tablename__ = "transaction_settlements"

    transaction_group: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[TransactionKind] = mapped_column(primary_key=True)
    status: Mapped[SettlementStatus] = mapped_column(
        default=SettlementStatus.OWED, nullable=False, index=True
    )
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )

    @validates("status")
    def _validate_status(self, key, value):
        return to_enum(SettlementStatus, value, key)

    @property
    def key(self) -> tuple[str, TransactionKind]:
        return (self.transaction_group, self.kind)
