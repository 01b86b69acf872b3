"""Transaction service: double-entry ledger writes and lookups."""

import logging
import uuid

from sqlalchemy.orm import Session

from fundhost.constants.transactions import TransactionKind, TransactionType
from fundhost.models.transaction import Transaction

logger = logging.getLogger(__name__)

# Columns copied unchanged to the opposite leg
SHARED_FIELDS = (
    "transaction_group",
    "kind",
    "currency",
    "host_currency",
    "created_by_user_id",
    "expense_id",
    "order_id",
    "is_debt",
    "is_refund",
    "description",
    "cleared_at",
    "data",
)


class TransactionService:
    """Service for Transaction operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create(self, commit: bool = True, **fields) -> Transaction:
        """Insert a single ledger row. ``type`` is applied before ``amount``."""
        fields.setdefault("transaction_group", str(uuid.uuid4()))
        transaction = Transaction(type=fields.pop("type"), **fields)
        self.db.add(transaction)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return transaction

    def create_double_entry(
        self,
        type: TransactionType | str,
        amount: int,
        collective_id: int,
        from_collective_id: int,
        commit: bool = True,
        **fields,
    ) -> tuple[Transaction, Transaction]:
        """Create both legs of a movement in the same transaction group.

        The opposite leg swaps collective/from-collective, negates the amounts
        and flips the type.

        Returns:
            (leg as described by the arguments, opposite leg)
        """
        type = TransactionType(type)
        fields.setdefault("transaction_group", str(uuid.uuid4()))
        fields.setdefault("amount_in_host_currency", amount)
        fields.setdefault("net_amount_in_collective_currency", amount)

        leg = Transaction(
            type=type,
            amount=amount,
            collective_id=collective_id,
            from_collective_id=from_collective_id,
            **fields,
        )
        opposite_type = (
            TransactionType.DEBIT if type == TransactionType.CREDIT else TransactionType.CREDIT
        )
        opposite = Transaction(
            type=opposite_type,
            amount=-amount,
            collective_id=from_collective_id,
            from_collective_id=collective_id,
            amount_in_host_currency=(
                -leg.amount_in_host_currency if leg.amount_in_host_currency is not None else None
            ),
            net_amount_in_collective_currency=(
                -leg.net_amount_in_collective_currency
                if leg.net_amount_in_collective_currency is not None
                else None
            ),
            host_collective_id=fields.get("host_collective_id"),
            **{key: fields[key] for key in SHARED_FIELDS if key in fields},
        )
        self.db.add_all([leg, opposite])
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info(
            "Created %s transactions %s (%s %s)",
            leg.kind.value,
            leg.transaction_group,
            amount,
            leg.currency,
        )
        return leg, opposite

    def get_by_id(self, transaction_id: int) -> Transaction | None:
        return (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.not_deleted())
            .first()
        )

    def get_related_transaction(
        self,
        transaction: Transaction,
        kind: TransactionKind | str | None = None,
        type: TransactionType | str | None = None,
    ) -> Transaction | None:
        """Another row of the same group, by kind and/or type."""
        query = self.db.query(Transaction).filter(
            Transaction.transaction_group == transaction.transaction_group,
            Transaction.id != transaction.id,
            Transaction.not_deleted(),
        )
        if kind is not None:
            query = query.filter(Transaction.kind == TransactionKind(kind))
        if type is not None:
            query = query.filter(Transaction.type == TransactionType(type))
        return query.order_by(Transaction.id).first()

    def get_platform_tip_debt_transaction(self, transaction: Transaction) -> Transaction | None:
        """The debt leg matching the platform tip of ``transaction``'s group."""
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.transaction_group == transaction.transaction_group,
                Transaction.kind == TransactionKind.PLATFORM_TIP_DEBT,
                Transaction.is_debt.is_(True),
                Transaction.type == transaction.type,
                Transaction.not_deleted(),
            )
            .first()
        )


__all__ = ["TransactionService"]
