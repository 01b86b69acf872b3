"""Transaction settlement service: bookkeeping of host debts to the platform.

Settlements are identified by (transaction_group, kind). Bulk status changes
run as single UPDATE statements inside one database transaction.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.orm import Session

from fundhost.constants.transactions import DEBT_KINDS, SettlementStatus, TransactionType
from fundhost.models.collective import Collective
from fundhost.models.expense import Expense
from fundhost.models.transaction import Transaction
from fundhost.models.transaction_settlement import TransactionSettlement
from fundhost.models.types import utcnow
from fundhost.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)


def _pair_criteria(transactions: Iterable[Transaction]):
    return [
        and_(
            TransactionSettlement.transaction_group == transaction.transaction_group,
            TransactionSettlement.kind == transaction.kind,
        )
        for transaction in transactions
    ]


class TransactionSettlementService:
    """Service for TransactionSettlement operations."""

    def __init__(self, db_session: Session, transactions: TransactionService):
        """Initialize with database session and transaction service."""
        self.db = db_session
        self.transactions = transactions

    def get(self, transaction_group: str, kind) -> TransactionSettlement | None:
        return (
            self.db.query(TransactionSettlement)
            .filter(
                TransactionSettlement.transaction_group == transaction_group,
                TransactionSettlement.kind == kind,
                TransactionSettlement.not_deleted(),
            )
            .first()
        )

    def create_for_transaction(
        self,
        transaction: Transaction,
        status: SettlementStatus = SettlementStatus.OWED,
        commit: bool = True,
    ) -> TransactionSettlement:
        """Insert the settlement row for a debt transaction.

        Uses a core INSERT; no-op when the (group, kind) key already exists.
        """
        existing = self.db.get(TransactionSettlement, (transaction.transaction_group, transaction.kind))
        if existing is None:
            now = utcnow()
            self.db.execute(
                insert(TransactionSettlement).values(
                    transaction_group=transaction.transaction_group,
                    kind=transaction.kind,
                    status=SettlementStatus(status),
                    created_at=now,
                    updated_at=now,
                )
            )
            if commit:
                self.db.commit()
            existing = self.db.get(
                TransactionSettlement, (transaction.transaction_group, transaction.kind)
            )
        return existing

    def update_transactions_settlement_status(
        self,
        transactions: list[Transaction],
        status: SettlementStatus,
        expense_id: int | None = None,
    ) -> int:
        """Set ``status`` on the settlements of ``transactions`` in one statement.

        Returns:
            Number of settlement rows updated
        """
        criteria = _pair_criteria(transactions)
        if not criteria:
            return 0
        values = {"status": SettlementStatus(status), "updated_at": utcnow()}
        if expense_id is not None:
            values["expense_id"] = expense_id
        try:
            result = self.db.execute(
                update(TransactionSettlement)
                .where(or_(*criteria), TransactionSettlement.not_deleted())
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
        logger.info("Updated %d settlements to %s", result.rowcount, status)
        return result.rowcount

    def mark_transactions_as_invoiced(
        self, transactions: list[Transaction], expense_id: int
    ) -> int:
        return self.update_transactions_settlement_status(
            transactions, SettlementStatus.INVOICED, expense_id
        )

    def mark_expense_as_settled(self, expense: Expense, commit: bool = True) -> int:
        """Settle every OWED/INVOICED settlement attached to ``expense``. Idempotent.

        With ``commit=False`` the update joins the caller's transaction.
        """
        result = self.db.execute(
            update(TransactionSettlement)
            .where(
                TransactionSettlement.expense_id == expense.id,
                TransactionSettlement.status.in_(
                    [SettlementStatus.OWED, SettlementStatus.INVOICED]
                ),
                TransactionSettlement.not_deleted(),
            )
            .values(status=SettlementStatus.SETTLED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if commit:
            self.db.commit()
            self.db.expire_all()
        logger.info("Settled %d settlements for expense %s", result.rowcount, expense.id)
        return result.rowcount

    def get_host_debts(
        self, host_id: int, status: SettlementStatus | None = None
    ) -> list[Transaction]:
        """Debt transactions credited to the host, decorated with their status."""
        query = (
            self.db.query(Transaction, TransactionSettlement.status)
            .outerjoin(
                TransactionSettlement,
                and_(
                    TransactionSettlement.transaction_group == Transaction.transaction_group,
                    TransactionSettlement.kind == Transaction.kind,
                    TransactionSettlement.not_deleted(),
                ),
            )
            .filter(
                Transaction.collective_id == host_id,
                Transaction.type == TransactionType.CREDIT,
                Transaction.is_debt.is_(True),
                Transaction.kind.in_(DEBT_KINDS),
                Transaction.not_deleted(),
            )
        )
        if status is not None:
            query = query.filter(TransactionSettlement.status == SettlementStatus(status))
        debts = []
        for transaction, settlement_status in query.order_by(Transaction.id).all():
            transaction.settlement_status = settlement_status
            debts.append(transaction)
        return debts

    def get_accounts_with_owed_settlements(self) -> list[Collective]:
        """Hosts that still owe at least one settlement."""
        owing = (
            select(Transaction.collective_id)
            .join(
                TransactionSettlement,
                and_(
                    TransactionSettlement.transaction_group == Transaction.transaction_group,
                    TransactionSettlement.kind == Transaction.kind,
                ),
            )
            .where(
                TransactionSettlement.status == SettlementStatus.OWED,
                TransactionSettlement.not_deleted(),
                Transaction.type == TransactionType.CREDIT,
                Transaction.is_debt.is_(True),
                Transaction.not_deleted(),
            )
            .distinct()
        )
        return (
            self.db.query(Collective)
            .filter(Collective.id.in_(owing), Collective.not_deleted())
            .order_by(Collective.id)
            .all()
        )

    def get_statuses_index(self, transactions: list[Transaction]) -> dict:
        """Map of (transaction_group, kind) -> status for the given transactions."""
        criteria = _pair_criteria(transactions)
        if not criteria:
            return {}
        settlements = (
            self.db.query(TransactionSettlement)
            .filter(or_(*criteria), TransactionSettlement.not_deleted())
            .all()
        )
        return {settlement.key: settlement.status for settlement in settlements}

    def attach_statuses_to_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        """Set ``settlement_status`` on debt transactions; others get None."""
        debts = [transaction for transaction in transactions if transaction.is_debt]
        index = self.get_statuses_index(debts)
        for transaction in transactions:
            if transaction.is_debt:
                transaction.settlement_status = index.get(
                    (transaction.transaction_group, transaction.kind)
                )
            else:
                transaction.settlement_status = None
        return transactions


__all__ = ["TransactionSettlementService"]
