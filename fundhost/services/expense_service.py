"""Expense service: submission, status lifecycle and expense reporting queries."""

import logging
from collections import Counter
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.constants.expenses import (
    HIDDEN_EXPENSE_STATUSES,
    ExpenseStatus,
    ExpenseType,
    LegacyPayoutMethod,
)
from fundhost.constants.roles import MemberRole
from fundhost.constants.transactions import TransactionKind, TransactionType
from fundhost.errors import FundhostError, InvariantError
from fundhost.lib.error_reporting import report_error
from fundhost.models.collective import Collective
from fundhost.models.comment import Comment
from fundhost.models.expense import Expense
from fundhost.models.expense_attached_file import ExpenseAttachedFile
from fundhost.models.expense_item import ExpenseItem
from fundhost.models.legal_document import LegalDocument
from fundhost.models.payout_method import PayoutMethod, PayoutMethodType
from fundhost.models.recurring_expense import RecurringExpense
from fundhost.models.transaction import Transaction
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.services.collective_service import CollectiveService
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.legal_document_service import LegalDocumentService
from fundhost.services.member_service import MemberService
from fundhost.services.transaction_settlement_service import TransactionSettlementService
from fundhost.services.transactions_import_service import TransactionsImportService

logger = logging.getLogger(__name__)

NO_TAG = "no tag"

# Keys of the extra data copied into the activity snapshot
ACTIVITY_DATA_KEYS = (
    "is_manual_payout",
    "error",
    "payee",
    "draft_key",
    "invite_url",
    "message",
    "is_system",
    "notify",
    "reference",
)


def _item_value(item, key: str, default=None):
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


class ExpenseService:
    """Service for Expense operations."""

    def __init__(
        self,
        db_session: Session,
        collectives: CollectiveService,
        members: MemberService,
        settlements: TransactionSettlementService,
        legal_documents: LegalDocumentService,
        imports: TransactionsImportService,
    ):
        """Initialize with database session and the services expenses rely on."""
        self.db = db_session
        self.collectives = collectives
        self.members = members
        self.settlements = settlements
        self.legal_documents = legal_documents
        self.imports = imports

    # Static helpers

    @staticmethod
    def compute_total_amount(items: list, taxes: list[dict] | None = None) -> int:
        """Total of ``items`` in the expense currency, taxes included.

        Each item amount is converted with its fx rate and rounded before its
        taxes are added; the final sum is rounded again.
        """
        total = 0.0
        for item in items:
            fx_rate = _item_value(item, "expense_currency_fx_rate") or 1
            amount_in_cents = round(_item_value(item, "amount", 0) * fx_rate)
            item_taxes = sum(amount_in_cents * tax["rate"] for tax in taxes or [])
            total += amount_in_cents + item_taxes
        return round(total)

    @staticmethod
    def get_legacy_payout_method_type(payout_method: PayoutMethod | None) -> LegacyPayoutMethod:
        if payout_method is not None and payout_method.type == PayoutMethodType.PAYPAL:
            return LegacyPayoutMethod.PAYPAL
        return LegacyPayoutMethod.OTHER

    @staticmethod
    def get_payout_method_type_from_legacy(legacy_payout_method: LegacyPayoutMethod | str) -> PayoutMethodType:
        if LegacyPayoutMethod(legacy_payout_method) == LegacyPayoutMethod.PAYPAL:
            return PayoutMethodType.PAYPAL
        return PayoutMethodType.OTHER

    # Reads

    def get_by_id(self, expense_id: int) -> Expense | None:
        return (
            self.db.query(Expense)
            .filter(Expense.id == expense_id, Expense.not_deleted())
            .first()
        )

    # Creation

    def create(
        self,
        user: User,
        collective: Collective,
        from_collective: Collective,
        description: str,
        amount: int | None = None,
        currency: str | None = None,
        items: list[dict] | None = None,
        attached_files: list[str] | None = None,
        payout_method: PayoutMethod | None = None,
        status: ExpenseStatus | str = ExpenseStatus.PENDING,
        commit: bool = True,
        **fields,
    ) -> Persisted[Expense]:
        """Submit an expense with its items and attached files.

        Args:
            user: Submitter
            collective: Account paying the expense
            from_collective: Payee
            description: One line description
            amount: Total in cents; computed from items and taxes when omitted
            currency: Defaults to the collective currency
            items: Item dicts (amount, description, url, incurred_at, currency, expense_currency_fx_rate)
            attached_files: URLs of supporting documents
            payout_method: How the payee wants to be paid
            status: Initial status; drafts and unverified expenses emit no creation event
            commit: Commit the session (False to compose in a larger transaction)
            **fields: Other Expense columns (type, tags, long_description, data ...)

        Returns:
            Persisted expense
        """
        items = items or []
        if amount is None:
            taxes = (fields.get("data") or {}).get("taxes")
            amount = self.compute_total_amount(items, taxes) if items else None

        expense = Expense(
            user_id=user.id,
            last_edited_by_id=user.id,
            collective_id=collective.id,
            from_collective_id=from_collective.id,
            description=description,
            amount=amount,
            currency=currency or collective.currency,
            status=status,
            payout_method_id=payout_method.id if payout_method else None,
            legacy_payout_method=self.get_legacy_payout_method_type(payout_method),
            **fields,
        )
        self.db.add(expense)
        for item in items:
            expense.items.append(ExpenseItem(created_by_user_id=user.id, **item))
        for url in attached_files or []:
            expense.attached_files.append(ExpenseAttachedFile(url=url, created_by_user_id=user.id))

        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created expense %s on collective %s", expense.id, collective.id)

        events = []
        if expense.status not in (ExpenseStatus.DRAFT, ExpenseStatus.UNVERIFIED):
            events.append(self.build_activity(expense, ActivityType.COLLECTIVE_EXPENSE_CREATED, user.id))
        return Persisted(expense, events)

    def build_activity(
        self,
        expense: Expense,
        activity_type: ActivityType,
        user_id: int | None = None,
        extra: dict | None = None,
    ) -> DomainEvent:
        """Snapshot the expense and everything a notification about it needs."""
        extra = extra or {}
        collective = expense.collective
        host = self.collectives.get_host_collective(collective)
        submitter = expense.user
        payout_method = expense.payout_method

        transaction = None
        if expense.status == ExpenseStatus.PAID:
            transaction = (
                self.db.query(Transaction)
                .filter(
                    Transaction.expense_id == expense.id,
                    Transaction.type == TransactionType.DEBIT,
                    Transaction.kind == TransactionKind.EXPENSE,
                    Transaction.not_deleted(),
                )
                .order_by(Transaction.id.desc())
                .first()
            )

        data = {key: extra[key] for key in ACTIVITY_DATA_KEYS if key in extra}
        if (expense.data or {}).get("payee"):
            data.setdefault("payee", expense.data["payee"])
        data.update(
            {
                "expense": expense.info,
                "collective": {**collective.minimal, "is_active": collective.is_active},
                "from_collective": expense.from_collective.minimal,
                "host": host.minimal if host else None,
                "user": submitter.collective.minimal if submitter and submitter.collective else None,
                "transaction": transaction.info if transaction else None,
                "payout_method": (
                    {
                        "id": payout_method.id,
                        "type": payout_method.type.value,
                        "data": payout_method.filtered_data,
                    }
                    if payout_method
                    else None
                ),
                "items": [item.info for item in expense.active_items],
            }
        )
        return DomainEvent(
            type=activity_type,
            collective_id=collective.id,
            from_collective_id=expense.from_collective_id,
            host_collective_id=host.id if host else None,
            user_id=user_id,
            expense_id=expense.id,
            transaction_id=transaction.id if transaction else None,
            data=data,
        )

    # Status lifecycle

    def _set_status(
        self,
        expense: Expense,
        status: ExpenseStatus,
        user_id: int | None,
        activity_type: ActivityType,
        extra: dict | None = None,
    ) -> Persisted[Expense]:
        previous = expense.status
        expense.status = status
        expense.last_edited_by_id = user_id or expense.last_edited_by_id
        self.db.commit()
        logger.info("Expense %s: %s -> %s", expense.id, previous.value, status.value)
        return Persisted(expense, [self.build_activity(expense, activity_type, user_id, extra)])

    def set_approved(self, expense: Expense, user_id: int | None) -> Persisted[Expense]:
        if expense.status == ExpenseStatus.PAID:
            raise InvariantError("Can't approve an expense that is PAID")
        return self._set_status(
            expense, ExpenseStatus.APPROVED, user_id, ActivityType.COLLECTIVE_EXPENSE_APPROVED
        )

    def set_rejected(self, expense: Expense, user_id: int | None) -> Persisted[Expense]:
        if expense.status == ExpenseStatus.PAID:
            raise InvariantError("Can't reject an expense that is PAID")
        return self._set_status(
            expense, ExpenseStatus.REJECTED, user_id, ActivityType.COLLECTIVE_EXPENSE_REJECTED
        )

    def set_processing(self, expense: Expense, user_id: int | None) -> Persisted[Expense]:
        return self._set_status(
            expense, ExpenseStatus.PROCESSING, user_id, ActivityType.COLLECTIVE_EXPENSE_PROCESSING
        )

    def set_error(
        self, expense: Expense, user_id: int | None, error: str | None = None
    ) -> Persisted[Expense]:
        return self._set_status(
            expense,
            ExpenseStatus.ERROR,
            user_id,
            ActivityType.COLLECTIVE_EXPENSE_ERROR,
            {"error": error} if error else None,
        )

    def set_paid(
        self,
        expense: Expense,
        user_id: int | None,
        is_manual_payout: bool = False,
        skip_activity: bool = False,
    ) -> Persisted[Expense]:
        """Mark the expense as PAID.

        Settles the platform tip settlements paid by this expense and registers
        the payee as a CONTRIBUTOR of the collective. Failing to add the
        contributor is reported but never fails the payment.
        """
        collective = expense.collective
        expense.status = ExpenseStatus.PAID
        expense.last_edited_by_id = user_id or expense.last_edited_by_id
        expense.host_collective_id = collective.host_collective_id
        try:
            if expense.type == ExpenseType.SETTLEMENT or (expense.data or {}).get(
                "is_platform_tip_settlement"
            ):
                self.settlements.mark_expense_as_settled(expense, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Expense %s marked as paid", expense.id)

        events = []
        try:
            events.extend(self._create_contributor_member(expense))
        except (FundhostError, SQLAlchemyError) as e:
            self.db.rollback()
            report_error(
                e, f"Error when trying to add MEMBER in set_paid for expense {expense.id}", expense_id=expense.id
            )

        if not skip_activity:
            events.append(
                self.build_activity(
                    expense,
                    ActivityType.COLLECTIVE_EXPENSE_PAID,
                    user_id,
                    {"is_manual_payout": is_manual_payout},
                )
            )
        return Persisted(expense, events)

    def _create_contributor_member(self, expense: Expense) -> list[DomainEvent]:
        """Register the payee as CONTRIBUTOR when it is a user profile."""
        payee_user = (
            self.db.query(User)
            .filter(User.collective_id == expense.from_collective_id, User.not_deleted())
            .first()
        )
        if payee_user is None:
            return []
        result = self.collectives.add_user_with_role(
            expense.collective, payee_user, MemberRole.CONTRIBUTOR
        )
        if not result.created:
            logger.debug("User %s is already a contributor", payee_user.id)
        return result.events

    def verify(self, expense: Expense, user: User) -> Persisted[Expense]:
        """Move an UNVERIFIED expense to PENDING, making it visible to admins."""
        if expense.status != ExpenseStatus.UNVERIFIED:
            raise InvariantError("Expense needs to be UNVERIFIED in order to be verified")
        expense.status = ExpenseStatus.PENDING
        self.db.commit()
        events = [self.build_activity(expense, ActivityType.COLLECTIVE_EXPENSE_CREATED, user.id)]

        try:
            host = self.collectives.get_host_collective(expense.collective)
            legal_document = self.update_tax_form_status(expense, host, expense.from_collective, user)
            if legal_document is not None:
                events.extend(legal_document.events)
        except (FundhostError, SQLAlchemyError) as e:
            self.db.rollback()
            report_error(e, "An error happened when updating the tax form status", expense_id=expense.id)
        return Persisted(expense, events)

    def verify_user_expenses(self, user: User) -> list[Persisted[Expense]]:
        expenses = (
            self.db.query(Expense)
            .filter(
                Expense.user_id == user.id,
                Expense.status == ExpenseStatus.UNVERIFIED,
                Expense.not_deleted(),
            )
            .order_by(Expense.id)
            .all()
        )
        return [self.verify(expense, user) for expense in expenses]

    def update_tax_form_status(
        self,
        expense: Expense,
        host: Collective | None,
        payee: Collective,
        user: User | None,
        user_token_id: int | None = None,
    ) -> Persisted[LegalDocument] | None:
        """Request a tax form from the payee when this expense requires one.

        Must run whenever an expense is created, its amount or payout method
        changes, or an invited expense becomes pending.

        Returns:
            The legal document, or None when none is required
        """
        if host is None:
            return None
        if not self.legal_documents.host_requires_tax_form(host.id):
            return None
        if expense.id not in self.legal_documents.get_expense_ids_requiring_tax_forms([expense.id]):
            return None
        return self.legal_documents.create_tax_form_request_to_collective_if_none(
            payee,
            user,
            host_collective_id=host.id,
            expense_id=expense.id,
            user_token_id=user_token_id,
            year=expense.incurred_at.year,
        )

    # Destruction

    def destroy(self, expense: Expense, user_id: int | None = None) -> Persisted[Expense]:
        """Soft delete the expense with its items, comments and recurring schedule.

        Import rows linked to the expense go back to PENDING.
        """
        now = utcnow()
        expense.soft_delete(now)
        for item in expense.items:
            item.soft_delete(now)
        self.db.execute(
            update(Comment)
            .where(Comment.expense_id == expense.id, Comment.not_deleted())
            .values(deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        self.imports.reset_rows_for_expense(expense.id, commit=False)
        if expense.recurring_expense_id:
            recurring = self.db.get(RecurringExpense, expense.recurring_expense_id)
            if recurring is not None:
                recurring.soft_delete(now)
        self.db.commit()
        logger.info("Deleted expense %s", expense.id)
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_EXPENSE_DELETED,
            collective_id=expense.collective_id,
            from_collective_id=expense.from_collective_id,
            user_id=user_id,
            expense_id=expense.id,
            data={"expense": expense.minimal},
        )
        return Persisted(expense, [event])

    # Reporting queries

    def get_most_popular_expense_tags_for_collective(
        self, collective_id: int, limit: int = 100
    ) -> list[dict]:
        """Tags of the collective's visible expenses, most used first."""
        rows = self.db.query(Expense.tags).filter(
            Expense.collective_id == collective_id,
            Expense.status.notin_(HIDDEN_EXPENSE_STATUSES),
            Expense.not_deleted(),
        )
        counter = Counter(tag for (tags,) in rows for tag in tags or [])
        return [{"id": tag, "tag": tag, "count": count} for tag, count in counter.most_common(limit)]

    def get_collective_expenses_tags(
        self,
        collective_id: int,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Amount spent per expense tag, from the ledger of paid expenses.

        Returns:
            Dicts with label, count (distinct expenses), amount (absolute) and
            currency, largest amount first
        """
        rows = (
            self.db.query(Transaction, Expense.tags)
            .join(Expense, Expense.id == Transaction.expense_id)
            .filter(
                Transaction.collective_id == collective_id,
                Transaction.from_collective_id != collective_id,
                Transaction.type == TransactionType.DEBIT,
                Transaction.kind == TransactionKind.EXPENSE,
                Transaction.refund_transaction_id.is_(None),
                Transaction.not_deleted(),
                Expense.status == ExpenseStatus.PAID,
            )
            .all()
        )
        groups: dict[tuple[str, str], dict] = {}
        for transaction, tags in rows:
            date = transaction.cleared_at or transaction.created_at
            if date_from and date < date_from:
                continue
            if date_to and date > date_to:
                continue
            for tag in tags or [NO_TAG]:
                group = groups.setdefault(
                    (tag.strip(), transaction.currency), {"expense_ids": set(), "amount": 0}
                )
                group["expense_ids"].add(transaction.expense_id)
                group["amount"] += transaction.amount
        results = [
            {
                "label": label,
                "count": len(group["expense_ids"]),
                "amount": abs(group["amount"]),
                "currency": currency,
            }
            for (label, currency), group in groups.items()
        ]
        results.sort(key=lambda result: result["amount"], reverse=True)
        return results[:limit]

    def get_total_expenses_from_user(
        self, user_id: int, since: datetime, until: datetime | None = None
    ) -> dict[str, int]:
        """Totals per currency of the user's non-rejected expenses created in the period."""
        until = until or utcnow()
        totals: dict[str, int] = {}
        rows = self.db.query(Expense.currency, Expense.amount).filter(
            Expense.user_id == user_id,
            Expense.created_at >= since,
            Expense.created_at <= until,
            Expense.status != ExpenseStatus.REJECTED,
            Expense.not_deleted(),
        )
        for currency, amount in rows:
            totals[currency] = totals.get(currency, 0) + amount
        return totals

    def find_pending_card_charges(
        self, virtual_card_id: str | None = None, older_than: datetime | None = None
    ) -> list[Expense]:
        """Paid card charges still missing a receipt, excluding refunded ones."""
        missing_receipt = select(ExpenseItem.expense_id).where(
            ExpenseItem.url.is_(None), ExpenseItem.not_deleted()
        )
        refunded = select(Transaction.expense_id).where(
            Transaction.is_refund.is_(True),
            Transaction.expense_id.isnot(None),
            Transaction.not_deleted(),
        )
        query = self.db.query(Expense).filter(
            Expense.type == ExpenseType.CHARGE,
            Expense.status == ExpenseStatus.PAID,
            Expense.id.in_(missing_receipt),
            Expense.id.notin_(refunded),
            Expense.not_deleted(),
        )
        if virtual_card_id is not None:
            query = query.filter(Expense.virtual_card_id == virtual_card_id)
        if older_than is not None:
            query = query.filter(Expense.created_at <= older_than)
        return query.order_by(Expense.id).all()


__all__ = ["ExpenseService"]
