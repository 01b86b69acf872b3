"""Legal document service: tax form requests, receipts and reminders."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.expenses import ExpenseStatus, ExpenseType
from fundhost.lib.encryption import decrypt, encrypt
from fundhost.models.collective import Collective
from fundhost.models.expense import Expense
from fundhost.models.legal_document import (
    LegalDocument,
    LegalDocumentRequestStatus,
    LegalDocumentType,
)
from fundhost.models.required_legal_document import RequiredLegalDocument
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted

logger = logging.getLogger(__name__)

TAX_FORM_EXPENSE_TYPES = (ExpenseType.INVOICE, ExpenseType.UNCLASSIFIED)
IGNORED_EXPENSE_STATUSES = (
    ExpenseStatus.REJECTED,
    ExpenseStatus.SPAM,
    ExpenseStatus.DRAFT,
    ExpenseStatus.CANCELED,
)


def _year_bounds(year: int) -> tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


class LegalDocumentService:
    """Service for LegalDocument and RequiredLegalDocument operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def require_tax_form(self, host_collective_id: int) -> RequiredLegalDocument:
        """Make a host require US tax forms from its payees (idempotent)."""
        existing = (
            self.db.query(RequiredLegalDocument)
            .filter(
                RequiredLegalDocument.host_collective_id == host_collective_id,
                RequiredLegalDocument.document_type == LegalDocumentType.US_TAX_FORM,
            )
            .first()
        )
        if existing:
            existing.deleted_at = None
            self.db.commit()
            return existing
        required = RequiredLegalDocument(
            host_collective_id=host_collective_id, document_type=LegalDocumentType.US_TAX_FORM
        )
        self.db.add(required)
        self.db.commit()
        return required

    def host_requires_tax_form(self, host_id: int) -> bool:
        return (
            self.db.query(RequiredLegalDocument.id)
            .filter(
                RequiredLegalDocument.host_collective_id == host_id,
                RequiredLegalDocument.document_type == LegalDocumentType.US_TAX_FORM,
                RequiredLegalDocument.not_deleted(),
            )
            .first()
            is not None
        )

    def find(self, collective_id: int, year: int) -> LegalDocument | None:
        return (
            self.db.query(LegalDocument)
            .filter(
                LegalDocument.collective_id == collective_id,
                LegalDocument.year == year,
                LegalDocument.document_type == LegalDocumentType.US_TAX_FORM,
                LegalDocument.not_deleted(),
            )
            .first()
        )

    def create_tax_form_request_to_collective_if_none(
        self,
        payee: Collective,
        user: User | None = None,
        host_collective_id: int | None = None,
        expense_id: int | None = None,
        user_token_id: int | None = None,
        year: int | None = None,
    ) -> Persisted[LegalDocument]:
        """Find the payee's tax form for the year or create a REQUESTED one.

        A concurrent creation hitting the unique constraint returns the existing
        document. TAXFORM_REQUEST is emitted only when the document is created.
        """
        year = year or utcnow().year
        existing = self.find(payee.id, year)
        if existing:
            return Persisted(existing, created=False)

        document = LegalDocument(
            collective_id=payee.id,
            year=year,
            document_type=LegalDocumentType.US_TAX_FORM,
            request_status=LegalDocumentRequestStatus.REQUESTED,
            data={
                "requested_by_user_id": user.id if user else None,
                "host_collective_id": host_collective_id,
                "expense_id": expense_id,
                "user_token_id": user_token_id,
            },
        )
        self.db.add(document)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.find(payee.id, year)
            if existing is None:
                raise
            return Persisted(existing, created=False)

        logger.info("Requested %s tax form from collective %s", year, payee.id)
        event = DomainEvent(
            type=ActivityType.TAXFORM_REQUEST,
            collective_id=payee.id,
            host_collective_id=host_collective_id,
            user_id=user.id if user else None,
            expense_id=expense_id,
            data={"document": document.info, "payee": payee.minimal},
        )
        return Persisted(document, [event])

    def mark_as_received(self, document: LegalDocument, document_link: str) -> Persisted[LegalDocument]:
        document.document_link = encrypt(document_link)
        document.request_status = LegalDocumentRequestStatus.RECEIVED
        self.db.commit()
        logger.info("Received tax form %s", document.id)
        event = DomainEvent(
            type=ActivityType.TAXFORM_RECEIVED,
            collective_id=document.collective_id,
            data={"document": document.info},
        )
        return Persisted(document, [event])

    def mark_as_error(self, document: LegalDocument, message: str) -> LegalDocument:
        document.request_status = LegalDocumentRequestStatus.ERROR
        document.data = {**(document.data or {}), "error": message}
        self.db.commit()
        logger.warning("Tax form %s marked as error: %s", document.id, message)
        return document

    def get_document_link(self, document: LegalDocument) -> str | None:
        if not document.document_link:
            return None
        return decrypt(document.document_link)

    def _hosts_requiring_tax_forms(self):
        return select(RequiredLegalDocument.host_collective_id).where(
            RequiredLegalDocument.document_type == LegalDocumentType.US_TAX_FORM,
            RequiredLegalDocument.not_deleted(),
        )

    def _taxable_expenses_query(self, year: int):
        start, end = _year_bounds(year)
        host_id = func.coalesce(Expense.host_collective_id, Collective.host_collective_id)
        return (
            self.db.query(Expense)
            .join(Collective, Collective.id == Expense.collective_id)
            .filter(
                host_id.in_(self._hosts_requiring_tax_forms()),
                Expense.type.in_(TAX_FORM_EXPENSE_TYPES),
                Expense.status.notin_(IGNORED_EXPENSE_STATUSES),
                Expense.incurred_at >= start,
                Expense.incurred_at < end,
                Expense.not_deleted(),
            )
        )

    def get_collective_ids_needing_tax_forms(self, year: int) -> set[int]:
        """Payees whose yearly taxable expenses reach the threshold without a received form."""
        threshold = get_settings().tax_form_threshold_amount
        totals = (
            self._taxable_expenses_query(year)
            .with_entities(Expense.from_collective_id, func.sum(Expense.amount))
            .group_by(Expense.from_collective_id)
            .all()
        )
        over_threshold = {payee_id for payee_id, total in totals if total >= threshold}
        if not over_threshold:
            return set()
        received = {
            collective_id
            for (collective_id,) in self.db.query(LegalDocument.collective_id).filter(
                LegalDocument.collective_id.in_(over_threshold),
                LegalDocument.year == year,
                LegalDocument.document_type == LegalDocumentType.US_TAX_FORM,
                LegalDocument.request_status == LegalDocumentRequestStatus.RECEIVED,
                LegalDocument.not_deleted(),
            )
        }
        return over_threshold - received

    def get_expense_ids_requiring_tax_forms(self, expense_ids: Iterable[int]) -> set[int]:
        expense_ids = list(expense_ids)
        if not expense_ids:
            return set()
        expenses = self.db.query(Expense).filter(Expense.id.in_(expense_ids)).all()
        needing_by_year: dict[int, set[int]] = {}
        taxable_by_year: dict[int, set[int]] = {}
        result = set()
        for expense in expenses:
            year = expense.incurred_at.year
            if year not in needing_by_year:
                needing_by_year[year] = self.get_collective_ids_needing_tax_forms(year)
                taxable_by_year[year] = {
                    expense_id
                    for (expense_id,) in self._taxable_expenses_query(year).with_entities(Expense.id)
                }
            if expense.id in taxable_by_year[year] and expense.from_collective_id in needing_by_year[year]:
                result.add(expense.id)
        return result

    def find_documents_needing_reminder(self, now: datetime | None = None) -> list[LegalDocument]:
        """REQUESTED documents last updated between 7 days and 48 hours ago, never reminded."""
        now = now or utcnow()
        settings = get_settings()
        newest = now - timedelta(hours=settings.tax_form_reminder_min_age_hours)
        oldest = now - timedelta(days=settings.tax_form_reminder_max_age_days)
        documents = (
            self.db.query(LegalDocument)
            .filter(
                LegalDocument.request_status == LegalDocumentRequestStatus.REQUESTED,
                LegalDocument.updated_at <= newest,
                LegalDocument.updated_at >= oldest,
                LegalDocument.not_deleted(),
            )
            .order_by(LegalDocument.id)
            .all()
        )
        return [doc for doc in documents if not (doc.data or {}).get("reminder_sent_at")]

    def send_reminders(self, now: datetime | None = None) -> list[DomainEvent]:
        """Flag and emit one reminder per stale request that is still needed."""
        now = now or utcnow()
        needed_by_year: dict[int, set[int]] = {}
        events = []
        for document in self.find_documents_needing_reminder(now):
            if document.year not in needed_by_year:
                needed_by_year[document.year] = self.get_collective_ids_needing_tax_forms(
                    document.year
                )
            if document.collective_id not in needed_by_year[document.year]:
                logger.info("Tax form %s no longer needed, skipping reminder", document.id)
                continue
            document.data = {**(document.data or {}), "reminder_sent_at": now.isoformat()}
            events.append(
                DomainEvent(
                    type=ActivityType.TAXFORM_REQUEST_REMINDER,
                    collective_id=document.collective_id,
                    host_collective_id=(document.data or {}).get("host_collective_id"),
                    data={"document": document.info},
                )
            )
        self.db.commit()
        logger.info("Sent %d tax form reminders", len(events))
        return events


__all__ = ["LegalDocumentService"]
