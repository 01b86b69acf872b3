"""Transactions import service: staging rows and the processing lock."""

import logging
import uuid
from collections import Counter
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import update
from sqlalchemy.orm import Session

from fundhost.errors import ImportLockedError, NotFoundError
from fundhost.models.transactions_import import TransactionsImport, TransactionsImportType
from fundhost.models.transactions_import_row import (
    TransactionsImportRow,
    TransactionsImportRowStatus,
)
from fundhost.models.types import utcnow

logger = logging.getLogger(__name__)


class TransactionsImportService:
    """Service for TransactionsImport and TransactionsImportRow operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create_import(
        self,
        collective_id: int,
        type: TransactionsImportType | str,
        source: str,
        name: str,
        **fields,
    ) -> TransactionsImport:
        transactions_import = TransactionsImport(
            collective_id=collective_id, type=type, source=source, name=name, **fields
        )
        self.db.add(transactions_import)
        self.db.commit()
        logger.info("Created %s import %s", transactions_import.type.value, transactions_import.id)
        return transactions_import

    def get_by_id(self, import_id: int) -> TransactionsImport | None:
        return (
            self.db.query(TransactionsImport)
            .filter(TransactionsImport.id == import_id, TransactionsImport.not_deleted())
            .first()
        )

    @contextmanager
    def lock(self, import_id: int) -> Iterator[TransactionsImport]:
        """Hold the processing lock of an import for the duration of the block.

        The lock is taken with a compare-and-swap UPDATE on lock_token, so two
        workers can never both succeed. It is always released on exit.

        Raises:
            NotFoundError: unknown import
            ImportLockedError: another worker holds the lock
        """
        token = str(uuid.uuid4())
        result = self.db.execute(
            update(TransactionsImport)
            .where(
                TransactionsImport.id == import_id,
                TransactionsImport.lock_token.is_(None),
                TransactionsImport.not_deleted(),
            )
            .values(lock_token=token, locked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount != 1:
            if self.get_by_id(import_id) is None:
                raise NotFoundError(f"Import #{import_id} not found")
            raise ImportLockedError(import_id)

        logger.info("Locked import %s", import_id)
        self.db.expire_all()
        try:
            yield self.get_by_id(import_id)
        except Exception:
            self.db.rollback()
            raise
        finally:
            self.db.execute(
                update(TransactionsImport)
                .where(TransactionsImport.id == import_id, TransactionsImport.lock_token == token)
                .values(lock_token=None, locked_at=None)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            self.db.expire_all()
            logger.info("Released import %s", import_id)

    def add_rows(self, transactions_import: TransactionsImport, rows: list[dict]) -> list[TransactionsImportRow]:
        """Stage rows, skipping source_ids already present in the import."""
        existing_ids = {
            source_id
            for (source_id,) in self.db.query(TransactionsImportRow.source_id).filter(
                TransactionsImportRow.transactions_import_id == transactions_import.id
            )
        }
        created = []
        for row in rows:
            if row["source_id"] in existing_ids:
                continue
            existing_ids.add(row["source_id"])
            created.append(
                TransactionsImportRow(transactions_import_id=transactions_import.id, **row)
            )
        self.db.add_all(created)
        self.db.commit()
        logger.info(
            "Added %d rows to import %s (%d skipped)",
            len(created),
            transactions_import.id,
            len(rows) - len(created),
        )
        return created

    def _get_row(self, row_id: int) -> TransactionsImportRow:
        row = (
            self.db.query(TransactionsImportRow)
            .filter(TransactionsImportRow.id == row_id, TransactionsImportRow.not_deleted())
            .first()
        )
        if row is None:
            raise NotFoundError(f"Import row #{row_id} not found")
        return row

    def link_row_to_expense(self, row_id: int, expense_id: int) -> TransactionsImportRow:
        row = self._get_row(row_id)
        row.expense_id = expense_id
        row.status = TransactionsImportRowStatus.LINKED
        self.db.commit()
        return row

    def link_row_to_order(self, row_id: int, order_id: int) -> TransactionsImportRow:
        row = self._get_row(row_id)
        row.order_id = order_id
        row.status = TransactionsImportRowStatus.LINKED
        self.db.commit()
        return row

    def _set_status(self, row_ids: list[int], status: TransactionsImportRowStatus, note: str | None) -> int:
        values = {"status": status, "updated_at": utcnow()}
        if note is not None:
            values["note"] = note
        result = self.db.execute(
            update(TransactionsImportRow)
            .where(TransactionsImportRow.id.in_(row_ids), TransactionsImportRow.not_deleted())
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.expire_all()
        return result.rowcount

    def ignore_rows(self, row_ids: list[int], note: str | None = None) -> int:
        return self._set_status(row_ids, TransactionsImportRowStatus.IGNORED, note)

    def put_rows_on_hold(self, row_ids: list[int], note: str | None = None) -> int:
        return self._set_status(row_ids, TransactionsImportRowStatus.ON_HOLD, note)

    def get_stats(self, import_id: int) -> dict:
        """Row counts per status plus the total."""
        counts = Counter(
            status
            for (status,) in self.db.query(TransactionsImportRow.status).filter(
                TransactionsImportRow.transactions_import_id == import_id,
                TransactionsImportRow.not_deleted(),
            )
        )
        stats = {status.value: counts.get(status, 0) for status in TransactionsImportRowStatus}
        stats["total"] = sum(counts.values())
        return stats

    def reset_rows_for_expense(self, expense_id: int, commit: bool = True) -> int:
        """Unlink rows from a deleted expense and put them back to PENDING."""
        result = self.db.execute(
            update(TransactionsImportRow)
            .where(TransactionsImportRow.expense_id == expense_id)
            .values(
                expense_id=None,
                status=TransactionsImportRowStatus.PENDING,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if commit:
            self.db.commit()
        return result.rowcount


__all__ = ["TransactionsImportService"]
