"""TransactionsImport ORM model: a batch of bank/CSV/Plaid rows to reconcile."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class TransactionsImportType(str, Enum):
    CSV = "CSV"
    MANUAL = "MANUAL"
    PLAID = "PLAID"


class TransactionsImport(Base, BaseModel, ParanoidMixin):
    """
    lock_token is set while a worker processes the import; it is acquired and
    released with compare-and-swap updates by TransactionsImportService.lock.
    """

    __tablename__ = "transactions_imports"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    type: Mapped[TransactionsImportType] = mapped_column(nullable=False)
    source: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    csv_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    connected_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("connected_accounts.id"), nullable=True
    )
    lock_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    rows: Mapped[list["TransactionsImportRow"]] = relationship(  # noqa: F821
        "TransactionsImportRow", back_populates="transactions_import"
    )

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(TransactionsImportType, value, key)

    @property
    def is_locked(self) -> bool:
        return self.lock_token is not None

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "collective_id": self.collective_id,
            "type": self.type.value,
            "source": self.source,
            "name": self.name,
            "is_locked": self.is_locked,
            "created_at": self.created_at,
        }
