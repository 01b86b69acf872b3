"""LegalDocument ORM model: tax form requested from a payee."""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class LegalDocumentType(str, Enum):
    US_TAX_FORM = "US_TAX_FORM"


class LegalDocumentRequestStatus(str, Enum):
    NOT_REQUESTED = "NOT_REQUESTED"
    REQUESTED = "REQUESTED"
    RECEIVED = "RECEIVED"
    ERROR = "ERROR"


class LegalDocumentFormService(str, Enum):
    """Where the form is filled in."""

    DROPBOX_FORMS = "DROPBOX_FORMS"
    OPENCOLLECTIVE = "OPENCOLLECTIVE"


class LegalDocument(Base, BaseModel, ParanoidMixin):
    """
    One document per (collective, year, type).

    document_link holds ciphertext; use LegalDocumentService.get_document_link to read it.
    data.reminder_sent_at records that the single reminder was sent.
    """

    __tablename__ = "legal_documents"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    document_type: Mapped[LegalDocumentType] = mapped_column(
        default=LegalDocumentType.US_TAX_FORM, nullable=False
    )
    document_link: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Encrypted")
    request_status: Mapped[LegalDocumentRequestStatus] = mapped_column(
        default=LegalDocumentRequestStatus.NOT_REQUESTED, nullable=False, index=True
    )
    service: Mapped[LegalDocumentFormService] = mapped_column(
        default=LegalDocumentFormService.OPENCOLLECTIVE, nullable=False
    )
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("collective_id", "year", "document_type", name="uq_legal_document_year"),
    )

    @validates("year")
    def _validate_year(self, key, value):
        if value is None or int(value) < 2015:
            raise ValidationError(key, "Year must be 2015 or later")
        return int(value)

    @validates("document_type")
    def _validate_document_type(self, key, value):
        return to_enum(LegalDocumentType, value, key)

    @validates("request_status")
    def _validate_request_status(self, key, value):
        return to_enum(LegalDocumentRequestStatus, value, key)

    @validates("service")
    def _validate_service(self, key, value):
        return to_enum(LegalDocumentFormService, value, key)

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "document_type": self.document_type.value,
            "request_status": self.request_status.value,
            "service": self.service.value,
            "collective_id": self.collective_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
