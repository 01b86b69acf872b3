"""RequiredLegalDocument ORM model: documents a host requires from payees."""

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.legal_document import LegalDocumentType


class RequiredLegalDocument(Base, BaseModel, ParanoidMixin):
    __tablename__ = "required_legal_documents"

    host_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    document_type: Mapped[LegalDocumentType] = mapped_column(
        default=LegalDocumentType.US_TAX_FORM, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("host_collective_id", "document_type", name="uq_required_legal_document"),
    )

    @validates("document_type")
    def _validate_document_type(self, key, value):
        return to_enum(LegalDocumentType, value, key)
