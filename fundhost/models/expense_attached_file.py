"""ExpenseAttachedFile ORM model: supporting documents for an expense."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_url
from fundhost.models import Base, BaseModel


class ExpenseAttachedFile(Base, BaseModel):
    __tablename__ = "expense_attached_files"

    expense_id: Mapped[int] = mapped_column(ForeignKey("expenses.id"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense", back_populates="attached_files"
    )

    @validates("url")
    def _validate_url(self, key, value):
        if not is_url(value):
            raise ValidationError(key, f"Invalid URL: {value}")
        return value

    @property
    def info(self) -> dict:
        return {"id": self.id, "url": self.url}
