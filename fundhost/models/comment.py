"""Comment ORM model: discussion on expenses, updates and conversations."""

from enum import Enum

from sqlalchemy import ForeignKey, Text, event
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import InvariantError
from fundhost.lib.sanitize_html import COMMENT, sanitize_html
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class CommentType(str, Enum):
    COMMENT = "COMMENT"
    PRIVATE_NOTE = "PRIVATE_NOTE"


class Comment(Base, BaseModel, ParanoidMixin):
    """A comment must be linked to an expense, an update or a conversation."""

    __tablename__ = "comments"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id"), nullable=True, index=True
    )
    update_id: Mapped[int | None] = mapped_column(
        ForeignKey("updates.id"), nullable=True, index=True
    )
    conversation_id: Mapped[int | None] = mapped_column(
        ForeignKey("conversations.id"), nullable=True, index=True
    )
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    html: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[CommentType] = mapped_column(default=CommentType.COMMENT, nullable=False)

    @validates("html")
    def _sanitize_html(self, key, value):
        return sanitize_html(value or "", COMMENT)

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(CommentType, value, key)

    def check_link(self) -> None:
        if not (self.expense_id or self.update_id or self.conversation_id):
            raise InvariantError("Comment must be linked to an expense, update or conversation")

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "created_at": self.created_at}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "html": self.html,
            "collective_id": self.collective_id,
            "from_collective_id": self.from_collective_id,
            "created_by_user_id": self.created_by_user_id,
            "expense_id": self.expense_id,
            "update_id": self.update_id,
            "conversation_id": self.conversation_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @property
    def activity(self) -> dict:
        return {
            "id": self.id,
            "html": self.html,
            "created_by_user_id": self.created_by_user_id,
            "expense_id": self.expense_id,
            "update_id": self.update_id,
            "conversation_id": self.conversation_id,
        }


@event.listens_for(Comment, "before_insert")
def _check_comment_link(mapper, connection, target: Comment) -> None:
    target.check_link()
