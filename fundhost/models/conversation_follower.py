"""ConversationFollower ORM model: users notified of new comments."""

from sqlalchemy import Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fundhost.models import Base, BaseModel


class ConversationFollower(Base, BaseModel):
    __tablename__ = "conversation_followers"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "conversation_id", name="uq_conversation_follower"),
    )
