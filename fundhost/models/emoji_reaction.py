"""EmojiReaction ORM model: reactions on comments and updates."""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.models import Base, BaseModel

ALLOWED_EMOJIS = ("👍️", "👎", "😀", "🎉", "😕", "❤️", "🚀", "👀")


class EmojiReaction(Base, BaseModel):
    """Not paranoid: removing a reaction deletes the row."""

    __tablename__ = "emoji_reactions"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    from_collective_id: Mapped[int] = mapped_column(ForeignKey("collectives.id"), nullable=False)
    comment_id: Mapped[int | None] = mapped_column(
        ForeignKey("comments.id"), nullable=True, index=True
    )
    update_id: Mapped[int | None] = mapped_column(
        ForeignKey("updates.id"), nullable=True, index=True
    )
    emoji: Mapped[str] = mapped_column(String(16), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "from_collective_id", "comment_id", "emoji", name="uq_emoji_reaction_comment"
        ),
        UniqueConstraint(
            "user_id", "from_collective_id", "update_id", "emoji", name="uq_emoji_reaction_update"
        ),
    )

    @validates("emoji")
    def _validate_emoji(self, key, value):
        if value not in ALLOWED_EMOJIS:
            raise ValidationError(key, f"Unsupported emoji: {value}")
        return value

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "from_collective_id": self.from_collective_id,
            "comment_id": self.comment_id,
            "update_id": self.update_id,
            "emoji": self.emoji,
        }


# Legacy name
CommentReaction = EmojiReaction
