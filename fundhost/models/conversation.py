"""Conversation ORM model: a discussion thread started by a root comment."""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.sanitize_html import generate_summary
from fundhost.lib.slugs import slugify
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class ConversationVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    ADMINS_AND_HOST = "ADMINS_AND_HOST"


class Conversation(Base, BaseModel, ParanoidMixin):
    __tablename__ = "conversations"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    visibility: Mapped[ConversationVisibility] = mapped_column(
        default=ConversationVisibility.PUBLIC, nullable=False
    )
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(ForeignKey("collectives.id"), nullable=False)
    host_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True
    )
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    # comments.conversation_id already points here
    root_comment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @validates("title")
    def _validate_title(self, key, value):
        value = (value or "").strip()
        if not 3 <= len(value) <= 255:
            raise ValidationError(key, "Title must be between 3 and 255 characters")
        self.slug = slugify(value) or "conversation"
        return value

    @validates("summary")
    def _generate_summary(self, key, value):
        return generate_summary(value, 240)

    @validates("tags")
    def _validate_tags(self, key, value):
        tags = sanitize_tags(value)
        validate_tags(tags, key)
        return tags

    @validates("visibility")
    def _validate_visibility(self, key, value):
        return to_enum(ConversationVisibility, value, key)

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "summary": self.summary,
            "tags": self.tags,
            "visibility": self.visibility.value,
            "collective_id": self.collective_id,
            "from_collective_id": self.from_collective_id,
            "created_by_user_id": self.created_by_user_id,
            "root_comment_id": self.root_comment_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
