"""Update ORM model: news posts published by a collective."""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.sanitize_html import UPDATE, generate_summary, sanitize_html
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class NotificationAudience(str, Enum):
    ALL = "ALL"
    COLLECTIVE_ADMINS = "COLLECTIVE_ADMINS"
    FINANCIAL_CONTRIBUTORS = "FINANCIAL_CONTRIBUTORS"
    NO_ONE = "NO_ONE"


class Update(Base, BaseModel, ParanoidMixin):
    """
    Draft until published_at is set. Private updates can be scheduled to become
    public on make_public_on.
    """

    __tablename__ = "updates"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    from_collective_id: Mapped[int] = mapped_column(ForeignKey("collectives.id"), nullable=False)
    tier_id: Mapped[int | None] = mapped_column(ForeignKey("tiers.id"), nullable=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    last_edited_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    html: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_changelog: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notification_audience: Mapped[NotificationAudience | None] = mapped_column(nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    make_public_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (UniqueConstraint("collective_id", "slug", name="uq_update_slug"),)

    @validates("title")
    def _validate_title(self, key, value):
        value = " ".join((value or "").split())
        if not 1 <= len(value) <= 255:
            raise ValidationError(key, "Title must be between 1 and 255 characters")
        return value

    @validates("html")
    def _sanitize_html(self, key, value):
        value = sanitize_html(value, UPDATE)
        self.summary = generate_summary(value, 240) if value else None
        return value

    @validates("notification_audience")
    def _validate_audience(self, key, value):
        return to_enum(NotificationAudience, value, key)

    @validates("tags")
    def _validate_tags(self, key, value):
        tags = sanitize_tags(value)
        validate_tags(tags, key)
        return tags

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "slug": self.slug, "title": self.title}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "summary": self.summary,
            "image": self.image,
            "is_private": self.is_private,
            "is_changelog": self.is_changelog,
            "notification_audience": (
                self.notification_audience.value if self.notification_audience else None
            ),
            "tags": self.tags,
            "collective_id": self.collective_id,
            "from_collective_id": self.from_collective_id,
            "tier_id": self.tier_id,
            "published_at": self.published_at,
            "make_public_on": self.make_public_on,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @property
    def activity(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "html": self.html,
            "is_private": self.is_private,
            "notification_audience": (
                self.notification_audience.value if self.notification_audience else None
            ),
            "collective_id": self.collective_id,
        }
