"""Collective ORM model: the central party of the platform."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.collectives import CollectiveType
from fundhost.errors import ValidationError
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import is_supported_currency, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class Collective(Base, BaseModel, ParanoidMixin):
    """
    Any account on the platform: a person (USER), an organization, a collective,
    a project, an event or a fund.

    Hosts are collectives with is_host_account=True that fiscally sponsor others
    (host_collective_id). Projects and events hang off a parent collective.
    """

    __tablename__ = "collectives"

    type: Mapped[CollectiveType] = mapped_column(nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    host_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )
    parent_collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )

    is_host_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Active = approved by its host"
    )
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_incognito: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_collectives_type_host", "type", "host_collective_id"),)

    # Relationships
    host: Mapped["Collective | None"] = relationship(
        "Collective", remote_side="Collective.id", foreign_keys=[host_collective_id]
    )
    parent: Mapped["Collective | None"] = relationship(
        "Collective", remote_side="Collective.id", foreign_keys=[parent_collective_id]
    )

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(CollectiveType, value, key)

    @validates("slug")
    def _validate_slug(self, key, value):
        if not value or not value.strip():
            raise ValidationError(key, "Slug cannot be empty")
        return value.strip().lower()

    @validates("name")
    def _validate_name(self, key, value):
        if not value or not value.strip():
            raise ValidationError(key, "Name cannot be empty")
        return value.strip()

    @validates("currency")
    def _validate_currency(self, key, value):
        if value is not None and not is_supported_currency(value):
            raise ValidationError(key, f"Unsupported currency: {value}")
        return value

    @validates("tags")
    def _validate_tags(self, key, value):
        tags = sanitize_tags(value)
        validate_tags(tags, key)
        return tags

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "type": self.type.value, "name": self.name, "slug": self.slug}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "host_collective_id": self.host_collective_id,
            "parent_collective_id": self.parent_collective_id,
            "is_host_account": self.is_host_account,
            "is_active": self.is_active,
            "tags": self.tags,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @property
    def public(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "tags": self.tags,
        }

    @property
    def activity(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "slug": self.slug,
            "name": self.name,
            "currency": self.currency,
            "host_collective_id": self.host_collective_id,
            "is_active": self.is_active,
            "is_host_account": self.is_host_account,
        }

    def __repr__(self) -> str:
        return f"<Collective(id={self.id}, type={self.type}, slug={self.slug})>"
