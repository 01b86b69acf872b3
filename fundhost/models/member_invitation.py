"""MemberInvitation ORM model: a pending offer to join a collective."""

from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.roles import INVITABLE_ROLES, MemberRole
from fundhost.errors import ValidationError
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime, utcnow


class MemberInvitation(Base, BaseModel, ParanoidMixin):
    """Invitation materialized into a Member once accepted."""

    __tablename__ = "member_invitations"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    member_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    role: Mapped[MemberRole] = mapped_column(nullable=False)
    tier_id: Mapped[int | None] = mapped_column(ForeignKey("tiers.id"), nullable=True)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    since: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[collective_id]
    )
    member_collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[member_collective_id]
    )

    @validates("role")
    def _validate_role(self, key, value):
        role = to_enum(MemberRole, value, key)
        if role not in INVITABLE_ROLES:
            raise ValidationError(key, f"Cannot invite a member with role {role.value}")
        return role

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "collective_id": self.collective_id,
            "member_collective_id": self.member_collective_id,
            "role": self.role.value,
            "tier_id": self.tier_id,
            "description": self.description,
            "since": self.since,
            "created_at": self.created_at,
        }
