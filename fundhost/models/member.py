"""Member ORM model: a collective's role inside another collective."""

from datetime import datetime

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.roles import MemberRole
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime, utcnow


class Member(Base, BaseModel, ParanoidMixin):
    """Many-to-many link between collectives with a role."""

    __tablename__ = "members"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    member_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    role: Mapped[MemberRole] = mapped_column(nullable=False, index=True)
    tier_id: Mapped[int | None] = mapped_column(ForeignKey("tiers.id"), nullable=True)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    public_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    since: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "collective_id", "member_collective_id", "role", "tier_id", name="uq_member_role_tier"
        ),
    )

    collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[collective_id]
    )
    member_collective: Mapped["Collective"] = relationship(  # noqa: F821
        "Collective", foreign_keys=[member_collective_id]
    )

    @validates("role")
    def _validate_role(self, key, value):
        return to_enum(MemberRole, value, key)

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "collective_id": self.collective_id,
            "member_collective_id": self.member_collective_id,
            "tier_id": self.tier_id,
            "description": self.description,
            "public_message": self.public_message,
            "since": self.since,
            "created_at": self.created_at,
        }
