"""User ORM model: authentication identity tied to a personal collective."""

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_email
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class User(Base, BaseModel, ParanoidMixin):
    """
    A person who can log in.

    Every user owns exactly one USER collective (collective_id) used as their
    public profile. The TOTP secret is stored encrypted; see UserService.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, unique=True, comment="Personal profile"
    )
    two_factor_auth_totp_secret: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Encrypted TOTP secret"
    )
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    collective: Mapped["Collective | None"] = relationship("Collective")  # noqa: F821

    @validates("email")
    def _validate_email(self, key, value):
        value = (value or "").strip().lower()
        if not is_email(value):
            raise ValidationError(key, f"Invalid email address: {value}")
        return value

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "email": self.email}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "collective_id": self.collective_id,
            "last_login_at": self.last_login_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @property
    def public(self) -> dict:
        return {"id": self.id}

    @property
    def has_two_factor_authentication(self) -> bool:
        return bool(self.two_factor_auth_totp_secret)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
