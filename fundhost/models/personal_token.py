"""PersonalToken ORM model: long-lived API tokens created by users."""

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class PersonalToken(Base, BaseModel, ParanoidMixin):
    __tablename__ = "personal_tokens"

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    scope: Mapped[list | None] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def has_scope(self, scope: str) -> bool:
        return scope in (self.scope or [])

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "scope": self.scope,
            "expires_at": self.expires_at,
            "user_id": self.user_id,
            "collective_id": self.collective_id,
        }
