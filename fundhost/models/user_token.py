"""UserToken ORM model: OAuth access tokens issued to applications."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class UserTokenType(str, Enum):
    OAUTH = "OAUTH"


class UserToken(Base, BaseModel, ParanoidMixin):
    __tablename__ = "user_tokens"

    type: Mapped[UserTokenType] = mapped_column(default=UserTokenType.OAUTH, nullable=False)
    access_token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    refresh_token: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    access_token_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    refresh_token_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    scope: Mapped[list | None] = mapped_column(JSON, nullable=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(UserTokenType, value, key)

    def has_scope(self, scope: str) -> bool:
        return scope in (self.scope or [])
