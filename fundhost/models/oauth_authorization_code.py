"""OAuthAuthorizationCode ORM model: single-use codes of the OAuth code flow."""

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_url
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class OAuthAuthorizationCode(Base, BaseModel, ParanoidMixin):
    __tablename__ = "oauth_authorization_codes"

    code: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    redirect_uri: Mapped[str] = mapped_column(String(2048), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    scope: Mapped[list | None] = mapped_column(JSON, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    @validates("redirect_uri")
    def _validate_redirect_uri(self, key, value):
        if not is_url(value):
            raise ValidationError(key, f"Invalid redirect URI: {value}")
        return value
