"""Application ORM model: API keys and OAuth clients."""

from enum import Enum

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_url, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class ApplicationType(str, Enum):
    API_KEY = "API_KEY"
    OAUTH = "OAUTH"


class Application(Base, BaseModel, ParanoidMixin):
    """client_secret holds ciphertext; see OAuthService.get_client_secret."""

    __tablename__ = "applications"

    type: Mapped[ApplicationType] = mapped_column(default=ApplicationType.OAUTH, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    client_secret: Mapped[str] = mapped_column(Text, nullable=False, comment="Encrypted")
    callback_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    collective_id: Mapped[int | None] = mapped_column(
        ForeignKey("collectives.id"), nullable=True, index=True
    )
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(ApplicationType, value, key)

    @validates("callback_url")
    def _validate_callback_url(self, key, value):
        if value is not None and not is_url(value):
            raise ValidationError(key, f"Invalid callback URL: {value}")
        return value

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "client_id": self.client_id,
            "callback_url": self.callback_url,
            "collective_id": self.collective_id,
        }
