"""ConnectedAccount ORM model: third-party account linked to a collective."""

from enum import Enum

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class ConnectedAccountProvider(str, Enum):
    GITHUB = "github"
    TWITTER = "twitter"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    TRANSFERWISE = "transferwise"
    PLAID = "plaid"
    GOCARDLESS = "gocardless"
    MEETUP = "meetup"
    THEGIVINGBLOCK = "thegivingblock"


class ConnectedAccount(Base, BaseModel, ParanoidMixin):
    """token and refresh_token hold ciphertext and never appear in projections."""

    __tablename__ = "connected_accounts"

    service: Mapped[ConnectedAccountProvider] = mapped_column(nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Encrypted")
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Encrypted")
    hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    @validates("service")
    def _validate_service(self, key, value):
        return to_enum(ConnectedAccountProvider, value, key)

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "service": self.service.value,
            "username": self.username,
            "collective_id": self.collective_id,
            "settings": self.settings,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "service": self.service.value, "username": self.username}

    @property
    def activity(self) -> dict:
        return {
            "id": self.id,
            "service": self.service.value,
            "username": self.username,
            "collective_id": self.collective_id,
        }
