"""VirtualCard ORM model: cards issued by a host to a collective."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.lib.validators import to_enum
from fundhost.models import Base, ParanoidMixin, TimestampMixin
from fundhost.models.types import UTCDateTime


class VirtualCardProviderName(str, Enum):
    STRIPE = "STRIPE"
    PRIVACY = "PRIVACY"


class VirtualCard(Base, TimestampMixin, ParanoidMixin):
    """
    Identified by the provider's card id. private_data (number, cvv, expiry)
    is stored as encrypted JSON.
    """

    __tablename__ = "virtual_cards"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    host_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last4: Mapped[str | None] = mapped_column(String(4), nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    private_data: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Encrypted JSON")
    provider: Mapped[VirtualCardProviderName] = mapped_column(nullable=False)
    spending_limit_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    spending_limit_interval: Mapped[str | None] = mapped_column(String(32), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    last_resumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @validates("provider")
    def _validate_provider(self, key, value):
        return to_enum(VirtualCardProviderName, value, key)

    @property
    def status(self) -> str | None:
        return (self.data or {}).get("status")

    @property
    def is_active(self) -> bool:
        # Privacy cards report a state instead of a status
        return self.status == "active" or (self.data or {}).get("state") == "OPEN"

    @property
    def is_paused(self) -> bool:
        return self.status == "inactive" or (self.data or {}).get("state") == "PAUSED"

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "last4": self.last4,
            "provider": self.provider.value,
            "status": self.status,
            "collective_id": self.collective_id,
            "host_collective_id": self.host_collective_id,
            "spending_limit_amount": self.spending_limit_amount,
            "spending_limit_interval": self.spending_limit_interval,
            "currency": self.currency,
            "created_at": self.created_at,
        }
