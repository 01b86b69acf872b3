"""Order ORM model: a contribution commitment."""

from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.orders import ContributionInterval, OrderStatus
from fundhost.errors import ValidationError
from fundhost.lib.tags import sanitize_tags, validate_tags
from fundhost.lib.validators import is_supported_currency, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class Order(Base, BaseModel, ParanoidMixin):
    """
    A contribution from from_collective to collective, optionally for a tier.
    Recurring orders point to a Subscription.
    """

    __tablename__ = "orders"

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    from_collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    tier_id: Mapped[int | None] = mapped_column(ForeignKey("tiers.id"), nullable=True, index=True)
    subscription_id: Mapped[int | None] = mapped_column(
        ForeignKey("subscriptions.id"), nullable=True, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Cents")
    platform_tip_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tax_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    interval: Mapped[ContributionInterval | None] = mapped_column(nullable=True)
    status: Mapped[OrderStatus] = mapped_column(default=OrderStatus.NEW, nullable=False, index=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    private_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    tier: Mapped["Tier | None"] = relationship("Tier")  # noqa: F821
    subscription: Mapped["Subscription | None"] = relationship(  # noqa: F821
        "Subscription", back_populates="orders"
    )

    @validates("status")
    def _validate_status(self, key, value):
        return to_enum(OrderStatus, value, key)

    @validates("interval")
    def _validate_interval(self, key, value):
        return to_enum(ContributionInterval, value, key)

    @validates("currency")
    def _validate_currency(self, key, value):
        if not is_supported_currency(value):
            raise ValidationError(key, f"Unsupported currency: {value}")
        return value

    @validates("quantity")
    def _validate_quantity(self, key, value):
        if value is None or int(value) < 1:
            raise ValidationError(key, "Quantity must be at least 1")
        return int(value)

    @validates("tags")
    def _validate_tags(self, key, value):
        tags = sanitize_tags(value)
        validate_tags(tags, key)
        return tags

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "created_by_user_id": self.created_by_user_id,
            "from_collective_id": self.from_collective_id,
            "collective_id": self.collective_id,
            "tier_id": self.tier_id,
            "subscription_id": self.subscription_id,
            "quantity": self.quantity,
            "currency": self.currency,
            "total_amount": self.total_amount,
            "platform_tip_amount": self.platform_tip_amount,
            "tax_amount": self.tax_amount,
            "description": self.description,
            "interval": self.interval.value if self.interval else None,
            "status": self.status.value,
            "tags": self.tags,
            "processed_at": self.processed_at,
            "created_at": self.created_at,
        }
