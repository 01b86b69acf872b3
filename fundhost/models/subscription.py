"""Subscription ORM model: recurring billing state of an order."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from fundhost.constants.orders import ContributionInterval
from fundhost.errors import ValidationError
from fundhost.lib.validators import to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime

PAYMENT_METHOD_SERVICES = ("stripe", "paypal", "opencollective")


class Subscription(Base, BaseModel, ParanoidMixin):
    """Tracks active/deactivated state; the charge itself is done by the provider."""

    __tablename__ = "subscriptions"

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    interval: Mapped[ContributionInterval] = mapped_column(nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_managed_externally: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_method_service: Mapped[str | None] = mapped_column(String(32), nullable=True)
    paypal_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    next_charge_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    charge_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    charge_retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    activated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deactivated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    orders: Mapped[list["Order"]] = relationship(  # noqa: F821
        "Order", back_populates="subscription"
    )

    @validates("interval")
    def _validate_interval(self, key, value):
        return to_enum(ContributionInterval, value, key)

    @validates("payment_method_service")
    def _validate_payment_method_service(self, key, value):
        if value is not None and value not in PAYMENT_METHOD_SERVICES:
            raise ValidationError(key, f"Unsupported payment method service: {value}")
        return value

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "interval": self.interval.value,
            "is_active": self.is_active,
            "next_charge_date": self.next_charge_date,
            "activated_at": self.activated_at,
            "deactivated_at": self.deactivated_at,
        }
