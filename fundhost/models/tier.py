"""Tier ORM model: a contribution level offered by a collective."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.constants.orders import ContributionInterval
from fundhost.errors import ValidationError
from fundhost.lib.validators import is_supported_currency, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin
from fundhost.models.types import UTCDateTime


class TierType(str, Enum):
    TIER = "TIER"
    MEMBERSHIP = "MEMBERSHIP"
    DONATION = "DONATION"
    TICKET = "TICKET"
    PRODUCT = "PRODUCT"
    SERVICE = "SERVICE"


class TierAmountType(str, Enum):
    FIXED = "FIXED"
    FLEXIBLE = "FLEXIBLE"


class Tier(Base, BaseModel, ParanoidMixin):
    """
    Contribution level. Cross-field rules (amount vs presets vs interval) are
    checked by TierService.validate before persisting.
    """

    __tablename__ = "tiers"

    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[TierType] = mapped_column(default=TierType.TIER, nullable=False)
    description: Mapped[str | None] = mapped_column(String(510), nullable=True)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount_type: Mapped[TierAmountType] = mapped_column(
        default=TierAmountType.FIXED, nullable=False
    )
    presets: Mapped[list | None] = mapped_column(JSON, nullable=True)
    min_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    interval: Mapped[ContributionInterval | None] = mapped_column(nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    max_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    goal: Mapped[int | None] = mapped_column(Integer, nullable=True)
    starts_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @validates("name")
    def _validate_name(self, key, value):
        value = (value or "").strip()
        if not 1 <= len(value) <= 255:
            raise ValidationError(key, "Name must be between 1 and 255 characters")
        return value

    @validates("description")
    def _validate_description(self, key, value):
        if value is not None and len(value) > 510:
            raise ValidationError(key, "Description must be 510 characters or less")
        return value

    @validates("type")
    def _validate_type(self, key, value):
        return to_enum(TierType, value, key)

    @validates("amount_type")
    def _validate_amount_type(self, key, value):
        return to_enum(TierAmountType, value, key)

    @validates("interval")
    def _validate_interval(self, key, value):
        return to_enum(ContributionInterval, value, key)

    @validates("currency")
    def _validate_currency(self, key, value):
        if value is not None and not is_supported_currency(value):
            raise ValidationError(key, f"Unsupported currency: {value}")
        return value

    @validates("presets")
    def _validate_presets(self, key, value):
        if not isinstance(value, list):
            return None
        return sorted(set(value))

    @property
    def requires_payment(self) -> bool:
        """False when a free contribution is possible."""
        if self.amount_type == TierAmountType.FIXED:
            return bool(self.amount)
        if self.min_amount is not None:
            return bool(self.min_amount)
        if self.presets and min(self.presets) == 0:
            return False
        return True

    @property
    def title(self) -> str:
        return f"{self.name} ({self.amount_str})" if self.amount else self.name

    @property
    def amount_str(self) -> str:
        if not self.amount:
            return ""
        value = f"{self.amount / 100:,.2f} {self.currency or ''}".strip()
        if self.amount_type == TierAmountType.FLEXIBLE:
            value += "+"
        if self.interval and self.interval != ContributionInterval.FLEXIBLE:
            value += f"/{self.interval.value}"
        return value

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "type": self.type.value, "name": self.name, "slug": self.slug}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "collective_id": self.collective_id,
            "name": self.name,
            "slug": self.slug,
            "type": self.type.value,
            "description": self.description,
            "amount": self.amount,
            "amount_type": self.amount_type.value,
            "presets": self.presets,
            "min_amount": self.min_amount,
            "interval": self.interval.value if self.interval else None,
            "currency": self.currency,
            "max_quantity": self.max_quantity,
            "goal": self.goal,
            "starts_at": self.starts_at,
            "ends_at": self.ends_at,
        }
