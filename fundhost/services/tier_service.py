"""Tier service."""

import logging
import sys

from sqlalchemy import func
from sqlalchemy.orm import Session

from fundhost.constants.orders import UNAVAILABLE_ORDER_STATUSES, ContributionInterval
from fundhost.errors import InvariantError
from fundhost.lib.slugs import slugify
from fundhost.models.order import Order
from fundhost.models.tier import Tier, TierAmountType, TierType

logger = logging.getLogger(__name__)

# Returned as available quantity for tiers without max_quantity
UNLIMITED_QUANTITY = sys.maxsize


class TierService:
    """Service for Tier operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    @staticmethod
    def validate(tier: Tier) -> None:
        """Check the rules linking amount, presets, min amount and interval.

        Raises:
            InvariantError: on the first rule violated
        """
        amount_type = tier.amount_type or TierAmountType.FIXED
        if (
            tier.type != TierType.TICKET
            and amount_type == TierAmountType.FIXED
            and tier.amount is None
        ):
            raise InvariantError(f"In {tier.name}'s tier, \"Amount\" is required")
        if (
            amount_type == TierAmountType.FLEXIBLE
            and tier.amount is not None
            and tier.presets
            and tier.amount not in tier.presets
        ):
            raise InvariantError(
                f"In {tier.name}'s tier, \"Default amount\" must be one of suggested values amounts"
            )
        if amount_type == TierAmountType.FLEXIBLE and tier.min_amount and tier.presets:
            if min(tier.presets) < tier.min_amount:
                raise InvariantError(
                    f"In {tier.name}'s tier, minimum amount cannot be less than minimum suggested amounts"
                )
        if amount_type == TierAmountType.FIXED and tier.interval == ContributionInterval.FLEXIBLE:
            raise InvariantError(
                f"In {tier.name}'s tier, \"flexible\" interval can not be selected with \"fixed\" amount type."
            )

    def create(self, collective_id: int, name: str, commit: bool = True, **fields) -> Tier:
        fields.setdefault("type", TierType.TIER)
        fields.setdefault("amount_type", TierAmountType.FIXED)
        fields.setdefault("slug", slugify(name))
        tier = Tier(collective_id=collective_id, name=name, **fields)
        self.validate(tier)
        self.db.add(tier)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created tier %s for collective %s", tier.id, collective_id)
        return tier

    def get_by_id(self, tier_id: int) -> Tier | None:
        return self.db.query(Tier).filter(Tier.id == tier_id, Tier.not_deleted()).first()

    def list_for_collective(self, collective_id: int) -> list[Tier]:
        return (
            self.db.query(Tier)
            .filter(Tier.collective_id == collective_id, Tier.not_deleted())
            .order_by(Tier.id)
            .all()
        )

    def available_quantity(self, tier: Tier) -> int:
        """Remaining quantity, or UNLIMITED_QUANTITY without max_quantity.

        Only processed orders that did not fail or get cancelled count.
        """
        if not tier.max_quantity:
            return UNLIMITED_QUANTITY
        used = (
            self.db.query(func.coalesce(func.sum(Order.quantity), 0))
            .filter(
                Order.tier_id == tier.id,
                Order.status.notin_(UNAVAILABLE_ORDER_STATUSES),
                Order.processed_at.isnot(None),
                Order.not_deleted(),
            )
            .scalar()
        )
        return tier.max_quantity - used

    def check_available_quantity(self, tier: Tier, quantity_needed: int = 1) -> bool:
        return self.available_quantity(tier) - quantity_needed >= 0


__all__ = ["TierService", "UNLIMITED_QUANTITY"]
