"""Subscription service: recurring contribution state and charge schedule."""

import logging
from datetime import datetime

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.constants.orders import ContributionInterval, OrderStatus
from fundhost.errors import ConfigError, InvariantError, ProviderError
from fundhost.lib.error_reporting import report_error
from fundhost.models.subscription import Subscription
from fundhost.models.types import utcnow
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.gateways import PaypalGateway
from fundhost.services.order_service import FINAL_ORDER_STATUSES

logger = logging.getLogger(__name__)

CHARGE_STATUSES = ("new", "success", "failure", "updated")

INTERVAL_DELTAS = {
    ContributionInterval.MONTH: relativedelta(months=1),
    ContributionInterval.YEAR: relativedelta(years=1),
}


class SubscriptionService:
    """Service for Subscription operations.

    Cancelling a PayPal-managed subscription goes through the injected
    PaypalGateway.
    """

    def __init__(self, db_session: Session, paypal: PaypalGateway | None = None):
        """Initialize with database session and optional PayPal gateway."""
        self.db = db_session
        self.paypal = paypal

    def get_by_id(self, subscription_id: int) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.not_deleted())
            .first()
        )

    def activate(self, subscription: Subscription, now: datetime | None = None) -> Subscription:
        now = now or utcnow()
        subscription.is_active = True
        subscription.activated_at = now
        subscription.deactivated_at = None
        self.db.commit()
        logger.info("Activated subscription %s", subscription.id)
        return subscription

    def _is_managed_by_paypal(self, subscription: Subscription) -> bool:
        return (
            subscription.is_managed_externally
            and subscription.payment_method_service == "paypal"
            and bool(subscription.paypal_subscription_id)
        )

    def deactivate(
        self, subscription: Subscription, reason: str | None = None, now: datetime | None = None
    ) -> Persisted[Subscription]:
        """Stop the subscription and cancel its running orders.

        Raises:
            ProviderError: if PayPal refused the cancellation; nothing is changed
        """
        if self._is_managed_by_paypal(subscription):
            if self.paypal is None:
                raise ConfigError("PayPal gateway is not configured")
            try:
                self.paypal.cancel_subscription(subscription.paypal_subscription_id, reason)
            except Exception as e:
                report_error(
                    e,
                    "Failed to cancel PayPal subscription",
                    subscription_id=subscription.id,
                    paypal_subscription_id=subscription.paypal_subscription_id,
                )
                raise ProviderError("Failed to cancel PayPal subscription") from e

        subscription.is_active = False
        subscription.deactivated_at = now or utcnow()
        if reason:
            subscription.data = {**(subscription.data or {}), "deactivation_reason": reason}
        for order in subscription.orders:
            if order.status not in FINAL_ORDER_STATUSES:
                order.status = OrderStatus.CANCELLED
        self.db.commit()
        logger.info("Deactivated subscription %s", subscription.id)

        first_order = subscription.orders[0] if subscription.orders else None
        event = DomainEvent(
            type=ActivityType.SUBSCRIPTION_CANCELED,
            collective_id=first_order.collective_id if first_order else None,
            from_collective_id=first_order.from_collective_id if first_order else None,
            data={"subscription": subscription.info, "reason": reason},
        )
        return Persisted(subscription, [event])

    def update_next_charge_date(
        self, subscription: Subscription, status: str = "success", now: datetime | None = None
    ) -> Subscription:
        """Move the charge schedule after a charge attempt.

        ``new`` and ``success`` advance one interval from the current period;
        a new monthly subscription started after the 15th skips a month and
        charges on the first day of the month. ``failure`` retries in 2 days
        (5 days after 3 retries). ``updated`` charges now.
        """
        if status not in CHARGE_STATUSES:
            raise InvariantError(f"Unknown charge status: {status}")
        now = now or utcnow()
        initial = subscription.next_period_start or subscription.created_at or now
        next_charge_date = initial

        if status in ("new", "success"):
            delta = INTERVAL_DELTAS.get(subscription.interval)
            if delta is not None:
                next_charge_date = initial + delta
            if (
                status == "new"
                and subscription.interval == ContributionInterval.MONTH
                and next_charge_date.day > 15
            ):
                next_charge_date += relativedelta(months=1)
            if status == "new":
                next_charge_date = next_charge_date.replace(
                    day=1, hour=0, minute=0, second=0, microsecond=0
                )
            subscription.next_period_start = next_charge_date
        elif status == "failure":
            today = now.replace(hour=0, minute=0, second=0, microsecond=0)
            retry_days = 5 if subscription.charge_retry_count > 2 else 2
            next_charge_date = today + relativedelta(days=retry_days)
        else:
            next_charge_date = now

        subscription.next_charge_date = next_charge_date
        if status == "failure":
            subscription.charge_retry_count += 1
        else:
            subscription.charge_retry_count = 0
        if status == "success":
            subscription.charge_number += 1
        self.db.commit()
        logger.debug("Subscription %s next charge on %s", subscription.id, next_charge_date)
        return subscription


__all__ = ["SubscriptionService"]
