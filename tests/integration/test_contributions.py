"""Integration tests for tiers, orders and subscriptions."""

from datetime import datetime, timezone

import pytest

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.collectives import CollectiveType
from fundhost.constants.orders import OrderStatus
from fundhost.constants.roles import MemberRole
from fundhost.constants.transactions import TransactionKind, TransactionType
from fundhost.errors import ConfigError, InvariantError, ProviderError
from fundhost.models.subscription import Subscription
from fundhost.models.tier import TierType
from fundhost.models.transaction import Transaction
from fundhost.services.container import build_services


class FailingPaypal:
    def cancel_subscription(self, paypal_subscription_id, reason=None):
        raise RuntimeError("PayPal is down")


class RecordingPaypal:
    def __init__(self):
        self.cancelled = []

    def cancel_subscription(self, paypal_subscription_id, reason=None):
        self.cancelled.append((paypal_subscription_id, reason))


@pytest.fixture
def tier(services, collective):
    return services.tiers.create(collective.id, "Backer", amount=1000, interval="month")


@pytest.mark.integration
class TestTiers:
    def test_create_validates(self, services, collective):
        with pytest.raises(InvariantError):
            services.tiers.create(collective.id, "Sponsor")
        ticket = services.tiers.create(collective.id, "Entry", type=TierType.TICKET)
        assert ticket.slug == "entry"
        assert [t.name for t in services.tiers.list_for_collective(collective.id)] == ["Entry"]

    def test_available_quantity(self, services, user, collective):
        tier = services.tiers.create(collective.id, "Seat", amount=500, max_quantity=2)
        order = services.orders.create(user, user.collective, collective, 1000, tier=tier, quantity=2)
        # Unprocessed orders do not consume quantity
        assert services.tiers.available_quantity(tier) == 2

        services.orders.mark_as_paid(order, user)
        assert services.tiers.available_quantity(tier) == 0
        assert not services.tiers.check_available_quantity(tier)
        with pytest.raises(InvariantError, match="No more quantity"):
            services.orders.create(user, user.collective, collective, 500, tier=tier)


@pytest.mark.integration
class TestOrders:
    def test_create_describes_the_order(self, services, user, collective, tier):
        order = services.orders.create(
            user, user.collective, collective, 1000, tier=tier, interval="month"
        )
        assert order.status == OrderStatus.NEW
        assert order.currency == "USD"
        assert order.description == "Monthly financial contribution to Babel (Backer)"

    def test_taxes_and_tip_cannot_exceed_total(self, services, user, collective):
        with pytest.raises(InvariantError):
            services.orders.create(
                user, user.collective, collective, 1000, platform_tip_amount=600, tax_amount=500
            )

    def test_mark_as_paid(self, services, db_session, monkeypatch, user, collective, tier):
        platform = services.collectives.create(
            type=CollectiveType.ORGANIZATION, name="Platform", currency="USD"
        ).entity
        monkeypatch.setattr(get_settings(), "platform_collective_id", platform.id)
        order = services.orders.create(
            user, user.collective, collective, 1100, tier=tier, platform_tip_amount=100
        )

        result = services.orders.mark_as_paid(order, user)
        assert order.status == OrderStatus.PAID
        assert order.processed_at is not None
        assert result.event_types() == [ActivityType.ORDER_PROCESSED]

        credits = (
            db_session.query(Transaction)
            .filter(Transaction.order_id == order.id, Transaction.type == TransactionType.CREDIT)
            .order_by(Transaction.id)
            .all()
        )
        assert [(t.kind, t.collective_id, t.amount) for t in credits] == [
            (TransactionKind.CONTRIBUTION, collective.id, 1000),
            (TransactionKind.PLATFORM_TIP, platform.id, 100),
        ]
        assert credits[0].transaction_group == credits[1].transaction_group

        assert services.members.find(collective.id, user.collective_id, MemberRole.BACKER, tier.id)
        assert services.members.find(platform.id, user.collective_id, MemberRole.BACKER)

    def test_order_cannot_be_paid_twice(self, services, db_session, user, collective, tier):
        order = services.orders.create(user, user.collective, collective, 1000, tier=tier)
        services.orders.mark_as_paid(order, user)
        with pytest.raises(InvariantError, match="already been processed"):
            services.orders.mark_as_paid(order, user)

        credits = db_session.query(Transaction).filter(
            Transaction.order_id == order.id, Transaction.type == TransactionType.CREDIT
        )
        assert credits.count() == 1

    def test_tip_without_platform_collective(
        self, services, db_session, monkeypatch, user, collective, tier
    ):
        monkeypatch.setattr(get_settings(), "platform_collective_id", 404)
        order = services.orders.create(
            user, user.collective, collective, 1100, tier=tier, platform_tip_amount=100
        )
        with pytest.raises(ConfigError):
            services.orders.mark_as_paid(order, user)

        assert db_session.query(Transaction).filter(Transaction.order_id == order.id).count() == 0
        assert order.status == OrderStatus.NEW
        assert order.processed_at is None

    def test_tickets_make_attendees(self, services, user, collective):
        ticket = services.tiers.create(collective.id, "Entry", type=TierType.TICKET)
        order = services.orders.create(user, user.collective, collective, 1, tier=ticket)
        member, platform_member = services.orders.get_or_create_members(order)
        assert member.role == MemberRole.ATTENDEE
        assert platform_member is None


@pytest.fixture
def subscription(db_session, services, user, collective, tier):
    subscription = Subscription(
        amount=1000,
        currency="USD",
        interval="month",
        is_active=True,
        is_managed_externally=True,
        payment_method_service="paypal",
        paypal_subscription_id="I-BW452GLLEP1G",
    )
    db_session.add(subscription)
    db_session.commit()
    services.orders.create(
        user,
        user.collective,
        collective,
        1000,
        tier=tier,
        interval="month",
        subscription_id=subscription.id,
        status=OrderStatus.ACTIVE,
    )
    return subscription


@pytest.mark.integration
class TestSubscriptions:
    def test_paypal_failure_changes_nothing(self, db_session, subscription):
        services = build_services(db_session, paypal=FailingPaypal())
        with pytest.raises(ProviderError):
            services.subscriptions.deactivate(subscription, "Changed my mind")

        db_session.expire_all()
        assert subscription.is_active is True
        assert subscription.orders[0].status == OrderStatus.ACTIVE

    def test_paypal_gateway_is_required(self, services, subscription):
        with pytest.raises(ConfigError):
            services.subscriptions.deactivate(subscription)

    def test_deactivate(self, db_session, subscription):
        paypal = RecordingPaypal()
        services = build_services(db_session, paypal=paypal)
        result = services.subscriptions.deactivate(subscription, "Changed my mind")

        assert paypal.cancelled == [("I-BW452GLLEP1G", "Changed my mind")]
        assert subscription.is_active is False
        assert subscription.deactivated_at is not None
        assert subscription.data["deactivation_reason"] == "Changed my mind"
        assert subscription.orders[0].status == OrderStatus.CANCELLED
        assert result.event_types() == [ActivityType.SUBSCRIPTION_CANCELED]

    def test_cancel_active_orders_by_tier(self, services, subscription, tier):
        assert services.orders.cancel_active_orders_by_tier_id(tier.id) == 1
        assert services.orders.cancel_active_orders_by_tier_id(tier.id) == 0

    def test_total_transactions(self, services, user, subscription):
        order = subscription.orders[0]
        services.orders.mark_as_paid(order, user)
        assert services.orders.get_total_transactions(order) == 1000

    def test_next_charge_date_for_new_subscription(self, services, subscription):
        subscription.next_period_start = datetime(2024, 1, 20, 10, 30, tzinfo=timezone.utc)
        services.subscriptions.update_next_charge_date(subscription, "new")
        # Started after the 15th: skip a month, charge on the 1st
        assert subscription.next_charge_date == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_next_charge_date_after_success(self, services, subscription):
        subscription.next_period_start = datetime(2024, 1, 10, tzinfo=timezone.utc)
        services.subscriptions.update_next_charge_date(subscription, "success")
        assert subscription.next_charge_date == datetime(2024, 2, 10, tzinfo=timezone.utc)
        assert subscription.charge_number == 1
        assert subscription.charge_retry_count == 0

    def test_next_charge_date_after_failures(self, services, subscription):
        now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
        services.subscriptions.update_next_charge_date(subscription, "failure", now)
        assert subscription.next_charge_date == datetime(2024, 6, 17, tzinfo=timezone.utc)
        assert subscription.charge_retry_count == 1

        subscription.charge_retry_count = 3
        services.subscriptions.update_next_charge_date(subscription, "failure", now)
        assert subscription.next_charge_date == datetime(2024, 6, 20, tzinfo=timezone.utc)

    def test_unknown_charge_status(self, services, subscription):
        with pytest.raises(InvariantError):
            services.subscriptions.update_next_charge_date(subscription, "refunded")
