"""Order service: contributions, their members and their ledger entries."""

import logging

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.orders import ContributionInterval, OrderStatus
from fundhost.constants.roles import MemberRole
from fundhost.constants.transactions import TransactionKind, TransactionType
from fundhost.errors import ConfigError, InvariantError
from fundhost.models.collective import Collective
from fundhost.models.member import Member
from fundhost.models.order import Order
from fundhost.models.tier import Tier, TierType
from fundhost.models.transaction import Transaction
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.services.collective_service import CollectiveService
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.member_service import MemberService
from fundhost.services.tier_service import TierService
from fundhost.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

# Orders in these states are never cancelled in bulk
FINAL_ORDER_STATUSES = (
    OrderStatus.PAID,
    OrderStatus.CANCELLED,
    OrderStatus.REJECTED,
    OrderStatus.EXPIRED,
)


class OrderService:
    """Service for Order operations."""

    def __init__(
        self,
        db_session: Session,
        collectives: CollectiveService,
        members: MemberService,
        tiers: TierService,
        transactions: TransactionService,
    ):
        """Initialize with database session and dependent services."""
        self.db = db_session
        self.collectives = collectives
        self.members = members
        self.tiers = tiers
        self.transactions = transactions

    @staticmethod
    def generate_description(
        collective: Collective,
        amount: int | None,
        interval: ContributionInterval | str | None,
        tier: Tier | None = None,
    ) -> str:
        tier_name_info = f" ({tier.name})" if tier is not None and tier.name else ""
        if interval:
            interval = ContributionInterval(interval).value
            return f"{interval.capitalize()}ly financial contribution to {collective.name}{tier_name_info}"
        is_registration = tier is not None and tier.type == TierType.TICKET
        prefix = "Registration" if is_registration else "Financial contribution"
        return f"{prefix} to {collective.name}{tier_name_info}"

    def create(
        self,
        user: User,
        from_collective: Collective,
        collective: Collective,
        total_amount: int,
        currency: str | None = None,
        tier: Tier | None = None,
        quantity: int = 1,
        platform_tip_amount: int | None = None,
        tax_amount: int | None = None,
        interval: ContributionInterval | str | None = None,
        description: str | None = None,
        commit: bool = True,
        **fields,
    ) -> Order:
        """Create a NEW order.

        Raises:
            InvariantError: if taxes and platform tip exceed the total, or the
                tier has not enough quantity left
        """
        if (tax_amount or 0) + (platform_tip_amount or 0) > total_amount:
            raise InvariantError(
                "Order taxes and platform tip cannot be greater than the total amount"
            )
        if tier is not None and not self.tiers.check_available_quantity(tier, quantity):
            raise InvariantError(f"No more quantity available for tier {tier.name}")

        order = Order(
            created_by_user_id=user.id,
            from_collective_id=from_collective.id,
            collective_id=collective.id,
            tier_id=tier.id if tier else None,
            quantity=quantity,
            currency=currency or collective.currency,
            total_amount=total_amount,
            platform_tip_amount=platform_tip_amount,
            tax_amount=tax_amount,
            interval=interval,
            description=description
            or self.generate_description(collective, total_amount, interval, tier),
            **fields,
        )
        self.db.add(order)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created order %s for collective %s", order.id, collective.id)
        return order

    def get_by_id(self, order_id: int) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id, Order.not_deleted()).first()

    def _cancel_active(self, *criteria) -> int:
        result = self.db.execute(
            update(Order)
            .where(
                *criteria,
                Order.subscription_id.isnot(None),
                Order.status.notin_(FINAL_ORDER_STATUSES),
                Order.not_deleted(),
            )
            .values(status=OrderStatus.CANCELLED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.expire_all()
        return result.rowcount

    def cancel_active_orders_by_tier_id(self, tier_id: int) -> int:
        """Cancel every recurring order of the tier that is still running."""
        count = self._cancel_active(Order.tier_id == tier_id)
        logger.info("Cancelled %d active orders of tier %s", count, tier_id)
        return count

    def cancel_active_orders_by_collective(self, collective_ids: int | list[int]) -> int:
        """Cancel every running recurring order made by the given collectives."""
        if isinstance(collective_ids, int):
            collective_ids = [collective_ids]
        count = self._cancel_active(Order.from_collective_id.in_(collective_ids))
        logger.info("Cancelled %d active orders from collectives %s", count, collective_ids)
        return count

    def mark_as_expired(self, order: Order) -> Order:
        order.status = OrderStatus.EXPIRED
        self.db.commit()
        return order

    def get_or_create_members(self, order: Order) -> tuple[Member, Member | None]:
        """Register the contributor as BACKER (ATTENDEE for tickets) of the collective.

        When a platform tip was given, the contributor also becomes a BACKER of
        the platform account.
        """
        tier = order.tier
        role = MemberRole.ATTENDEE if tier is not None and tier.type == TierType.TICKET else MemberRole.BACKER
        member = self.members.find_or_create(
            collective_id=order.collective_id,
            member_collective_id=order.from_collective_id,
            role=role,
            tier_id=order.tier_id,
            created_by_user_id=order.created_by_user_id,
        ).entity

        platform_member = None
        if order.platform_tip_amount:
            platform = self.collectives.get_by_id(get_settings().platform_collective_id)
            if platform is not None:
                platform_member = self.members.find_or_create(
                    collective_id=platform.id,
                    member_collective_id=order.from_collective_id,
                    role=MemberRole.BACKER,
                    created_by_user_id=order.created_by_user_id,
                ).entity
            else:
                logger.warning("Platform collective not found, skipping platform tip member")
        return member, platform_member

    def mark_as_paid(self, order: Order, user: User | None = None) -> Persisted[Order]:
        """Record a manual payment: ledger entries, members and ORDER_PROCESSED."""
        if order.processed_at is not None or order.status == OrderStatus.PAID:
            processed_at = order.processed_at.isoformat() if order.processed_at else "an unknown date"
            raise InvariantError(
                f"This order (#{order.id}) has already been processed at {processed_at}"
            )
        collective = self.collectives.get_by_id_or_raise(order.collective_id)
        now = utcnow()
        tip = order.platform_tip_amount or 0

        platform = None
        if tip:
            platform_id = get_settings().platform_collective_id
            platform = self.collectives.get_by_id(platform_id)
            if platform is None:
                raise ConfigError(
                    f"Platform collective #{platform_id} not found, cannot record the platform tip"
                )

        credit, _ = self.transactions.create_double_entry(
            type=TransactionType.CREDIT,
            kind=TransactionKind.CONTRIBUTION,
            amount=order.total_amount - tip,
            currency=order.currency,
            collective_id=order.collective_id,
            from_collective_id=order.from_collective_id,
            host_collective_id=collective.host_collective_id,
            created_by_user_id=user.id if user else order.created_by_user_id,
            order_id=order.id,
            description=order.description,
            cleared_at=now,
            commit=False,
        )
        if platform is not None:
            self.transactions.create_double_entry(
                type=TransactionType.CREDIT,
                kind=TransactionKind.PLATFORM_TIP,
                amount=tip,
                currency=order.currency,
                collective_id=platform.id,
                from_collective_id=order.from_collective_id,
                transaction_group=credit.transaction_group,
                created_by_user_id=user.id if user else order.created_by_user_id,
                order_id=order.id,
                description="Financial contribution to the platform",
                cleared_at=now,
                commit=False,
            )

        order.status = OrderStatus.PAID
        order.processed_at = now
        self.db.commit()
        self.get_or_create_members(order)
        logger.info("Order %s marked as paid", order.id)

        event = DomainEvent(
            type=ActivityType.ORDER_PROCESSED,
            collective_id=order.collective_id,
            from_collective_id=order.from_collective_id,
            host_collective_id=collective.host_collective_id,
            user_id=user.id if user else None,
            transaction_id=credit.id,
            data={"order": order.info, "collective": collective.minimal},
        )
        return Persisted(order, [event])

    def get_total_transactions(self, order: Order) -> int:
        """Total credited for the order; the order total for one-time orders."""
        if not order.subscription_id:
            return order.total_amount
        return (
            self.db.query(func.coalesce(func.sum(Transaction.amount), 0))
            .filter(
                Transaction.order_id == order.id,
                Transaction.type == TransactionType.CREDIT,
                Transaction.not_deleted(),
            )
            .scalar()
        )


__all__ = ["OrderService", "FINAL_ORDER_STATUSES"]
