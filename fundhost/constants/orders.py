"""Contribution constants."""

from enum import Enum


class OrderStatus(str, Enum):
    NEW = "NEW"
    REQUIRE_CLIENT_CONFIRMATION = "REQUIRE_CLIENT_CONFIRMATION"
    PAID = "PAID"
    ERROR = "ERROR"
    PROCESSING = "PROCESSING"
    REJECTED = "REJECTED"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    PLEDGED = "PLEDGED"
    IN_REVIEW = "IN_REVIEW"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"
    PENDING = "PENDING"


class ContributionInterval(str, Enum):
    """Billing interval of tiers, orders and subscriptions."""

    MONTH = "month"
    YEAR = "year"
    FLEXIBLE = "flexible"


# Orders in these states do not consume tier quantity
UNAVAILABLE_ORDER_STATUSES = (
    OrderStatus.ERROR,
    OrderStatus.CANCELLED,
    OrderStatus.EXPIRED,
    OrderStatus.REJECTED,
)
