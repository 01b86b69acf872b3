"""Expense statuses and types."""

from enum import Enum


class ExpenseStatus(str, Enum):
    """Lifecycle states of an expense."""

    DRAFT = "DRAFT"
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    INCOMPLETE = "INCOMPLETE"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSING = "PROCESSING"
    ERROR = "ERROR"
    PAID = "PAID"
    SCHEDULED_FOR_PAYMENT = "SCHEDULED_FOR_PAYMENT"
    SPAM = "SPAM"
    CANCELED = "CANCELED"


class ExpenseType(str, Enum):
    """What kind of claim an expense is."""

    INVOICE = "INVOICE"
    RECEIPT = "RECEIPT"
    FUNDING_REQUEST = "FUNDING_REQUEST"
    GRANT = "GRANT"
    UNCLASSIFIED = "UNCLASSIFIED"
    CHARGE = "CHARGE"
    SETTLEMENT = "SETTLEMENT"


class ExpenseFeesPayer(str, Enum):
    """Who pays the payment processor fees."""

    COLLECTIVE = "COLLECTIVE"
    PAYEE = "PAYEE"


class LegacyPayoutMethod(str, Enum):
    """Payout method names used before payout methods were stored as rows."""

    PAYPAL = "paypal"
    MANUAL = "manual"
    DONATION = "donation"
    OTHER = "other"


# Expenses in these states are not counted in tag statistics
HIDDEN_EXPENSE_STATUSES = (ExpenseStatus.SPAM, ExpenseStatus.DRAFT, ExpenseStatus.UNVERIFIED)
