"""Ledger constants."""

from enum import Enum


class TransactionType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionKind(str, Enum):
    """Business meaning of a ledger row."""

    CONTRIBUTION = "CONTRIBUTION"
    EXPENSE = "EXPENSE"
    ADDED_FUNDS = "ADDED_FUNDS"
    PLATFORM_TIP = "PLATFORM_TIP"
    PLATFORM_TIP_DEBT = "PLATFORM_TIP_DEBT"
    HOST_FEE = "HOST_FEE"
    HOST_FEE_SHARE = "HOST_FEE_SHARE"
    HOST_FEE_SHARE_DEBT = "HOST_FEE_SHARE_DEBT"
    PAYMENT_PROCESSOR_FEE = "PAYMENT_PROCESSOR_FEE"
    BALANCE_TRANSFER = "BALANCE_TRANSFER"
    PREPAID_PAYMENT_METHOD = "PREPAID_PAYMENT_METHOD"


class SettlementStatus(str, Enum):
    """Status of a platform debt between a host and the platform."""

    OWED = "OWED"
    INVOICED = "INVOICED"
    SETTLED = "SETTLED"


# Kinds that represent a debt a host owes to the platform
DEBT_KINDS = (TransactionKind.PLATFORM_TIP_DEBT, TransactionKind.HOST_FEE_SHARE_DEBT)
