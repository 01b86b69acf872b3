"""SQLAlchemy base model, shared mixins and model exports."""

from datetime import datetime

from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from fundhost.models.types import UTCDateTime, utcnow

# Base class for all models
Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


class BaseModel(TimestampMixin):
    """Base model with surrogate id and timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)


class ParanoidMixin:
    """Soft delete: rows are stamped with deleted_at instead of being removed."""

    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, when: datetime | None = None) -> None:
        if self.deleted_at is None:
            self.deleted_at = when or utcnow()

    @classmethod
    def not_deleted(cls):
        """Filter criterion excluding soft-deleted rows."""
        return cls.deleted_at.is_(None)


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from fundhost.models.activity import Activity  # noqa: E402
from fundhost.models.application import Application, ApplicationType  # noqa: E402
from fundhost.models.collective import Collective  # noqa: E402
from fundhost.models.comment import Comment, CommentType  # noqa: E402
from fundhost.models.connected_account import ConnectedAccount, ConnectedAccountProvider  # noqa: E402
from fundhost.models.conversation import Conversation, ConversationVisibility  # noqa: E402
from fundhost.models.conversation_follower import ConversationFollower  # noqa: E402
from fundhost.models.emoji_reaction import ALLOWED_EMOJIS, CommentReaction, EmojiReaction  # noqa: E402
from fundhost.models.expense import Expense  # noqa: E402
from fundhost.models.expense_attached_file import ExpenseAttachedFile  # noqa: E402
from fundhost.models.expense_item import ExpenseItem  # noqa: E402
from fundhost.models.legal_document import (  # noqa: E402
    LegalDocument,
    LegalDocumentRequestStatus,
    LegalDocumentFormService,
    LegalDocumentType,
)
from fundhost.models.member import Member  # noqa: E402
from fundhost.models.member_invitation import MemberInvitation  # noqa: E402
from fundhost.models.oauth_authorization_code import OAuthAuthorizationCode  # noqa: E402
from fundhost.models.order import Order  # noqa: E402
from fundhost.models.payout_method import PayoutMethod, PayoutMethodType  # noqa: E402
from fundhost.models.personal_token import PersonalToken  # noqa: E402
from fundhost.models.recurring_expense import RecurringExpense, RecurringExpenseInterval  # noqa: E402
from fundhost.models.required_legal_document import RequiredLegalDocument  # noqa: E402
from fundhost.models.social_link import SocialLink, SocialLinkType  # noqa: E402
from fundhost.models.subscription import Subscription  # noqa: E402
from fundhost.models.tier import Tier, TierAmountType, TierType  # noqa: E402
from fundhost.models.transaction import Transaction  # noqa: E402
from fundhost.models.transaction_settlement import TransactionSettlement  # noqa: E402
from fundhost.models.transactions_import import TransactionsImport, TransactionsImportType  # noqa: E402
from fundhost.models.transactions_import_row import (  # noqa: E402
    TransactionsImportRow,
    TransactionsImportRowStatus,
)
from fundhost.models.update import NotificationAudience, Update  # noqa: E402
from fundhost.models.user import User  # noqa: E402
from fundhost.models.user_token import UserToken, UserTokenType  # noqa: E402
from fundhost.models.virtual_card import VirtualCard, VirtualCardProviderName  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "ParanoidMixin",
    "Activity",
    "Application",
    "ApplicationType",
    "Collective",
    "Comment",
    "CommentType",
    "CommentReaction",
    "ConnectedAccount",
    "ConnectedAccountProvider",
    "Conversation",
    "ConversationVisibility",
    "ConversationFollower",
    "ALLOWED_EMOJIS",
    "EmojiReaction",
    "Expense",
    "ExpenseAttachedFile",
    "ExpenseItem",
    "LegalDocument",
    "LegalDocumentRequestStatus",
    "LegalDocumentFormService",
    "LegalDocumentType",
    "Member",
    "MemberInvitation",
    "OAuthAuthorizationCode",
    "Order",
    "PayoutMethod",
    "PayoutMethodType",
    "PersonalToken",
    "RecurringExpense",
    "RecurringExpenseInterval",
    "RequiredLegalDocument",
    "SocialLink",
    "SocialLinkType",
    "Subscription",
    "Tier",
    "TierAmountType",
    "TierType",
    "Transaction",
    "TransactionSettlement",
    "TransactionsImport",
    "TransactionsImportType",
    "TransactionsImportRow",
    "TransactionsImportRowStatus",
    "NotificationAudience",
    "Update",
    "User",
    "UserToken",
    "UserTokenType",
    "VirtualCard",
    "VirtualCardProviderName",
]
