"""Wiring of every service around one database session."""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from fundhost.services.activity_service import ActivityService
from fundhost.services.collective_service import CollectiveService
from fundhost.services.comment_service import CommentService
from fundhost.services.connected_account_service import ConnectedAccountService
from fundhost.services.conversation_service import ConversationService
from fundhost.services.emoji_reaction_service import EmojiReactionService
from fundhost.services.expense_service import ExpenseService
from fundhost.services.gateways import PaypalGateway, VirtualCardProvider
from fundhost.services.legal_document_service import LegalDocumentService
from fundhost.services.member_invitation_service import MemberInvitationService
from fundhost.services.member_service import MemberService
from fundhost.services.oauth_service import OAuthService
from fundhost.services.order_service import OrderService
from fundhost.services.payout_method_service import PayoutMethodService
from fundhost.services.recurring_expense_service import RecurringExpenseService
from fundhost.services.social_link_service import SocialLinkService
from fundhost.services.subscription_service import SubscriptionService
from fundhost.services.tier_service import TierService
from fundhost.services.transaction_service import TransactionService
from fundhost.services.transaction_settlement_service import TransactionSettlementService
from fundhost.services.transactions_import_service import TransactionsImportService
from fundhost.services.update_service import UpdateService
from fundhost.services.user_service import UserService
from fundhost.services.virtual_card_service import VirtualCardService


@dataclass
class ServiceContainer:
    db: Session
    activities: ActivityService
    members: MemberService
    collectives: CollectiveService
    users: UserService
    invitations: MemberInvitationService
    transactions: TransactionService
    settlements: TransactionSettlementService
    payout_methods: PayoutMethodService
    imports: TransactionsImportService
    legal_documents: LegalDocumentService
    expenses: ExpenseService
    recurring_expenses: RecurringExpenseService
    tiers: TierService
    orders: OrderService
    subscriptions: SubscriptionService
    connected_accounts: ConnectedAccountService
    virtual_cards: VirtualCardService
    oauth: OAuthService
    comments: CommentService
    conversations: ConversationService
    updates: UpdateService
    emoji_reactions: EmojiReactionService
    social_links: SocialLinkService


def build_services(
    db: Session,
    paypal: PaypalGateway | None = None,
    card_provider: VirtualCardProvider | None = None,
) -> ServiceContainer:
    """Build every service once for ``db``.

    Args:
        db: Session shared by all services
        paypal: Gateway used to cancel PayPal-managed subscriptions
        card_provider: Provider used to pause, resume and delete Stripe cards
    """
    members = MemberService(db)
    collectives = CollectiveService(db, members)
    transactions = TransactionService(db)
    settlements = TransactionSettlementService(db, transactions)
    legal_documents = LegalDocumentService(db)
    imports = TransactionsImportService(db)
    expenses = ExpenseService(db, collectives, members, settlements, legal_documents, imports)
    tiers = TierService(db)

    return ServiceContainer(
        db=db,
        activities=ActivityService(db),
        members=members,
        collectives=collectives,
        users=UserService(db, collectives),
        invitations=MemberInvitationService(db, collectives, members),
        transactions=transactions,
        settlements=settlements,
        payout_methods=PayoutMethodService(db),
        imports=imports,
        legal_documents=legal_documents,
        expenses=expenses,
        recurring_expenses=RecurringExpenseService(db, expenses),
        tiers=tiers,
        orders=OrderService(db, collectives, members, tiers, transactions),
        subscriptions=SubscriptionService(db, paypal),
        connected_accounts=ConnectedAccountService(db),
        virtual_cards=VirtualCardService(db, expenses, card_provider),
        oauth=OAuthService(db),
        comments=CommentService(db),
        conversations=ConversationService(db),
        updates=UpdateService(db, tiers),
        emoji_reactions=EmojiReactionService(db),
        social_links=SocialLinkService(db),
    )


__all__ = ["ServiceContainer", "build_services"]
