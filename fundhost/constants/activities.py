"""Activity types recorded in the audit trail."""

from enum import Enum


class ActivityType(str, Enum):
    COLLECTIVE_CREATED = "collective.created"
    COLLECTIVE_MEMBER_CREATED = "collective.member.created"
    COLLECTIVE_MEMBER_INVITED = "collective.member.invited"
    COLLECTIVE_CORE_MEMBER_INVITED = "collective.core.member.invited"
    COLLECTIVE_CORE_MEMBER_ADDED = "collective.core.member.added"
    COLLECTIVE_CORE_MEMBER_INVITATION_DECLINED = "collective.core.member.invitation.declined"
    COLLECTIVE_EXPENSE_CREATED = "collective.expense.created"
    COLLECTIVE_EXPENSE_APPROVED = "collective.expense.approved"
    COLLECTIVE_EXPENSE_REJECTED = "collective.expense.rejected"
    COLLECTIVE_EXPENSE_PROCESSING = "collective.expense.processing"
    COLLECTIVE_EXPENSE_ERROR = "collective.expense.error"
    COLLECTIVE_EXPENSE_PAID = "collective.expense.paid"
    COLLECTIVE_EXPENSE_DELETED = "collective.expense.deleted"
    COLLECTIVE_EXPENSE_RECURRING_DRAFTED = "collective.expense.recurring.drafted"
    COLLECTIVE_COMMENT_CREATED = "collective.comment.created"
    COLLECTIVE_CONVERSATION_CREATED = "collective.conversation.created"
    COLLECTIVE_UPDATE_PUBLISHED = "collective.update.published"
    ORDER_PROCESSED = "order.processed"
    SUBSCRIPTION_CANCELED = "subscription.canceled"
    TAXFORM_REQUEST = "taxform.request"
    TAXFORM_REQUEST_REMINDER = "taxform.request.reminder"
    TAXFORM_RECEIVED = "taxform.received"
    VIRTUAL_CARD_DELETED = "virtual_card.deleted"
