"""Comment service: comments on expenses, updates and conversations."""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.models.collective import Collective
from fundhost.models.comment import Comment, CommentType
from fundhost.models.conversation import Conversation
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted

logger = logging.getLogger(__name__)


class CommentService:
    """Service for Comment operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create(
        self,
        user: User,
        collective: Collective,
        html: str,
        expense_id: int | None = None,
        update_id: int | None = None,
        conversation_id: int | None = None,
        type: CommentType | str = CommentType.COMMENT,
        commit: bool = True,
    ) -> Persisted[Comment]:
        """Create a comment authored by ``user``'s profile.

        Raises:
            InvariantError: the comment is not linked to an expense, update or conversation
        """
        comment = Comment(
            collective_id=collective.id,
            from_collective_id=user.collective_id,
            created_by_user_id=user.id,
            expense_id=expense_id,
            update_id=update_id,
            conversation_id=conversation_id,
            html=html,
            type=type,
        )
        comment.check_link()
        self.db.add(comment)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created comment %s on collective %s", comment.id, collective.id)

        event = DomainEvent(
            type=ActivityType.COLLECTIVE_COMMENT_CREATED,
            collective_id=collective.id,
            from_collective_id=user.collective_id,
            host_collective_id=collective.host_collective_id if collective.approved_at else None,
            user_id=user.id,
            expense_id=expense_id,
            data={
                "comment": comment.activity,
                "collective": collective.activity,
                "from_collective": user.collective.minimal if user.collective else None,
            },
        )
        return Persisted(comment, [event])

    def get_by_id(self, comment_id: int) -> Comment | None:
        return (
            self.db.query(Comment)
            .filter(Comment.id == comment_id, Comment.not_deleted())
            .first()
        )

    def _root_conversation(self, comment: Comment) -> Conversation | None:
        return (
            self.db.query(Conversation)
            .filter(Conversation.root_comment_id == comment.id, Conversation.not_deleted())
            .first()
        )

    def edit(self, comment: Comment, html: str) -> Comment:
        """Replace the comment body; a root comment also refreshes its conversation summary."""
        comment.html = html
        conversation = self._root_conversation(comment)
        if conversation is not None:
            conversation.summary = comment.html
        self.db.commit()
        return comment

    def delete(self, comment: Comment) -> Comment:
        """Soft-delete the comment. Deleting a root comment deletes the whole conversation."""
        now = utcnow()
        conversation = self._root_conversation(comment)
        comment.soft_delete(now)
        if conversation is not None:
            conversation.soft_delete(now)
            self.db.execute(
                update(Comment)
                .where(
                    Comment.conversation_id == conversation.id,
                    Comment.id != comment.id,
                    Comment.not_deleted(),
                )
                .values(deleted_at=now)
                .execution_options(synchronize_session=False)
            )
            logger.info("Deleted conversation %s with its root comment", conversation.id)
        self.db.commit()
        self.db.expire_all()
        return comment

    def list_for_expense(self, expense_id: int) -> list[Comment]:
        return (
            self.db.query(Comment)
            .filter(Comment.expense_id == expense_id, Comment.not_deleted())
            .order_by(Comment.created_at, Comment.id)
            .all()
        )

    def list_for_update(self, update_id: int) -> list[Comment]:
        return (
            self.db.query(Comment)
            .filter(Comment.update_id == update_id, Comment.not_deleted())
            .order_by(Comment.created_at, Comment.id)
            .all()
        )

    def list_for_conversation(self, conversation_id: int) -> list[Comment]:
        return (
            self.db.query(Comment)
            .filter(Comment.conversation_id == conversation_id, Comment.not_deleted())
            .order_by(Comment.created_at, Comment.id)
            .all()
        )


__all__ = ["CommentService"]
