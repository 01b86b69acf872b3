"""Conversation service: threads, their root comment and followers."""

import logging
from collections import Counter

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.models.collective import Collective
from fundhost.models.comment import Comment
from fundhost.models.conversation import Conversation, ConversationVisibility
from fundhost.models.conversation_follower import ConversationFollower
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for Conversation and ConversationFollower operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create_with_comment(
        self,
        user: User,
        collective: Collective,
        title: str,
        html: str,
        tags: list[str] | None = None,
        visibility: ConversationVisibility | str = ConversationVisibility.PUBLIC,
    ) -> Persisted[Conversation]:
        """Create a conversation and its root comment in a single transaction.

        The author automatically follows the conversation.

        Returns:
            Persisted conversation with a COLLECTIVE_CONVERSATION_CREATED event
        """
        host_collective_id = collective.host_collective_id if collective.approved_at else None
        try:
            conversation = Conversation(
                title=title,
                summary=html,
                tags=tags,
                visibility=visibility,
                collective_id=collective.id,
                from_collective_id=user.collective_id,
                host_collective_id=host_collective_id,
                created_by_user_id=user.id,
            )
            self.db.add(conversation)
            self.db.flush()

            comment = Comment(
                collective_id=collective.id,
                from_collective_id=user.collective_id,
                created_by_user_id=user.id,
                conversation_id=conversation.id,
                html=html,
            )
            self.db.add(comment)
            self.db.flush()

            conversation.root_comment_id = comment.id
            self.db.add(ConversationFollower(user_id=user.id, conversation_id=conversation.id))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Created conversation %s on collective %s", conversation.id, collective.id)
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_CONVERSATION_CREATED,
            collective_id=collective.id,
            from_collective_id=user.collective_id,
            host_collective_id=host_collective_id,
            user_id=user.id,
            data={
                "conversation": conversation.info,
                "collective": collective.activity,
                "from_collective": user.collective.minimal if user.collective else None,
            },
        )
        return Persisted(conversation, [event])

    def get_by_id(self, conversation_id: int) -> Conversation | None:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id, Conversation.not_deleted())
            .first()
        )

    def get_most_popular_tags_for_collective(
        self, collective_id: int, limit: int = 100
    ) -> list[dict]:
        """Tags used by the collective's conversations, most used first."""
        counter = Counter()
        rows = self.db.query(Conversation.tags).filter(
            Conversation.collective_id == collective_id,
            Conversation.tags.is_not(None),
            Conversation.not_deleted(),
        )
        for (tags,) in rows:
            counter.update(tags or [])
        return [{"id": tag, "tag": tag, "count": count} for tag, count in counter.most_common(limit)]

    def get_users_following(self, conversation_id: int) -> list[User]:
        followers = select(ConversationFollower.user_id).where(
            ConversationFollower.conversation_id == conversation_id,
            ConversationFollower.is_active.is_(True),
        )
        return (
            self.db.query(User)
            .filter(User.id.in_(followers), User.not_deleted())
            .order_by(User.id)
            .all()
        )

    def _find_follower(self, user_id: int, conversation_id: int) -> ConversationFollower | None:
        return (
            self.db.query(ConversationFollower)
            .filter(
                ConversationFollower.user_id == user_id,
                ConversationFollower.conversation_id == conversation_id,
            )
            .first()
        )

    def follow(self, user_id: int, conversation_id: int) -> Persisted[ConversationFollower]:
        """Subscribe the user to new comments; re-activates a previous unfollow."""
        follower = self._find_follower(user_id, conversation_id)
        if follower is not None:
            if follower.is_active:
                return Persisted(follower, created=False)
            follower.is_active = True
            self.db.commit()
            return Persisted(follower, created=False)

        follower = ConversationFollower(user_id=user_id, conversation_id=conversation_id)
        self.db.add(follower)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._find_follower(user_id, conversation_id)
            if existing is None:
                raise
            if not existing.is_active:
                existing.is_active = True
                self.db.commit()
            return Persisted(existing, created=False)
        logger.debug("User %s follows conversation %s", user_id, conversation_id)
        return Persisted(follower)

    def unfollow(self, user_id: int, conversation_id: int) -> ConversationFollower:
        """Stop notifications. The follower row is kept inactive so it is not re-added."""
        follower = self._find_follower(user_id, conversation_id)
        if follower is None:
            follower = ConversationFollower(
                user_id=user_id, conversation_id=conversation_id, is_active=False
            )
            self.db.add(follower)
        else:
            follower.is_active = False
        self.db.commit()
        return follower

    def is_following(self, user_id: int, conversation_id: int) -> bool:
        follower = self._find_follower(user_id, conversation_id)
        return follower is not None and follower.is_active


__all__ = ["ConversationService"]
