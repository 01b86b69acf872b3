"""Emoji reaction service."""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundhost.errors import InvariantError
from fundhost.models.emoji_reaction import EmojiReaction
from fundhost.models.user import User
from fundhost.services.events import Persisted

logger = logging.getLogger(__name__)


class EmojiReactionService:
    """Service for EmojiReaction operations.

    Adding the same reaction twice returns the existing row instead of failing.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def _find(self, **criteria) -> EmojiReaction | None:
        return self.db.query(EmojiReaction).filter_by(**criteria).first()

    def _add_reaction(self, **fields) -> Persisted[EmojiReaction]:
        existing = self._find(**fields)
        if existing is not None:
            return Persisted(existing, created=False)

        reaction = EmojiReaction(**fields)
        self.db.add(reaction)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._find(**fields)
            if existing is None:
                raise
            return Persisted(existing, created=False)
        logger.debug("Added reaction %s", reaction.id)
        return Persisted(reaction)

    def add_reaction_on_comment(
        self, user: User, comment_id: int, emoji: str, from_collective_id: int | None = None
    ) -> Persisted[EmojiReaction]:
        return self._add_reaction(
            user_id=user.id,
            from_collective_id=from_collective_id or user.collective_id,
            comment_id=comment_id,
            emoji=emoji,
        )

    def add_reaction_on_update(
        self, user: User, update_id: int, emoji: str, from_collective_id: int | None = None
    ) -> Persisted[EmojiReaction]:
        return self._add_reaction(
            user_id=user.id,
            from_collective_id=from_collective_id or user.collective_id,
            update_id=update_id,
            emoji=emoji,
        )

    def remove_reaction(
        self,
        user: User,
        emoji: str,
        comment_id: int | None = None,
        update_id: int | None = None,
        from_collective_id: int | None = None,
    ) -> bool:
        """Delete the reaction. Returns False when there was nothing to remove."""
        if comment_id is None and update_id is None:
            raise InvariantError("A reaction is either on a comment or on an update")
        criteria = {
            "user_id": user.id,
            "from_collective_id": from_collective_id or user.collective_id,
            "emoji": emoji,
        }
        if comment_id is not None:
            criteria["comment_id"] = comment_id
        else:
            criteria["update_id"] = update_id
        reaction = self._find(**criteria)
        if reaction is None:
            return False
        self.db.delete(reaction)
        self.db.commit()
        return True

    def get_counts(
        self, comment_id: int | None = None, update_id: int | None = None
    ) -> dict[str, int]:
        """Number of reactions per emoji on a comment or an update."""
        if comment_id is not None:
            criterion = EmojiReaction.comment_id == comment_id
        elif update_id is not None:
            criterion = EmojiReaction.update_id == update_id
        else:
            raise InvariantError("A reaction is either on a comment or on an update")
        rows = (
            self.db.query(EmojiReaction.emoji, func.count(EmojiReaction.id))
            .filter(criterion)
            .group_by(EmojiReaction.emoji)
        )
        return {emoji: count for emoji, count in rows}


__all__ = ["EmojiReactionService"]
