"""Update service: drafting, publishing and scheduling collective news."""

import logging
from datetime import date

from sqlalchemy import update as sql_update
from sqlalchemy.orm import Session

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.roles import MemberRole
from fundhost.errors import InvariantError, NotFoundError
from fundhost.lib.slugs import slugify, suggest_unique_slug
from fundhost.models.collective import Collective
from fundhost.models.comment import Comment
from fundhost.models.types import utcnow
from fundhost.models.update import NotificationAudience, Update
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.tier_service import TierService

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "tier_id",
    "title",
    "html",
    "tags",
    "is_private",
    "is_changelog",
    "make_public_on",
)

PRIVATE_UPDATE_TARGET_ROLES = (
    MemberRole.ADMIN,
    MemberRole.MEMBER,
    MemberRole.CONTRIBUTOR,
    MemberRole.BACKER,
    MemberRole.ATTENDEE,
)
PUBLIC_UPDATE_TARGET_ROLES = (*PRIVATE_UPDATE_TARGET_ROLES, MemberRole.FOLLOWER)


class UpdateService:
    """Service for Update operations."""

    def __init__(self, db_session: Session, tiers: TierService):
        """Initialize with database session and tier service."""
        self.db = db_session
        self.tiers = tiers

    def _generate_slug(self, update: Update) -> str:
        base = slugify(update.title) or "update"
        query = self.db.query(Update.slug).filter(
            Update.collective_id == update.collective_id, Update.slug.like(f"{base}%")
        )
        if update.id is not None:
            query = query.filter(Update.id != update.id)
        taken = [slug for (slug,) in query]
        return suggest_unique_slug(base, taken)

    def _check_tier(self, collective_id: int, tier_id: int | None) -> None:
        if tier_id is None:
            return
        tier = self.tiers.get_by_id(tier_id)
        if tier is None:
            raise NotFoundError("Tier not found")
        if tier.collective_id != collective_id:
            raise InvariantError(
                "Cannot link this update to a Tier that doesn't belong to this collective"
            )

    def create(
        self,
        user: User,
        collective: Collective,
        title: str,
        html: str | None = None,
        tier_id: int | None = None,
        from_collective_id: int | None = None,
        commit: bool = True,
        **fields,
    ) -> Update:
        """Create a draft update with a slug unique within the collective."""
        self._check_tier(collective.id, tier_id)
        update = Update(
            collective_id=collective.id,
            from_collective_id=from_collective_id or user.collective_id,
            created_by_user_id=user.id,
            title=title,
            html=html,
            tier_id=tier_id,
            **fields,
        )
        update.slug = self._generate_slug(update)
        self.db.add(update)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created update %s (%s) on collective %s", update.id, update.slug, collective.id)
        return update

    def get_by_id(self, update_id: int) -> Update | None:
        return (
            self.db.query(Update)
            .filter(Update.id == update_id, Update.not_deleted())
            .first()
        )

    def get_by_slug(self, collective_id: int, slug: str) -> Update | None:
        return (
            self.db.query(Update)
            .filter(
                Update.collective_id == collective_id,
                Update.slug == slug,
                Update.not_deleted(),
            )
            .first()
        )

    def edit(self, update: Update, user: User, **changes) -> Update:
        """Apply the editable fields of ``changes``; anything else is ignored.

        The slug follows the title until the update is published.
        """
        values = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        if "tier_id" in values:
            self._check_tier(update.collective_id, values["tier_id"])
        for key, value in values.items():
            setattr(update, key, value)
        if not update.is_published and "title" in values:
            update.slug = self._generate_slug(update)
        update.last_edited_by_user_id = user.id
        self.db.commit()
        return update

    def publish(
        self,
        update: Update,
        user: User,
        notification_audience: NotificationAudience | str | None = None,
    ) -> Persisted[Update]:
        """Stamp published_at and emit COLLECTIVE_UPDATE_PUBLISHED with the public URL."""
        collective = self.db.get(Collective, update.collective_id)
        from_collective = self.db.get(Collective, update.from_collective_id)
        update.published_at = utcnow()
        update.notification_audience = notification_audience or update.notification_audience
        update.last_edited_by_user_id = user.id
        self.db.commit()
        logger.info("Published update %s of collective %s", update.id, collective.id)

        url = f"{get_settings().website_url.rstrip('/')}/{collective.slug}/updates/{update.slug}"
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_UPDATE_PUBLISHED,
            collective_id=update.collective_id,
            from_collective_id=update.from_collective_id,
            host_collective_id=collective.host_collective_id if collective.approved_at else None,
            user_id=user.id,
            data={
                "from_collective": from_collective.activity if from_collective else None,
                "collective": collective.activity,
                "update": update.activity,
                "url": url,
            },
        )
        return Persisted(update, [event], created=False)

    def unpublish(self, update: Update, user: User) -> Update:
        update.published_at = None
        update.last_edited_by_user_id = user.id
        self.db.commit()
        logger.info("Unpublished update %s", update.id)
        return update

    def delete(self, update: Update, user: User | None = None) -> Update:
        """Soft-delete the update and its comments, freeing its slug."""
        now = utcnow()
        self.db.execute(
            sql_update(Comment)
            .where(Comment.update_id == update.id, Comment.not_deleted())
            .values(deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        update.slug = f"{update.slug}-{int(now.timestamp() * 1000)}"
        if user is not None:
            update.last_edited_by_user_id = user.id
        update.soft_delete(now)
        self.db.commit()
        self.db.expire_all()
        logger.info("Deleted update %s", update.id)
        return update

    def make_updates_public(self, today: date | None = None) -> int:
        """Make private updates whose make_public_on date has come public.

        Returns:
            Number of updates changed
        """
        today = today or utcnow().date()
        result = self.db.execute(
            sql_update(Update)
            .where(
                Update.is_private.is_(True),
                Update.make_public_on.is_not(None),
                Update.make_public_on <= today,
                Update.not_deleted(),
            )
            .values(is_private=False)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.expire_all()
        if result.rowcount:
            logger.info("Made %s updates public", result.rowcount)
        return result.rowcount

    @staticmethod
    def get_target_member_roles(
        update: Update, audience: NotificationAudience | str | None = None
    ) -> list[MemberRole]:
        """Member roles to notify when ``update`` is published.

        Admins are notified separately, so COLLECTIVE_ADMINS targets no member role.
        """
        audience = NotificationAudience(audience) if audience else update.notification_audience
        if audience == NotificationAudience.COLLECTIVE_ADMINS:
            return []
        if update.is_private:
            return list(PRIVATE_UPDATE_TARGET_ROLES)
        return list(PUBLIC_UPDATE_TARGET_ROLES)


__all__ = [
    "UpdateService",
    "EDITABLE_FIELDS",
    "PRIVATE_UPDATE_TARGET_ROLES",
    "PUBLIC_UPDATE_TARGET_ROLES",
]
