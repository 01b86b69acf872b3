"""Collective service: accounts and their admins."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.constants.collectives import CollectiveType
from fundhost.constants.roles import MemberRole
from fundhost.errors import NotFoundError
from fundhost.lib.slugs import slugify, suggest_unique_slug
from fundhost.models.collective import Collective
from fundhost.models.member import Member
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.member_service import MemberService

logger = logging.getLogger(__name__)


class CollectiveService:
    """Service for Collective CRUD and membership helpers."""

    def __init__(self, db_session: Session, members: MemberService):
        """Initialize with database session and member service."""
        self.db = db_session
        self.members = members

    def generate_slug(self, value: str | None) -> str:
        """Slugify ``value`` and suffix it with a counter until it is free."""
        base = slugify(value) or "collective"
        taken = [
            slug
            for (slug,) in self.db.query(Collective.slug).filter(Collective.slug.like(f"{base}%"))
        ]
        return suggest_unique_slug(base, taken)

    def create(
        self,
        type: CollectiveType | str,
        name: str,
        slug: str | None = None,
        created_by_user_id: int | None = None,
        commit: bool = True,
        **fields,
    ) -> Persisted[Collective]:
        """Create a collective with a unique slug.

        Args:
            type: Collective type
            name: Display name
            slug: Preferred slug (defaults to the name); suffixed when taken
            created_by_user_id: User creating the account (for the activity)
            commit: Commit the session (False to compose in a larger transaction)
            **fields: Other Collective columns (currency, tags, host_collective_id ...)

        Returns:
            Persisted collective with a COLLECTIVE_CREATED event
        """
        collective = Collective(
            type=type, name=name, slug=self.generate_slug(slug or name), **fields
        )
        self.db.add(collective)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created collective %s (%s)", collective.slug, collective.type.value)
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_CREATED,
            collective_id=collective.id,
            user_id=created_by_user_id,
            data={"collective": collective.activity},
        )
        return Persisted(collective, [event])

    def get_by_id(self, collective_id: int) -> Collective | None:
        return (
            self.db.query(Collective)
            .filter(Collective.id == collective_id, Collective.not_deleted())
            .first()
        )

    def get_by_id_or_raise(self, collective_id: int) -> Collective:
        collective = self.get_by_id(collective_id)
        if collective is None:
            raise NotFoundError(f"Collective #{collective_id} not found")
        return collective

    def get_by_slug(self, slug: str) -> Collective | None:
        return (
            self.db.query(Collective)
            .filter(Collective.slug == slug.lower(), Collective.not_deleted())
            .first()
        )

    def get_host_collective(self, collective: Collective) -> Collective | None:
        """The host of ``collective``; a host account is its own host."""
        if collective.host_collective_id:
            return self.get_by_id(collective.host_collective_id)
        if collective.is_host_account:
            return collective
        return None

    def add_user_with_role(
        self,
        collective: Collective,
        user: User,
        role: MemberRole | str,
        created_by_user_id: int | None = None,
        tier_id: int | None = None,
        description: str | None = None,
    ) -> Persisted[Member]:
        """Make ``user``'s profile a member of ``collective`` (idempotent)."""
        return self.members.find_or_create(
            collective_id=collective.id,
            member_collective_id=user.collective_id,
            role=role,
            tier_id=tier_id,
            created_by_user_id=created_by_user_id or user.id,
            description=description,
        )

    def get_admin_users(self, collective_id: int) -> list[User]:
        admin_profiles = select(Member.member_collective_id).where(
            Member.collective_id == collective_id,
            Member.role == MemberRole.ADMIN,
            Member.not_deleted(),
        )
        return (
            self.db.query(User)
            .filter(User.collective_id.in_(admin_profiles), User.not_deleted())
            .order_by(User.id)
            .all()
        )

    def soft_delete(self, collective: Collective) -> Collective:
        collective.soft_delete()
        self.db.commit()
        logger.info("Soft-deleted collective %s", collective.id)
        return collective


__all__ = ["CollectiveService"]
