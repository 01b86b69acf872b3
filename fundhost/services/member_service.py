"""Member service: memberships between collectives."""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.constants.collectives import CollectiveType
from fundhost.constants.orders import ContributionInterval
from fundhost.constants.roles import MemberRole
from fundhost.errors import InvariantError
from fundhost.models.collective import Collective
from fundhost.models.member import Member
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.services.events import DomainEvent, Persisted

logger = logging.getLogger(__name__)

# Account types that can be connected to each other
CONNECTABLE_TYPES = (CollectiveType.COLLECTIVE, CollectiveType.ORGANIZATION, CollectiveType.FUND)


class MemberService:
    """Service for Member operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    @staticmethod
    def is_active(
        member: Member,
        tier_interval: ContributionInterval | str | None,
        last_donation: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        """Whether a backer is still considered active for its tier.

        Members of tiers without interval stay active forever. Otherwise the last
        donation must be recent enough: 31 days for monthly tiers, 365 days for
        yearly and flexible ones.
        """
        if not tier_interval:
            return True
        if last_donation is None:
            return False
        now = now or utcnow()
        days = (now - last_donation).days
        if ContributionInterval(tier_interval) == ContributionInterval.MONTH:
            return days <= 31
        return days <= 365

    def find(
        self,
        collective_id: int,
        member_collective_id: int,
        role: MemberRole,
        tier_id: int | None = None,
    ) -> Member | None:
        return (
            self.db.query(Member)
            .filter(
                Member.collective_id == collective_id,
                Member.member_collective_id == member_collective_id,
                Member.role == MemberRole(role),
                Member.tier_id.is_(None) if tier_id is None else Member.tier_id == tier_id,
                Member.not_deleted(),
            )
            .first()
        )

    def find_or_create(
        self,
        collective_id: int,
        member_collective_id: int,
        role: MemberRole | str,
        tier_id: int | None = None,
        created_by_user_id: int | None = None,
        description: str | None = None,
        since: datetime | None = None,
        commit: bool = True,
    ) -> Persisted[Member]:
        """Create a membership unless the same (collective, member, role, tier) exists.

        A concurrent insert hitting the unique constraint is treated as
        "already exists": the session is rolled back and the existing row returned.
        """
        role = MemberRole(role)
        existing = self.find(collective_id, member_collective_id, role, tier_id)
        if existing:
            return Persisted(existing, created=False)

        member = Member(
            collective_id=collective_id,
            member_collective_id=member_collective_id,
            role=role,
            tier_id=tier_id,
            created_by_user_id=created_by_user_id,
            description=description,
            since=since or utcnow(),
        )
        self.db.add(member)
        try:
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.find(collective_id, member_collective_id, role, tier_id)
            if existing is None:
                raise
            return Persisted(existing, created=False)

        events = []
        if role != MemberRole.FOLLOWER:
            events.append(
                DomainEvent(
                    type=ActivityType.COLLECTIVE_MEMBER_CREATED,
                    collective_id=collective_id,
                    from_collective_id=member_collective_id,
                    user_id=created_by_user_id,
                    data={"member": member.info},
                )
            )
        logger.info(
            "Collective %s added as %s of collective %s",
            member_collective_id,
            role.value,
            collective_id,
        )
        return Persisted(member, events)

    def connect_collectives(
        self,
        child: Collective,
        parent: Collective,
        user: User | None = None,
        description: str | None = None,
    ) -> Persisted[Member]:
        """Connect ``child`` to ``parent`` with the CONNECTED_COLLECTIVE role."""
        if child.id == parent.id:
            raise InvariantError("Cannot connect an account to itself")
        if child.type not in CONNECTABLE_TYPES or parent.type not in CONNECTABLE_TYPES:
            raise InvariantError(
                f"Cannot connect a {child.type.value} to a {parent.type.value}"
            )
        return self.find_or_create(
            collective_id=parent.id,
            member_collective_id=child.id,
            role=MemberRole.CONNECTED_COLLECTIVE,
            created_by_user_id=user.id if user else None,
            description=description,
        )

    def list_for_collective(
        self, collective_id: int, roles: list[MemberRole] | None = None
    ) -> list[Member]:
        query = self.db.query(Member).filter(
            Member.collective_id == collective_id, Member.not_deleted()
        )
        if roles:
            query = query.filter(Member.role.in_([MemberRole(role) for role in roles]))
        return query.order_by(Member.id).all()

    def count_for_collective(self, collective_id: int, roles: tuple[MemberRole, ...]) -> int:
        return (
            self.db.query(Member)
            .filter(
                Member.collective_id == collective_id,
                Member.role.in_(roles),
                Member.not_deleted(),
            )
            .count()
        )


__all__ = ["MemberService", "CONNECTABLE_TYPES"]
