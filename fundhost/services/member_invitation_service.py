"""Member invitation service: invite, accept and decline core contributors."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.collectives import CollectiveType
from fundhost.constants.roles import CORE_CONTRIBUTOR_ROLES, INVITABLE_ROLES, MemberRole
from fundhost.errors import InvariantError, NotFoundError, ValidationError
from fundhost.models.collective import Collective
from fundhost.models.member import Member
from fundhost.models.member_invitation import MemberInvitation
from fundhost.models.types import utcnow
from fundhost.services.collective_service import CollectiveService
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.member_service import MemberService

logger = logging.getLogger(__name__)


class MemberInvitationService:
    """Service for MemberInvitation operations."""

    def __init__(
        self, db_session: Session, collectives: CollectiveService, members: MemberService
    ):
        """Initialize with database session and dependent services."""
        self.db = db_session
        self.collectives = collectives
        self.members = members

    def get_by_id(self, invitation_id: int) -> MemberInvitation | None:
        return (
            self.db.query(MemberInvitation)
            .filter(MemberInvitation.id == invitation_id, MemberInvitation.not_deleted())
            .first()
        )

    def find_pending(self, collective_id: int, member_collective_id: int) -> MemberInvitation | None:
        return (
            self.db.query(MemberInvitation)
            .filter(
                MemberInvitation.collective_id == collective_id,
                MemberInvitation.member_collective_id == member_collective_id,
                MemberInvitation.not_deleted(),
            )
            .first()
        )

    def list_for_collective(self, collective_id: int) -> list[MemberInvitation]:
        return (
            self.db.query(MemberInvitation)
            .filter(
                MemberInvitation.collective_id == collective_id, MemberInvitation.not_deleted()
            )
            .order_by(MemberInvitation.id)
            .all()
        )

    def count_core_contributors(self, collective_id: int) -> int:
        """Core members plus pending invitations."""
        pending = (
            self.db.query(MemberInvitation)
            .filter(
                MemberInvitation.collective_id == collective_id,
                MemberInvitation.role.in_(CORE_CONTRIBUTOR_ROLES),
                MemberInvitation.not_deleted(),
            )
            .count()
        )
        return self.members.count_for_collective(collective_id, CORE_CONTRIBUTOR_ROLES) + pending

    def invite(
        self,
        collective: Collective,
        member_collective_id: int,
        role: MemberRole | str,
        created_by_user_id: int | None = None,
        description: str | None = None,
        since: datetime | None = None,
        tier_id: int | None = None,
    ) -> Persisted[MemberInvitation]:
        """Invite a user profile to join ``collective`` with ``role``.

        An existing pending invitation is updated instead of creating a new one.

        Raises:
            ValidationError: role is not ADMIN, MEMBER or ACCOUNTANT
            NotFoundError: the invited profile does not exist
            InvariantError: not a user, role already held, or too many core contributors
        """
        try:
            role = MemberRole(role)
        except ValueError:
            raise ValidationError("role", f"Unsupported role: {role}") from None
        if role not in INVITABLE_ROLES:
            raise ValidationError("role", f"Cannot invite a member with role {role.value}")

        member_collective = self.collectives.get_by_id(member_collective_id)
        if member_collective is None:
            raise NotFoundError(f"Collective #{member_collective_id} not found")
        if member_collective.type != CollectiveType.USER:
            raise InvariantError("You can only invite users")

        if self.members.find(collective.id, member_collective_id, role):
            raise InvariantError(f"This user already has the {role.value} role")

        existing = self.find_pending(collective.id, member_collective_id)
        if existing:
            existing.role = role
            existing.description = description
            existing.since = since or existing.since
            existing.tier_id = tier_id
            self.db.commit()
            logger.info("Updated invitation %s for collective %s", existing.id, collective.id)
            return Persisted(existing, created=False)

        limit = get_settings().max_core_contributors_per_account
        if self.count_core_contributors(collective.id) >= limit:
            raise InvariantError(
                f"You exceeded the maximum number of members for this account ({limit})"
            )

        invitation = MemberInvitation(
            collective_id=collective.id,
            member_collective_id=member_collective_id,
            role=role,
            created_by_user_id=created_by_user_id,
            description=description,
            since=since or utcnow(),
            tier_id=tier_id,
        )
        self.db.add(invitation)
        self.db.commit()
        logger.info(
            "Invited collective %s as %s of collective %s",
            member_collective_id,
            role.value,
            collective.id,
        )
        data = {
            "invitation": invitation.info,
            "collective": collective.minimal,
            "member_collective": member_collective.minimal,
        }
        events = [
            DomainEvent(
                type=ActivityType.COLLECTIVE_CORE_MEMBER_INVITED,
                collective_id=collective.id,
                from_collective_id=member_collective_id,
                user_id=created_by_user_id,
                data=data,
            ),
            DomainEvent(
                type=ActivityType.COLLECTIVE_MEMBER_INVITED,
                collective_id=member_collective_id,
                from_collective_id=collective.id,
                user_id=created_by_user_id,
                data=data,
            ),
        ]
        return Persisted(invitation, events)

    def accept(self, invitation: MemberInvitation) -> Persisted[Member]:
        """Turn the invitation into a membership and soft-delete it."""
        existing = self.members.find(
            invitation.collective_id, invitation.member_collective_id, invitation.role
        )
        if existing:
            invitation.soft_delete()
            self.db.commit()
            return Persisted(existing, created=False)

        invitee = self.collectives.get_by_id(invitation.member_collective_id)
        if invitee is None or invitee.type != CollectiveType.USER or invitee.is_incognito:
            raise InvariantError("Only user profiles can accept an invitation")

        result = self.members.find_or_create(
            collective_id=invitation.collective_id,
            member_collective_id=invitation.member_collective_id,
            role=invitation.role,
            created_by_user_id=invitation.created_by_user_id,
            description=invitation.description,
            since=invitation.since,
            commit=False,
        )
        invitation.soft_delete()
        self.db.commit()
        logger.info("Invitation %s accepted", invitation.id)
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_CORE_MEMBER_ADDED,
            collective_id=invitation.collective_id,
            from_collective_id=invitation.member_collective_id,
            user_id=invitation.created_by_user_id,
            data={"member": result.entity.info, "invitation_id": invitation.id},
        )
        return Persisted(result.entity, [event], created=result.created)

    def decline(self, invitation: MemberInvitation) -> Persisted[MemberInvitation]:
        invitation.soft_delete()
        self.db.commit()
        logger.info("Invitation %s declined", invitation.id)
        event = DomainEvent(
            type=ActivityType.COLLECTIVE_CORE_MEMBER_INVITATION_DECLINED,
            collective_id=invitation.collective_id,
            from_collective_id=invitation.member_collective_id,
            data={"invitation": invitation.info},
        )
        return Persisted(invitation, [event])


__all__ = ["MemberInvitationService"]
