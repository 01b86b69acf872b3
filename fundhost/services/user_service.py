"""User service: identities, roles and two-factor secrets."""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from fundhost.constants.collectives import CollectiveType
from fundhost.constants.roles import MemberRole
from fundhost.errors import ValidationError
from fundhost.lib.encryption import decrypt, encrypt
from fundhost.lib.validators import is_email
from fundhost.models.collective import Collective
from fundhost.models.member import Member
from fundhost.models.user import User
from fundhost.services.collective_service import CollectiveService
from fundhost.services.events import Persisted

logger = logging.getLogger(__name__)


class UserService:
    """Service for User operations."""

    def __init__(self, db_session: Session, collectives: CollectiveService):
        """Initialize with database session and collective service."""
        self.db = db_session
        self.collectives = collectives

    @staticmethod
    def split_name(name: str | None) -> tuple[str | None, str | None]:
        """Split a full name into (first name, last name)."""
        if not name or not name.strip():
            return None, None
        parts = name.split()
        if len(parts) == 1:
            return parts[0], None
        return parts[0], " ".join(parts[1:])

    def create_user_with_collective(
        self, email: str, name: str | None = None, **collective_fields
    ) -> Persisted[User]:
        """Create a user and its personal USER collective in one transaction.

        Args:
            email: Login email (lower-cased)
            name: Profile name (defaults to the email's local part)
            **collective_fields: Extra columns for the profile (currency, description ...)

        Returns:
            Persisted user; events include COLLECTIVE_CREATED for the profile
        """
        email = (email or "").strip().lower()
        if not is_email(email):
            raise ValidationError("email", f"Invalid email address: {email}")
        display_name = name or email.split("@")[0]
        try:
            profile = self.collectives.create(
                type=CollectiveType.USER,
                name=display_name,
                is_active=True,
                commit=False,
                **collective_fields,
            )
            user = User(email=email, collective_id=profile.entity.id)
            self.db.add(user)
            self.db.flush()
            for event in profile.events:
                event.user_id = user.id
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Created user %s with profile %s", user.id, profile.entity.slug)
        return Persisted(user, profile.events)

    def get_by_id(self, user_id: int) -> User | None:
        return self.db.query(User).filter(User.id == user_id, User.not_deleted()).first()

    def find_by_email(self, email: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.email == (email or "").strip().lower(), User.not_deleted())
            .first()
        )

    def find_or_create_by_email(self, email: str, name: str | None = None) -> Persisted[User]:
        user = self.find_by_email(email)
        if user:
            return Persisted(user, created=False)
        return self.create_user_with_collective(email, name)

    def has_role(self, user: User, roles: Iterable[MemberRole | str], collective_id: int) -> bool:
        """Whether ``user``'s profile holds one of ``roles`` in the collective.

        Users are implicitly ADMIN of their own profile.
        """
        roles = [MemberRole(role) for role in roles]
        if collective_id == user.collective_id and MemberRole.ADMIN in roles:
            return True
        return (
            self.db.query(Member.id)
            .filter(
                Member.collective_id == collective_id,
                Member.member_collective_id == user.collective_id,
                Member.role.in_(roles),
                Member.not_deleted(),
            )
            .first()
            is not None
        )

    def is_admin(self, user: User, collective_id: int) -> bool:
        return self.has_role(user, [MemberRole.ADMIN], collective_id)

    def is_admin_of_collective_or_host(self, user: User, collective: Collective) -> bool:
        """Admin of the collective, of its parent, or of its host."""
        if self.is_admin(user, collective.id):
            return True
        if collective.parent_collective_id and self.is_admin(user, collective.parent_collective_id):
            return True
        return bool(collective.host_collective_id) and self.is_admin(
            user, collective.host_collective_id
        )

    def set_two_factor_secret(self, user: User, secret: str) -> User:
        user.two_factor_auth_totp_secret = encrypt(secret)
        self.db.commit()
        logger.info("Enabled two-factor authentication for user %s", user.id)
        return user

    def get_two_factor_secret(self, user: User) -> str | None:
        if not user.two_factor_auth_totp_secret:
            return None
        return decrypt(user.two_factor_auth_totp_secret)

    def remove_two_factor(self, user: User) -> User:
        user.two_factor_auth_totp_secret = None
        self.db.commit()
        logger.info("Removed two-factor authentication for user %s", user.id)
        return user

    def has_two_factor_authentication(self, user: User) -> bool:
        return user.has_two_factor_authentication


__all__ = ["UserService"]
