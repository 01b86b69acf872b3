"""OAuth service: applications, authorization codes, user and personal tokens."""

import logging
import secrets
from collections.abc import Iterable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from fundhost.errors import InvariantError, NotFoundError
from fundhost.lib.encryption import decrypt, encrypt
from fundhost.models.application import Application, ApplicationType
from fundhost.models.oauth_authorization_code import OAuthAuthorizationCode
from fundhost.models.personal_token import PersonalToken
from fundhost.models.types import utcnow
from fundhost.models.user import User
from fundhost.models.user_token import UserToken, UserTokenType

logger = logging.getLogger(__name__)

AUTHORIZATION_CODE_TTL = timedelta(minutes=10)
ACCESS_TOKEN_TTL = timedelta(days=60)
REFRESH_TOKEN_TTL = timedelta(days=365)


def _random_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def _is_expired(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is not None and expires_at <= now


class OAuthService:
    """Service for Application, OAuthAuthorizationCode, UserToken and PersonalToken."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    # Applications

    def create_application(
        self,
        name: str,
        created_by_user: User,
        collective_id: int | None = None,
        callback_url: str | None = None,
        type: ApplicationType | str = ApplicationType.OAUTH,
        description: str | None = None,
    ) -> tuple[Application, str]:
        """Register an application with fresh client credentials.

        Returns:
            (application, plain client secret); only the ciphertext is stored
        """
        client_secret = _random_token()
        application = Application(
            type=type,
            name=name,
            description=description,
            client_id=_random_token(10),
            client_secret=encrypt(client_secret),
            callback_url=callback_url,
            collective_id=collective_id or created_by_user.collective_id,
            created_by_user_id=created_by_user.id,
        )
        self.db.add(application)
        self.db.commit()
        logger.info("Created application %s (%s)", application.id, application.name)
        return application, client_secret

    def get_application_by_client_id(self, client_id: str) -> Application | None:
        return (
            self.db.query(Application)
            .filter(Application.client_id == client_id, Application.not_deleted())
            .first()
        )

    def get_client_secret(self, application: Application) -> str:
        return decrypt(application.client_secret)

    # Authorization codes

    def create_authorization_code(
        self,
        application: Application,
        user: User,
        redirect_uri: str,
        scope: list[str] | None = None,
        now: datetime | None = None,
    ) -> OAuthAuthorizationCode:
        now = now or utcnow()
        authorization = OAuthAuthorizationCode(
            code=_random_token(),
            redirect_uri=redirect_uri,
            expires_at=now + AUTHORIZATION_CODE_TTL,
            scope=scope,
            application_id=application.id,
            user_id=user.id,
        )
        self.db.add(authorization)
        self.db.commit()
        return authorization

    def exchange_authorization_code(
        self, application: Application, code: str, now: datetime | None = None
    ) -> UserToken:
        """Trade a code for a user token. A code can only be used once.

        Raises:
            NotFoundError: unknown or already used code
            InvariantError: expired code
        """
        now = now or utcnow()
        authorization = (
            self.db.query(OAuthAuthorizationCode)
            .filter(
                OAuthAuthorizationCode.code == code,
                OAuthAuthorizationCode.application_id == application.id,
                OAuthAuthorizationCode.not_deleted(),
            )
            .first()
        )
        if authorization is None:
            raise NotFoundError("Invalid authorization code")
        authorization.soft_delete(now)
        if _is_expired(authorization.expires_at, now):
            self.db.commit()
            raise InvariantError("The authorization code has expired")

        token = UserToken(
            type=UserTokenType.OAUTH,
            access_token=_random_token(),
            refresh_token=_random_token(),
            access_token_expires_at=now + ACCESS_TOKEN_TTL,
            refresh_token_expires_at=now + REFRESH_TOKEN_TTL,
            scope=authorization.scope,
            application_id=application.id,
            user_id=authorization.user_id,
        )
        self.db.add(token)
        self.db.commit()
        logger.info(
            "Issued token %s for application %s to user %s",
            token.id,
            application.id,
            authorization.user_id,
        )
        return token

    # User tokens

    def create_user_token(
        self,
        application: Application,
        user: User,
        scope: list[str] | None = None,
        now: datetime | None = None,
    ) -> UserToken:
        now = now or utcnow()
        token = UserToken(
            type=UserTokenType.OAUTH,
            access_token=_random_token(),
            refresh_token=_random_token(),
            access_token_expires_at=now + ACCESS_TOKEN_TTL,
            refresh_token_expires_at=now + REFRESH_TOKEN_TTL,
            scope=scope,
            application_id=application.id,
            user_id=user.id,
        )
        self.db.add(token)
        self.db.commit()
        return token

    def find_user_token_by_access_token(
        self, access_token: str, now: datetime | None = None
    ) -> UserToken | None:
        """The token if it exists, is not revoked and has not expired."""
        now = now or utcnow()
        token = (
            self.db.query(UserToken)
            .filter(UserToken.access_token == access_token, UserToken.not_deleted())
            .first()
        )
        if token is None or _is_expired(token.access_token_expires_at, now):
            return None
        return token

    def refresh_user_token(
        self, refresh_token: str, now: datetime | None = None
    ) -> UserToken:
        """Rotate both tokens of the user token matching ``refresh_token``.

        Raises:
            NotFoundError: unknown or revoked refresh token
            InvariantError: expired refresh token
        """
        now = now or utcnow()
        token = (
            self.db.query(UserToken)
            .filter(UserToken.refresh_token == refresh_token, UserToken.not_deleted())
            .first()
        )
        if token is None:
            raise NotFoundError("Invalid refresh token")
        if _is_expired(token.refresh_token_expires_at, now):
            raise InvariantError("The refresh token has expired")
        token.access_token = _random_token()
        token.refresh_token = _random_token()
        token.access_token_expires_at = now + ACCESS_TOKEN_TTL
        token.refresh_token_expires_at = now + REFRESH_TOKEN_TTL
        self.db.commit()
        return token

    def revoke_user_token(self, token: UserToken) -> UserToken:
        token.soft_delete()
        self.db.commit()
        logger.info("Revoked user token %s", token.id)
        return token

    # Personal tokens

    def create_personal_token(
        self,
        user: User,
        name: str | None = None,
        scope: Iterable[str] | None = None,
        expires_at: datetime | None = None,
        collective_id: int | None = None,
    ) -> PersonalToken:
        token = PersonalToken(
            name=name,
            token=_random_token(20),
            scope=list(scope) if scope is not None else None,
            expires_at=expires_at,
            user_id=user.id,
            collective_id=collective_id or user.collective_id,
        )
        self.db.add(token)
        self.db.commit()
        logger.info("Created personal token %s for user %s", token.id, user.id)
        return token

    def find_personal_token(self, token: str, now: datetime | None = None) -> PersonalToken | None:
        now = now or utcnow()
        personal_token = (
            self.db.query(PersonalToken)
            .filter(PersonalToken.token == token, PersonalToken.not_deleted())
            .first()
        )
        if personal_token is None or _is_expired(personal_token.expires_at, now):
            return None
        return personal_token

    @staticmethod
    def has_scope(token: UserToken | PersonalToken, scope: str) -> bool:
        return token.has_scope(scope)


__all__ = ["OAuthService", "AUTHORIZATION_CODE_TTL", "ACCESS_TOKEN_TTL", "REFRESH_TOKEN_TTL"]
