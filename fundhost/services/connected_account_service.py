"""Connected account service: third-party credentials encrypted at rest."""

import logging

from sqlalchemy.orm import Session

from fundhost.lib.encryption import decrypt, encrypt
from fundhost.models.connected_account import ConnectedAccount, ConnectedAccountProvider

logger = logging.getLogger(__name__)


class ConnectedAccountService:
    """Service for ConnectedAccount operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    def create(
        self,
        collective_id: int,
        service: ConnectedAccountProvider | str,
        token: str | None = None,
        refresh_token: str | None = None,
        created_by_user_id: int | None = None,
        **fields,
    ) -> ConnectedAccount:
        account = ConnectedAccount(
            collective_id=collective_id,
            service=service,
            token=encrypt(token) if token else None,
            refresh_token=encrypt(refresh_token) if refresh_token else None,
            created_by_user_id=created_by_user_id,
            **fields,
        )
        self.db.add(account)
        self.db.commit()
        logger.info(
            "Connected %s account %s to collective %s",
            account.service.value,
            account.id,
            collective_id,
        )
        return account

    def get_by_id(self, account_id: int) -> ConnectedAccount | None:
        return (
            self.db.query(ConnectedAccount)
            .filter(ConnectedAccount.id == account_id, ConnectedAccount.not_deleted())
            .first()
        )

    def get_token(self, account: ConnectedAccount) -> str | None:
        return decrypt(account.token) if account.token else None

    def get_refresh_token(self, account: ConnectedAccount) -> str | None:
        return decrypt(account.refresh_token) if account.refresh_token else None

    def update_tokens(
        self,
        account: ConnectedAccount,
        token: str | None,
        refresh_token: str | None = None,
    ) -> ConnectedAccount:
        """Replace the stored tokens. A None refresh token keeps the current one."""
        account.token = encrypt(token) if token else None
        if refresh_token is not None:
            account.refresh_token = encrypt(refresh_token)
        self.db.commit()
        return account

    def find_for_collective(
        self, collective_id: int, service: ConnectedAccountProvider | str | None = None
    ) -> list[ConnectedAccount]:
        query = self.db.query(ConnectedAccount).filter(
            ConnectedAccount.collective_id == collective_id, ConnectedAccount.not_deleted()
        )
        if service is not None:
            query = query.filter(ConnectedAccount.service == ConnectedAccountProvider(service))
        return query.order_by(ConnectedAccount.id).all()

    def delete(self, account: ConnectedAccount) -> ConnectedAccount:
        account.soft_delete()
        self.db.commit()
        logger.info("Disconnected account %s", account.id)
        return account


__all__ = ["ConnectedAccountService"]
