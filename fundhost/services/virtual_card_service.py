"""Virtual card service: card records, private data and provider actions."""

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session

from fundhost.constants.activities import ActivityType
from fundhost.errors import ConfigError, InvariantError, ProviderError
from fundhost.lib.encryption import decrypt_json, encrypt_json
from fundhost.lib.error_reporting import report_error
from fundhost.models.expense import Expense
from fundhost.models.types import utcnow
from fundhost.models.virtual_card import VirtualCard, VirtualCardProviderName
from fundhost.services.events import DomainEvent, Persisted
from fundhost.services.expense_service import ExpenseService
from fundhost.services.gateways import VirtualCardProvider

logger = logging.getLogger(__name__)

ACTIVE = "active"
INACTIVE = "inactive"
CANCELED = "canceled"

# Charges without receipt for longer than this are reported as missing details
MISSING_DETAILS_DELAY = timedelta(days=30)


class VirtualCardService:
    """Service for VirtualCard operations.

    Only Stripe cards can be paused, resumed or deleted; the Stripe calls go
    through the injected VirtualCardProvider.
    """

    def __init__(
        self,
        db_session: Session,
        expenses: ExpenseService,
        card_provider: VirtualCardProvider | None = None,
    ):
        """Initialize with database session, expense service and card provider."""
        self.db = db_session
        self.expenses = expenses
        self.card_provider = card_provider

    def create(
        self,
        card_id: str,
        collective_id: int,
        host_collective_id: int,
        provider: VirtualCardProviderName | str,
        private_data: dict | None = None,
        **fields,
    ) -> VirtualCard:
        card = VirtualCard(
            id=card_id,
            collective_id=collective_id,
            host_collective_id=host_collective_id,
            provider=provider,
            **fields,
        )
        if private_data is not None:
            card.private_data = encrypt_json(private_data)
        self.db.add(card)
        self.db.commit()
        logger.info("Created %s virtual card %s", card.provider.value, card.id)
        return card

    def get_by_id(self, card_id: str) -> VirtualCard | None:
        return (
            self.db.query(VirtualCard)
            .filter(VirtualCard.id == card_id, VirtualCard.not_deleted())
            .first()
        )

    def get_private_data(self, card: VirtualCard) -> Any | None:
        """Decrypted card details, or None when missing or undecodable."""
        return decrypt_json(card.private_data)

    def set_private_data(self, card: VirtualCard, private_data: dict) -> VirtualCard:
        card.private_data = encrypt_json(private_data)
        self.db.commit()
        return card

    def _get_provider(self, card: VirtualCard, action: str) -> VirtualCardProvider:
        if card.provider != VirtualCardProviderName.STRIPE:
            raise InvariantError(
                f"Can not {action} virtual card provided by {card.provider.value}"
            )
        if self.card_provider is None:
            raise ConfigError("Virtual card provider is not configured")
        return self.card_provider

    def _call_provider(self, card: VirtualCard, action: str, call):
        try:
            return call(card.id)
        except Exception as e:
            report_error(e, f"Failed to {action} virtual card", virtual_card_id=card.id)
            raise ProviderError(f"Failed to {action} virtual card") from e

    def pause(self, card: VirtualCard) -> VirtualCard:
        provider = self._get_provider(card, "suspend")
        self._call_provider(card, "suspend", provider.pause_card)
        card.data = {**(card.data or {}), "status": INACTIVE}
        self.db.commit()
        logger.info("Paused virtual card %s", card.id)
        return card

    def resume(self, card: VirtualCard) -> VirtualCard:
        provider = self._get_provider(card, "resume")
        self._call_provider(card, "resume", provider.resume_card)
        card.last_resumed_at = utcnow()
        card.data = {**(card.data or {}), "status": ACTIVE}
        self.db.commit()
        logger.info("Resumed virtual card %s", card.id)
        return card

    def delete(self, card: VirtualCard, user_id: int | None = None) -> Persisted[VirtualCard]:
        """Cancel the card at the provider. Already cancelled cards are left as is."""
        provider = self._get_provider(card, "delete")
        if card.status == CANCELED:
            return Persisted(card, created=False)
        self._call_provider(card, "delete", provider.delete_card)
        card.data = {**(card.data or {}), "status": CANCELED}
        self.db.commit()
        logger.info("Deleted virtual card %s", card.id)
        event = DomainEvent(
            type=ActivityType.VIRTUAL_CARD_DELETED,
            collective_id=card.collective_id,
            host_collective_id=card.host_collective_id,
            user_id=user_id,
            data={"virtual_card": card.info},
        )
        return Persisted(card, [event], created=False)

    def get_expenses_missing_details(self, card: VirtualCard) -> list[Expense]:
        """Paid charges of the card still missing a receipt after 30 days."""
        return self.expenses.find_pending_card_charges(
            virtual_card_id=card.id, older_than=utcnow() - MISSING_DETAILS_DELAY
        )


__all__ = ["VirtualCardService"]
