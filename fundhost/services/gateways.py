"""External provider interfaces injected into services."""

from typing import Protocol


class PaypalGateway(Protocol):
    def cancel_subscription(self, paypal_subscription_id: str, reason: str | None = None) -> None:
        """Cancel a subscription on PayPal. Raises on failure."""
        ...


class VirtualCardProvider(Protocol):
    def pause_card(self, card_id: str) -> dict:
        """Freeze the card; returns the provider's card data."""
        ...

    def resume_card(self, card_id: str) -> dict:
        ...

    def delete_card(self, card_id: str) -> None:
        ...


__all__ = ["PaypalGateway", "VirtualCardProvider"]
