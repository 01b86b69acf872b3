"""Integration tests for credentials stored encrypted: accounts, OAuth and cards."""

from datetime import timedelta

import pytest

from fundhost.constants.activities import ActivityType
from fundhost.errors import ConfigError, InvariantError, NotFoundError, ProviderError
from fundhost.models.types import utcnow
from fundhost.services.container import build_services
from fundhost.services.virtual_card_service import ACTIVE, CANCELED, INACTIVE


class FakeCardProvider:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def _record(self, action, card_id):
        if self.fail:
            raise RuntimeError("Stripe is down")
        self.calls.append((action, card_id))
        return {"id": card_id}

    def pause_card(self, card_id):
        return self._record("pause", card_id)

    def resume_card(self, card_id):
        return self._record("resume", card_id)

    def delete_card(self, card_id):
        self._record("delete", card_id)


@pytest.mark.integration
class TestConnectedAccounts:
    def test_tokens_are_encrypted(self, services, collective, user):
        account = services.connected_accounts.create(
            collective.id, "github", token="gho_secret", refresh_token="ghr_secret",
            created_by_user_id=user.id,
        )
        assert account.token != "gho_secret"
        assert services.connected_accounts.get_token(account) == "gho_secret"
        assert services.connected_accounts.get_refresh_token(account) == "ghr_secret"

        services.connected_accounts.update_tokens(account, "gho_rotated")
        assert services.connected_accounts.get_token(account) == "gho_rotated"
        assert services.connected_accounts.get_refresh_token(account) == "ghr_secret"

    def test_find_and_delete(self, services, collective):
        github = services.connected_accounts.create(collective.id, "github", token="a")
        services.connected_accounts.create(collective.id, "stripe", token="b")
        assert [a.id for a in services.connected_accounts.find_for_collective(
            collective.id, "github"
        )] == [github.id]

        services.connected_accounts.delete(github)
        assert services.connected_accounts.get_by_id(github.id) is None
        assert len(services.connected_accounts.find_for_collective(collective.id)) == 1


@pytest.mark.integration
class TestOAuth:
    @pytest.fixture
    def application(self, services, user):
        application, _ = services.oauth.create_application(
            "Dashboard", user, callback_url="https://dashboard.example.com/callback"
        )
        return application

    def test_client_secret_is_encrypted(self, services, user):
        application, secret = services.oauth.create_application("CLI", user)
        assert application.client_secret != secret
        assert services.oauth.get_client_secret(application) == secret
        assert services.oauth.get_application_by_client_id(application.client_id).id == application.id

    def test_authorization_code_is_single_use(self, services, user, application):
        authorization = services.oauth.create_authorization_code(
            application, user, "https://dashboard.example.com/callback", scope=["expenses"]
        )
        token = services.oauth.exchange_authorization_code(application, authorization.code)
        assert token.user_id == user.id
        assert services.oauth.has_scope(token, "expenses")
        assert not services.oauth.has_scope(token, "account")

        with pytest.raises(NotFoundError):
            services.oauth.exchange_authorization_code(application, authorization.code)

    def test_expired_code(self, services, user, application):
        authorization = services.oauth.create_authorization_code(
            application, user, "https://dashboard.example.com/callback"
        )
        with pytest.raises(InvariantError, match="expired"):
            services.oauth.exchange_authorization_code(
                application, authorization.code, now=utcnow() + timedelta(hours=1)
            )
        with pytest.raises(NotFoundError):
            services.oauth.exchange_authorization_code(application, authorization.code)

    def test_refresh_and_revoke(self, services, user, application):
        token = services.oauth.create_user_token(application, user)
        old_access_token = token.access_token
        refreshed = services.oauth.refresh_user_token(token.refresh_token)
        assert refreshed.access_token != old_access_token
        assert services.oauth.find_user_token_by_access_token(old_access_token) is None
        assert services.oauth.find_user_token_by_access_token(refreshed.access_token).id == token.id

        services.oauth.revoke_user_token(refreshed)
        assert services.oauth.find_user_token_by_access_token(refreshed.access_token) is None
        with pytest.raises(NotFoundError):
            services.oauth.refresh_user_token(refreshed.refresh_token)

    def test_personal_token_expiry(self, services, user):
        token = services.oauth.create_personal_token(
            user, "CI", scope=["transactions"], expires_at=utcnow() + timedelta(days=1)
        )
        assert services.oauth.find_personal_token(token.token).id == token.id
        assert services.oauth.find_personal_token(
            token.token, now=utcnow() + timedelta(days=2)
        ) is None


@pytest.mark.integration
class TestVirtualCards:
    @pytest.fixture
    def card(self, services, collective, host):
        return services.virtual_cards.create(
            "ic_1234",
            collective.id,
            host.id,
            "STRIPE",
            name="Ops card",
            last4="4242",
            private_data={"cardNumber": "4242424242424242", "cvv": "123"},
            data={"status": ACTIVE},
        )

    def test_private_data_is_encrypted(self, services, card):
        assert "4242424242424242" not in card.private_data
        assert services.virtual_cards.get_private_data(card) == {
            "cardNumber": "4242424242424242",
            "cvv": "123",
        }
        services.virtual_cards.set_private_data(card, {"cardNumber": "5555"})
        assert services.virtual_cards.get_private_data(card) == {"cardNumber": "5555"}

    def test_pause_resume_delete(self, db_session, card):
        provider = FakeCardProvider()
        services = build_services(db_session, card_provider=provider)

        services.virtual_cards.pause(card)
        assert card.status == INACTIVE
        services.virtual_cards.resume(card)
        assert card.status == ACTIVE
        assert card.last_resumed_at is not None

        result = services.virtual_cards.delete(card)
        assert card.status == CANCELED
        assert result.event_types() == [ActivityType.VIRTUAL_CARD_DELETED]
        assert provider.calls == [("pause", "ic_1234"), ("resume", "ic_1234"), ("delete", "ic_1234")]

        # Deleting a cancelled card is a no-op
        assert services.virtual_cards.delete(card).events == []
        assert len(provider.calls) == 3

    def test_provider_failure(self, db_session, card):
        services = build_services(db_session, card_provider=FakeCardProvider(fail=True))
        with pytest.raises(ProviderError):
            services.virtual_cards.pause(card)
        assert card.status == ACTIVE

    def test_provider_is_required(self, services, card):
        with pytest.raises(ConfigError):
            services.virtual_cards.pause(card)

    def test_only_stripe_cards_are_actionable(self, db_session, collective, host):
        services = build_services(db_session, card_provider=FakeCardProvider())
        privacy = services.virtual_cards.create("privacy_1", collective.id, host.id, "PRIVACY")
        with pytest.raises(InvariantError, match="PRIVACY"):
            services.virtual_cards.pause(privacy)

    def test_recent_charges_are_not_missing_details(self, services, user, collective, card):
        charge = services.expenses.create(
            user, collective, user.collective, "Hosting", amount=1200,
            type="CHARGE", virtual_card_id=card.id,
        ).entity
        services.expenses.set_paid(charge, user.id)
        assert services.virtual_cards.get_expenses_missing_details(card) == []
