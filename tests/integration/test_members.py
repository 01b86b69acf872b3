"""Integration tests for accounts, memberships, invitations and payout methods."""

import pytest

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.collectives import CollectiveType
from fundhost.constants.roles import MemberRole
from fundhost.errors import InvariantError, NotFoundError, ValidationError
from fundhost.models.payout_method import PayoutMethod, PayoutMethodType


@pytest.mark.integration
class TestAccounts:
    def test_user_gets_a_profile(self, services, user):
        assert user.email == "alice@example.com"
        assert user.collective.type == CollectiveType.USER
        assert user.collective.slug == "alice-liddell"

    def test_slugs_are_unique(self, services, make_collective):
        first = make_collective("Babel")
        second = make_collective("Babel")
        assert first.slug == "babel"
        assert second.slug == "babel1"

    def test_invalid_email(self, services):
        with pytest.raises(ValidationError):
            services.users.create_user_with_collective("not-an-email")

    def test_find_or_create_by_email(self, services, user):
        again = services.users.find_or_create_by_email("ALICE@example.com")
        assert again.created is False
        assert again.entity.id == user.id

    def test_host_is_its_own_host(self, services, host, collective):
        assert services.collectives.get_host_collective(host).id == host.id
        assert services.collectives.get_host_collective(collective).id == host.id

    def test_two_factor_secret_is_encrypted(self, services, user):
        services.users.set_two_factor_secret(user, "JBSWY3DPEHPK3PXP")
        assert user.two_factor_auth_totp_secret != "JBSWY3DPEHPK3PXP"
        assert services.users.get_two_factor_secret(user) == "JBSWY3DPEHPK3PXP"
        services.users.remove_two_factor(user)
        assert services.users.get_two_factor_secret(user) is None


@pytest.mark.integration
class TestMemberships:
    def test_add_user_with_role_is_idempotent(self, services, user, collective):
        first = services.collectives.add_user_with_role(collective, user, MemberRole.ADMIN)
        second = services.collectives.add_user_with_role(collective, user, "ADMIN")
        assert first.created is True
        assert first.event_types() == [ActivityType.COLLECTIVE_MEMBER_CREATED]
        assert second.created is False
        assert second.entity.id == first.entity.id

    def test_followers_emit_no_event(self, services, user, collective):
        result = services.collectives.add_user_with_role(collective, user, MemberRole.FOLLOWER)
        assert result.events == []

    def test_admin_rights(self, services, make_user, collective, host):
        admin = make_user("admin@example.com", "Host Admin")
        outsider = make_user("outsider@example.com", "Outsider")
        services.collectives.add_user_with_role(host, admin, MemberRole.ADMIN)

        assert services.users.is_admin_of_collective_or_host(admin, collective)
        assert not services.users.is_admin_of_collective_or_host(outsider, collective)
        # A user administers its own profile
        assert services.users.is_admin(outsider, outsider.collective_id)
        assert [u.id for u in services.collectives.get_admin_users(host.id)] == [admin.id]

    def test_connect_collectives(self, services, user, make_collective):
        parent = make_collective("Parent")
        child = make_collective("Child")
        result = services.members.connect_collectives(child, parent, user)
        assert result.entity.role == MemberRole.CONNECTED_COLLECTIVE

        with pytest.raises(InvariantError):
            services.members.connect_collectives(parent, parent)
        with pytest.raises(InvariantError):
            services.members.connect_collectives(user.collective, parent)


@pytest.mark.integration
class TestMemberInvitations:
    @pytest.fixture
    def invitee(self, make_user):
        return make_user("bob@example.com", "Bob")

    def test_invite_emits_both_notifications(self, services, user, collective, invitee):
        result = services.invitations.invite(
            collective, invitee.collective_id, MemberRole.ADMIN, created_by_user_id=user.id
        )
        assert result.event_types() == [
            ActivityType.COLLECTIVE_CORE_MEMBER_INVITED,
            ActivityType.COLLECTIVE_MEMBER_INVITED,
        ]
        assert services.invitations.count_core_contributors(collective.id) == 1

    def test_invite_again_updates_the_pending_invitation(self, services, collective, invitee):
        first = services.invitations.invite(collective, invitee.collective_id, "ADMIN")
        second = services.invitations.invite(
            collective, invitee.collective_id, "MEMBER", description="Maintainer"
        )
        assert second.created is False
        assert second.entity.id == first.entity.id
        assert second.entity.role == MemberRole.MEMBER
        assert len(services.invitations.list_for_collective(collective.id)) == 1

    def test_accept(self, services, collective, invitee):
        invitation = services.invitations.invite(
            collective, invitee.collective_id, MemberRole.ACCOUNTANT
        ).entity
        result = services.invitations.accept(invitation)
        assert result.entity.role == MemberRole.ACCOUNTANT
        assert result.event_types() == [ActivityType.COLLECTIVE_CORE_MEMBER_ADDED]
        assert invitation.deleted_at is not None
        assert services.invitations.find_pending(collective.id, invitee.collective_id) is None

        # The role is now held
        with pytest.raises(InvariantError, match="already has the ACCOUNTANT role"):
            services.invitations.invite(collective, invitee.collective_id, "ACCOUNTANT")

    def test_decline(self, services, collective, invitee):
        invitation = services.invitations.invite(
            collective, invitee.collective_id, MemberRole.MEMBER
        ).entity
        result = services.invitations.decline(invitation)
        assert result.event_types() == [ActivityType.COLLECTIVE_CORE_MEMBER_INVITATION_DECLINED]
        assert services.invitations.get_by_id(invitation.id) is None
        assert services.members.find(collective.id, invitee.collective_id, "MEMBER") is None

    def test_unsupported_roles(self, services, collective, invitee):
        with pytest.raises(ValidationError):
            services.invitations.invite(collective, invitee.collective_id, MemberRole.BACKER)
        with pytest.raises(ValidationError):
            services.invitations.invite(collective, invitee.collective_id, "OWNER")

    def test_only_users_can_be_invited(self, services, collective, make_collective):
        other = make_collective("Other")
        with pytest.raises(InvariantError, match="only invite users"):
            services.invitations.invite(collective, other.id, "ADMIN")
        with pytest.raises(NotFoundError):
            services.invitations.invite(collective, 404, "ADMIN")

    def test_core_contributor_limit(self, services, monkeypatch, collective, invitee):
        monkeypatch.setattr(get_settings(), "max_core_contributors_per_account", 0)
        with pytest.raises(InvariantError, match="maximum number of members"):
            services.invitations.invite(collective, invitee.collective_id, "ADMIN")


@pytest.mark.integration
class TestPayoutMethods:
    def test_paypal_is_reused_by_email(self, services, user):
        data = {"type": "PAYPAL", "data": {"email": "alice@example.com"}, "is_saved": True}
        first = services.payout_methods.get_or_create_from_data(data, user.collective_id, user.id)
        second = services.payout_methods.get_or_create_from_data(data, user.collective_id, user.id)
        assert first.id == second.id
        assert services.payout_methods.get_label(first) == "PayPal (alice@example.com)"
        assert [pm.id for pm in services.payout_methods.list_for_collective(
            user.collective_id, saved_only=True
        )] == [first.id]

    def test_invalid_type(self, services, user):
        with pytest.raises(ValidationError):
            services.payout_methods.create_from_data({"type": "CASH"}, user.collective_id)

    def test_similar_paypal_accounts(self, services, user, make_user):
        other = make_user("twin@example.com", "Twin")
        data = {"type": "PAYPAL", "data": {"email": "shared@example.com"}}
        mine = services.payout_methods.create_from_data(data, user.collective_id)
        theirs = services.payout_methods.create_from_data(data, other.collective_id)
        assert [pm.id for pm in services.payout_methods.find_similar(mine)] == [theirs.id]

    def test_fees_payer_support(self, services):
        assert services.payout_methods.type_supports_fees_payer(PayoutMethodType.BANK_ACCOUNT)
        assert not services.payout_methods.type_supports_fees_payer("PAYPAL")

    def test_data_is_checked_on_flush(self, services, db_session, user):
        # data never assigned: the column default would store an empty PayPal method
        db_session.add(PayoutMethod(type=PayoutMethodType.PAYPAL, collective_id=user.collective_id))
        with pytest.raises(ValidationError):
            db_session.commit()
        db_session.rollback()
        assert services.payout_methods.list_for_collective(user.collective_id) == []
