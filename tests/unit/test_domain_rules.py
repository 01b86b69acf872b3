"""Unit tests for entity rules that need no database."""

from datetime import datetime, timedelta, timezone

import pytest

from fundhost.constants.expenses import LegacyPayoutMethod
from fundhost.constants.orders import ContributionInterval
from fundhost.errors import InvariantError, ValidationError
from fundhost.models.collective import Collective
from fundhost.models.payout_method import PayoutMethod, PayoutMethodType, validate_payout_method_data
from fundhost.models.recurring_expense import RecurringExpense, RecurringExpenseInterval
from fundhost.models.tier import Tier, TierAmountType, TierType
from fundhost.models.update import NotificationAudience, Update
from fundhost.services.expense_service import ExpenseService
from fundhost.services.member_service import MemberService
from fundhost.services.order_service import OrderService
from fundhost.services.tier_service import TierService
from fundhost.services.update_service import UpdateService

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestComputeTotalAmount:
    def test_items_are_summed(self):
        items = [{"amount": 1000}, {"amount": 2550}]
        assert ExpenseService.compute_total_amount(items) == 3550

    def test_fx_rate_and_taxes(self):
        items = [{"amount": 1000, "expense_currency_fx_rate": 1.1}]
        # 1100 converted, plus 20% tax
        assert ExpenseService.compute_total_amount(items, [{"rate": 0.2}]) == 1320

    def test_no_items(self):
        assert ExpenseService.compute_total_amount([]) == 0


@pytest.mark.unit
class TestLegacyPayoutMethod:
    def test_paypal_maps_both_ways(self):
        paypal = PayoutMethod(type=PayoutMethodType.PAYPAL, data={"email": "a@example.com"})
        assert ExpenseService.get_legacy_payout_method_type(paypal) == LegacyPayoutMethod.PAYPAL
        assert ExpenseService.get_payout_method_type_from_legacy("paypal") == PayoutMethodType.PAYPAL

    def test_everything_else_is_other(self):
        assert ExpenseService.get_legacy_payout_method_type(None) == LegacyPayoutMethod.OTHER
        assert ExpenseService.get_payout_method_type_from_legacy("manual") == PayoutMethodType.OTHER


@pytest.mark.unit
class TestPayoutMethodData:
    def test_paypal_requires_exactly_an_email(self):
        assert validate_payout_method_data(PayoutMethodType.PAYPAL, {"email": "a@example.com"})
        with pytest.raises(ValidationError):
            validate_payout_method_data(
                PayoutMethodType.PAYPAL, {"email": "a@example.com", "name": "Alice"}
            )
        with pytest.raises(ValidationError):
            validate_payout_method_data(PayoutMethodType.PAYPAL, {"email": "nope"})

    def test_other_requires_content(self):
        with pytest.raises(ValidationError):
            validate_payout_method_data(PayoutMethodType.OTHER, {})

    def test_bank_account_required_keys(self):
        with pytest.raises(ValidationError):
            validate_payout_method_data(PayoutMethodType.BANK_ACCOUNT, {"currency": "EUR"})

    def test_data_assigned_before_type_is_checked(self):
        with pytest.raises(ValidationError):
            PayoutMethod(data={"email": "a@example.com", "extra": "x"}, type=PayoutMethodType.PAYPAL)

    def test_type_change_rechecks_data(self):
        payout_method = PayoutMethod(type=PayoutMethodType.PAYPAL, data={"email": "a@example.com"})
        with pytest.raises(ValidationError):
            payout_method.type = PayoutMethodType.OTHER
        assert payout_method.type == PayoutMethodType.PAYPAL


@pytest.mark.unit
class TestMemberIsActive:
    def test_no_interval_is_always_active(self):
        assert MemberService.is_active(None, None, None, now=NOW)

    def test_no_donation_is_inactive(self):
        assert not MemberService.is_active(None, ContributionInterval.MONTH, None, now=NOW)

    def test_monthly(self):
        assert MemberService.is_active(None, "month", NOW - timedelta(days=31), now=NOW)
        assert not MemberService.is_active(None, "month", NOW - timedelta(days=32), now=NOW)

    def test_yearly_and_flexible(self):
        assert MemberService.is_active(None, "year", NOW - timedelta(days=365), now=NOW)
        assert not MemberService.is_active(None, "flexible", NOW - timedelta(days=366), now=NOW)


@pytest.mark.unit
class TestTierRules:
    def test_fixed_tier_requires_amount(self):
        tier = Tier(name="Backer", type=TierType.TIER, amount_type=TierAmountType.FIXED)
        with pytest.raises(InvariantError, match="Amount"):
            TierService.validate(tier)

    def test_ticket_can_be_free(self):
        tier = Tier(name="Entry", type=TierType.TICKET, amount_type=TierAmountType.FIXED)
        TierService.validate(tier)
        assert not tier.requires_payment

    def test_default_amount_must_be_a_preset(self):
        tier = Tier(
            name="Flex", amount_type=TierAmountType.FLEXIBLE, amount=700, presets=[500, 1000]
        )
        with pytest.raises(InvariantError, match="Default amount"):
            TierService.validate(tier)

    def test_min_amount_below_presets(self):
        tier = Tier(
            name="Flex", amount_type=TierAmountType.FLEXIBLE, min_amount=800, presets=[500, 1000]
        )
        with pytest.raises(InvariantError, match="minimum amount"):
            TierService.validate(tier)

    def test_fixed_amount_with_flexible_interval(self):
        tier = Tier(
            name="Sponsor",
            amount_type=TierAmountType.FIXED,
            amount=5000,
            interval=ContributionInterval.FLEXIBLE,
        )
        with pytest.raises(InvariantError, match="flexible"):
            TierService.validate(tier)

    def test_presets_are_sorted_and_deduplicated(self):
        tier = Tier(name="Flex", amount_type=TierAmountType.FLEXIBLE, presets=[1000, 500, 500])
        assert tier.presets == [500, 1000]

    def test_requires_payment(self):
        assert Tier(name="A", amount_type=TierAmountType.FIXED, amount=500).requires_payment
        assert not Tier(
            name="B", amount_type=TierAmountType.FLEXIBLE, presets=[0, 500]
        ).requires_payment
        assert not Tier(
            name="C", amount_type=TierAmountType.FLEXIBLE, min_amount=0, presets=[500]
        ).requires_payment
        assert Tier(name="D", amount_type=TierAmountType.FLEXIBLE).requires_payment


@pytest.mark.unit
class TestRecurringExpenseInterval:
    def test_quarter_is_three_months(self):
        start = datetime(2024, 1, 31, tzinfo=timezone.utc)
        assert start + RecurringExpenseInterval.QUARTER.delta == datetime(
            2024, 4, 30, tzinfo=timezone.utc
        )

    def test_is_due(self):
        recurring = RecurringExpense(
            interval=RecurringExpenseInterval.MONTH, last_drafted_at=NOW - timedelta(days=31)
        )
        assert recurring.is_due(NOW)
        recurring.last_drafted_at = NOW - timedelta(days=10)
        assert not recurring.is_due(NOW)

    def test_ended_is_not_due(self):
        recurring = RecurringExpense(
            interval=RecurringExpenseInterval.DAY,
            last_drafted_at=NOW - timedelta(days=5),
            end_at=NOW - timedelta(days=1),
        )
        assert not recurring.is_due(NOW)


@pytest.mark.unit
class TestOrderDescription:
    def test_descriptions(self):
        collective = Collective(name="Babel")
        ticket = Tier(name="Entry", type=TierType.TICKET)
        assert (
            OrderService.generate_description(collective, 1000, "month")
            == "Monthly financial contribution to Babel"
        )
        assert (
            OrderService.generate_description(collective, 1000, None, ticket)
            == "Registration to Babel (Entry)"
        )
        assert (
            OrderService.generate_description(collective, 1000, None)
            == "Financial contribution to Babel"
        )


@pytest.mark.unit
class TestUpdateTargetRoles:
    def test_admins_only(self):
        update = Update(title="News", is_private=False)
        assert UpdateService.get_target_member_roles(
            update, NotificationAudience.COLLECTIVE_ADMINS
        ) == []

    def test_private_updates_exclude_followers(self):
        private = Update(title="News", is_private=True)
        public = Update(title="News", is_private=False)
        assert "FOLLOWER" not in UpdateService.get_target_member_roles(private)
        assert "FOLLOWER" in UpdateService.get_target_member_roles(public)
