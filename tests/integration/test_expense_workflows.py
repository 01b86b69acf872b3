"""Integration tests for expense workflows."""

from datetime import datetime, timedelta, timezone

import pytest

from fundhost.config import get_settings
from fundhost.constants.activities import ActivityType
from fundhost.constants.expenses import ExpenseStatus, ExpenseType
from fundhost.constants.roles import MemberRole
from fundhost.constants.transactions import TransactionKind, TransactionType
from fundhost.errors import InvariantError, NotFoundError
from fundhost.models.comment import Comment
from fundhost.models.expense import Expense
from fundhost.models.recurring_expense import RecurringExpenseInterval
from fundhost.models.transactions_import import TransactionsImportType
from fundhost.models.transactions_import_row import TransactionsImportRowStatus
from fundhost.models.types import utcnow
from fundhost.services.recurring_expense_service import E2E_DRAFT_KEY


@pytest.fixture
def expense(services, user, collective):
    return services.expenses.create(
        user,
        collective,
        user.collective,
        "Team dinner",
        items=[{"amount": 3000, "description": "Pizza"}, {"amount": 2000, "description": "Drinks"}],
        tags=["Food"],
    ).entity


@pytest.mark.integration
class TestExpenseLifecycle:
    """Status transitions and the events they produce."""

    def test_create_computes_amount_from_items(self, services, user, collective):
        result = services.expenses.create(
            user,
            collective,
            user.collective,
            "Hosting",
            items=[{"amount": 1000}, {"amount": 2500}],
        )
        assert result.entity.amount == 3500
        assert result.entity.currency == "USD"
        assert len(result.entity.items) == 2
        assert result.event_types() == [ActivityType.COLLECTIVE_EXPENSE_CREATED]

    def test_drafts_emit_no_event(self, services, user, collective):
        result = services.expenses.create(
            user, collective, user.collective, "Later", amount=100, status=ExpenseStatus.DRAFT
        )
        assert result.events == []

    def test_approve_then_pay(self, services, db_session, user, collective, expense):
        approved = services.expenses.set_approved(expense, user.id)
        assert approved.entity.status == ExpenseStatus.APPROVED

        paid = services.expenses.set_paid(expense, user.id)
        assert expense.status == ExpenseStatus.PAID
        assert expense.host_collective_id == collective.host_collective_id
        assert ActivityType.COLLECTIVE_EXPENSE_PAID in paid.event_types()

        # The payee became a contributor of the collective
        contributor = services.members.find(
            collective.id, user.collective_id, MemberRole.CONTRIBUTOR
        )
        assert contributor is not None

    def test_paid_expense_cannot_be_approved_again(self, services, db_session, user, expense):
        services.expenses.set_approved(expense, user.id)
        services.expenses.set_paid(expense, user.id)

        with pytest.raises(InvariantError, match="Can't approve an expense that is PAID"):
            services.expenses.set_approved(expense, user.id)
        with pytest.raises(InvariantError, match="Can't reject an expense that is PAID"):
            services.expenses.set_rejected(expense, user.id)

        db_session.expire_all()
        assert db_session.get(Expense, expense.id).status == ExpenseStatus.PAID

    def test_events_are_recorded_as_activities(self, services, user, expense):
        result = services.expenses.set_approved(expense, user.id)
        services.activities.record(result.events)

        activities = services.activities.list_for_expense(expense.id)
        assert [activity.type for activity in activities] == [
            ActivityType.COLLECTIVE_EXPENSE_APPROVED.value
        ]
        assert activities[0].data["expense"]["status"] == "APPROVED"
        assert activities[0].host_collective_id == expense.collective.host_collective_id

    def test_set_error_keeps_message(self, services, user, expense):
        result = services.expenses.set_error(expense, user.id, "Insufficient balance")
        assert expense.status == ExpenseStatus.ERROR
        assert result.events[0].data["error"] == "Insufficient balance"

    def test_verify_requires_unverified(self, services, user, collective, expense):
        with pytest.raises(InvariantError):
            services.expenses.verify(expense, user)

        unverified = services.expenses.create(
            user, collective, user.collective, "Invited", amount=100,
            status=ExpenseStatus.UNVERIFIED,
        ).entity
        result = services.expenses.verify(unverified, user)
        assert unverified.status == ExpenseStatus.PENDING
        assert ActivityType.COLLECTIVE_EXPENSE_CREATED in result.event_types()


@pytest.mark.integration
class TestExpenseDestruction:
    def test_destroy_cascades(self, services, db_session, user, collective, expense):
        services.comments.create(user, collective, "<p>Receipt?</p>", expense_id=expense.id)
        transactions_import = services.imports.create_import(
            collective.id, TransactionsImportType.CSV, "Bank", "January"
        )
        row = services.imports.add_rows(
            transactions_import,
            [{"source_id": "tx-1", "date": utcnow(), "amount": -5000, "currency": "USD"}],
        )[0]
        services.imports.link_row_to_expense(row.id, expense.id)

        result = services.expenses.destroy(expense, user.id)
        assert result.event_types() == [ActivityType.COLLECTIVE_EXPENSE_DELETED]

        db_session.expire_all()
        assert services.expenses.get_by_id(expense.id) is None
        assert all(item.deleted_at is not None for item in expense.items)
        assert services.comments.list_for_expense(expense.id) == []
        assert db_session.query(Comment).filter(Comment.expense_id == expense.id).count() == 1

        db_session.refresh(row)
        assert row.status == TransactionsImportRowStatus.PENDING
        assert row.expense_id is None


@pytest.mark.integration
class TestExpenseReporting:
    def test_most_popular_tags(self, services, user, collective, expense):
        services.expenses.create(
            user, collective, user.collective, "Travel", amount=100, tags=["travel", "food"]
        )
        tags = services.expenses.get_most_popular_expense_tags_for_collective(collective.id)
        assert tags[0] == {"id": "food", "tag": "food", "count": 2}
        assert {"id": "travel", "tag": "travel", "count": 1} in tags

    def test_amount_spent_per_tag(self, services, user, collective, expense):
        services.transactions.create_double_entry(
            TransactionType.DEBIT,
            -5000,
            collective.id,
            user.collective_id,
            kind=TransactionKind.EXPENSE,
            currency="USD",
            expense_id=expense.id,
        )
        services.expenses.set_paid(expense, user.id)

        assert services.expenses.get_collective_expenses_tags(collective.id) == [
            {"label": "food", "count": 1, "amount": 5000, "currency": "USD"}
        ]

    def test_total_expenses_from_user(self, services, user, collective, expense):
        services.expenses.create(user, collective, user.collective, "Travel", amount=100)
        rejected = services.expenses.create(
            user, collective, user.collective, "Nope", amount=999
        ).entity
        services.expenses.set_rejected(rejected, user.id)

        totals = services.expenses.get_total_expenses_from_user(
            user.id, since=utcnow() - timedelta(days=1)
        )
        assert totals == {"USD": 5100}


@pytest.mark.integration
class TestRecurringExpenses:
    """Drafting the next occurrence of a recurring expense."""

    def test_create_next_expense(self, services, monkeypatch, user, collective, expense):
        monkeypatch.setattr(get_settings(), "deterministic_draft_keys", True)
        recurring = services.recurring_expenses.create_from_expense(
            expense, RecurringExpenseInterval.MONTH, "2099-01-01T00:00:00Z"
        )
        assert expense.recurring_expense_id == recurring.id
        assert recurring.end_at.year == 2099

        result = services.recurring_expenses.create_next_expense(recurring)
        draft = result.entity
        assert draft.status == ExpenseStatus.DRAFT
        assert draft.amount == 5000
        assert draft.recurring_expense_id == recurring.id
        assert draft.data["draft_key"] == E2E_DRAFT_KEY
        assert len(draft.data["items"]) == 2

        event = result.events[0]
        assert event.type == ActivityType.COLLECTIVE_EXPENSE_RECURRING_DRAFTED
        website = get_settings().website_url.rstrip("/")
        assert event.data["invite_url"] == (
            f"{website}/{collective.slug}/expenses/{draft.id}?key={E2E_DRAFT_KEY}"
        )
        assert event.data["description"] == "Team dinner"

        # The draft is now the last expense of the schedule
        assert services.recurring_expenses.get_last_expense(recurring).id == draft.id

    def test_create_next_expense_without_previous(self, services, db_session, user, expense):
        recurring = services.recurring_expenses.create_from_expense(
            expense, RecurringExpenseInterval.WEEK
        )
        expense.recurring_expense_id = None
        db_session.commit()
        with pytest.raises(NotFoundError):
            services.recurring_expenses.create_next_expense(recurring)

    def test_due_schedules(self, services, db_session, user, collective, expense):
        now = datetime(2024, 6, 15, tzinfo=timezone.utc)
        monthly = services.recurring_expenses.create_from_expense(
            expense, RecurringExpenseInterval.MONTH
        )
        other = services.expenses.create(
            user, collective, user.collective, "Weekly", amount=100
        ).entity
        weekly = services.recurring_expenses.create_from_expense(
            other, RecurringExpenseInterval.WEEK
        )
        ended = services.expenses.create(
            user, collective, user.collective, "Ended", amount=100
        ).entity
        expired = services.recurring_expenses.create_from_expense(
            ended, RecurringExpenseInterval.DAY, now - timedelta(days=1)
        )

        monthly.last_drafted_at = now - timedelta(days=40)
        weekly.last_drafted_at = now - timedelta(days=3)
        expired.last_drafted_at = now - timedelta(days=10)
        db_session.commit()

        due = services.recurring_expenses.get_recurring_expenses_due(now)
        assert [recurring.id for recurring in due] == [monthly.id]


@pytest.mark.integration
class TestCardCharges:
    def test_paid_charges_without_receipt(self, services, user, collective, host):
        card = services.virtual_cards.create(
            "card_123", collective.id, host.id, "STRIPE", name="Ops card"
        )
        charge = services.expenses.create(
            user,
            collective,
            user.collective,
            "AWS",
            items=[{"amount": 1200}],
            type=ExpenseType.CHARGE,
            virtual_card_id=card.id,
        ).entity
        services.expenses.set_paid(charge, user.id)

        pending = services.expenses.find_pending_card_charges(virtual_card_id=card.id)
        assert [expense.id for expense in pending] == [charge.id]
