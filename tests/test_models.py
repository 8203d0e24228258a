"""
Tests for Flatmate data models.

Models enforce the structural invariants (amount precision, split sums,
payer among participants, rotation index) at construction time.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from flatmate.models import (
    ActionResult,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Balance,
    Chore,
    ChoreAssignment,
    ErrorCode,
    Expense,
    ExpenseParticipant,
    HouseholdSettings,
    Member,
    SetupPinInput,
    ValidationIssue,
    ValidationResult,
    to_money,
)


def make_expense(amount="30.00", shares=None, payer=None, currency="usd", **fields):
    payer = payer or uuid4()
    shares = shares or [(payer, amount)]
    return Expense(
        description="Groceries",
        amount=Decimal(amount),
        currency=currency,
        payer_id=payer,
        participants=[
            ExpenseParticipant(member_id=m, amount=Decimal(a)) for m, a in shares
        ],
        created_by=payer,
        **fields,
    )


class TestMemberModels:
    """Tests for household members."""

    def test_member_defaults(self):
        """Test Member defaults."""
        member = Member(name="Amy")
        assert member.is_active
        assert member.share_ratio == 1.0
        assert member.color == "#64748B"
        assert member.created_at.tzinfo is not None

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from member names."""
        assert Member(name="  Amy  ").name == "Amy"

    def test_member_rejects_bad_color(self):
        """Test that colors must be #RRGGBB."""
        with pytest.raises(ValueError):
            Member(name="Amy", color="red")

    def test_member_rejects_ratio_above_one(self):
        with pytest.raises(ValueError):
            Member(name="Amy", share_ratio=1.5)


class TestExpenseModels:
    """Tests for expense invariants."""

    def test_expense_normalizes_currency(self):
        """Test currency codes are upper-cased."""
        assert make_expense().currency == "USD"

    def test_expense_rejects_invalid_currency(self):
        with pytest.raises(ValueError):
            make_expense(currency="US")

    def test_expense_rejects_three_decimal_amount(self):
        """Test amounts are limited to cents."""
        with pytest.raises(ValueError):
            make_expense(amount="10.005")

    def test_expense_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            make_expense(amount="0")

    def test_participant_sum_must_match_amount(self):
        """Test participant amounts must add up to the total."""
        payer, other = uuid4(), uuid4()
        with pytest.raises(ValueError, match="sum to total"):
            make_expense("30.00", [(payer, "10.00"), (other, "10.00")], payer=payer)

    def test_participant_cents_add_up(self):
        """Test an uneven three-way split is accepted."""
        a, b, c = uuid4(), uuid4(), uuid4()
        expense = make_expense("10.00", [(a, "3.34"), (b, "3.33"), (c, "3.33")], payer=a)
        assert len(expense.participants) == 3

    def test_participant_amounts_limited_to_cents(self):
        payer, other = uuid4(), uuid4()
        with pytest.raises(ValueError):
            make_expense("10.00", [(payer, "5.001"), (other, "4.999")], payer=payer)

    def test_payer_must_participate(self):
        payer, other = uuid4(), uuid4()
        with pytest.raises(ValueError, match="Payer must be included"):
            make_expense("10.00", [(other, "10.00")], payer=payer)

    def test_duplicate_participants_rejected(self):
        payer = uuid4()
        with pytest.raises(ValueError, match="only once"):
            make_expense("10.00", [(payer, "5.00"), (payer, "5.00")], payer=payer)

    def test_settled_expense_needs_timestamp(self):
        with pytest.raises(ValueError):
            make_expense(is_settled=True)

    def test_naive_datetime_treated_as_utc(self):
        """Test naive timestamps are stored as UTC."""
        expense = make_expense(occurred_at=datetime(2024, 1, 1, 9, 30))
        assert expense.occurred_at == datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)

    def test_involves(self):
        payer, other = uuid4(), uuid4()
        expense = make_expense("10.00", [(payer, "5.00"), (other, "5.00")], payer=payer)
        assert expense.involves(other)
        assert not expense.involves(uuid4())


class TestBalanceModels:

    def test_balance_rejects_self_debt(self):
        member = uuid4()
        with pytest.raises(ValueError):
            Balance(
                from_member_id=member,
                to_member_id=member,
                amount=Decimal("1.00"),
                currency="USD",
            )

    def test_to_money_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(0.1 + 0.2) == Decimal("0.30")


class TestChoreModels:
    """Tests for chores and assignments."""

    def test_chore_current_assignee(self):
        a, b = uuid4(), uuid4()
        chore = Chore(name="Bins", cadence="weekly", rotation_sequence=[a, b], current_index=1)
        assert chore.current_assignee == b

    def test_chore_index_must_be_inside_sequence(self):
        """Test current_index < len(rotation_sequence)."""
        with pytest.raises(ValueError, match="Current index"):
            Chore(name="Bins", cadence="weekly", rotation_sequence=[uuid4()], current_index=1)

    def test_chore_requires_members(self):
        with pytest.raises(ValueError):
            Chore(name="Bins", cadence="weekly", rotation_sequence=[])

    def test_assignment_completion_flag(self):
        assignment = ChoreAssignment(
            chore_id=uuid4(),
            assigned_to=uuid4(),
            due_date=datetime(2024, 3, 20, tzinfo=timezone.utc),
        )
        assert not assignment.is_completed
        done = assignment.model_copy(update={"completed_at": datetime.now(timezone.utc)})
        assert done.is_completed


class TestSecurityModels:

    def test_settings_lock_state(self):
        now = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        settings = HouseholdSettings(locked_until=now + timedelta(minutes=5))
        assert settings.is_locked(now)
        assert not settings.is_locked(now + timedelta(minutes=5))
        assert not settings.pin_configured

    def test_pin_input_rejects_letters(self):
        with pytest.raises(ValueError):
            SetupPinInput(pin="12a4")

    def test_pin_input_rejects_long_pin(self):
        with pytest.raises(ValueError):
            SetupPinInput(pin="1234567")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        expense_id = uuid4()
        event = AuditEventBuilder.expense_changed(
            AuditEventType.EXPENSE_CREATED, expense_id, "42.00", "USD"
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "expense_created"
        assert log_dict["entity_type"] == "expense"
        assert log_dict["entity_id"] == str(expense_id)

    def test_pin_rejection_is_warning(self):
        event = AuditEventBuilder.pin_event(AuditEventType.PIN_REJECTED, "PIN rejected")
        assert event.severity == AuditSeverity.WARNING

    def test_audit_description_length(self):
        with pytest.raises(ValueError):
            AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x" * 501)


class TestResults:
    """Tests for validation and workflow results."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            subject="expense",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="payer_id", issue_type="inactive_member", message="Bad payer"),
                ValidationIssue(field="currency", issue_type="mixed_currency", message="Mixed", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.field_errors == {"payer_id": ["Bad payer"]}

    def test_failure_from_semantic_validation(self):
        """Test semantic failures map to rule violations."""
        result = ValidationResult(
            subject="expense",
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[ValidationIssue(field="payer_id", issue_type="x", message="Bad payer")],
        )
        action = ActionResult.from_validation(result)
        assert not action.success
        assert action.error == "Bad payer"
        assert action.error_code == ErrorCode.RULE_VIOLATION

    def test_failure_from_schema_validation(self):
        result = ValidationResult(
            subject="member",
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
        )
        action = ActionResult.from_validation(result)
        assert action.error == "Invalid member"
        assert action.error_code == ErrorCode.VALIDATION
