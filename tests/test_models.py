"""
Tests for the Shared Finance Tracker

Test strategy:
1. Unit tests for individual components (models, validators, reports)
2. Integration tests for flows (on in-memory storage)
3. No real API calls in tests (use stubs)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from finance_tracker.models.transaction import (
    Category,
    Currency,
    OwnerScope,
    ScopeKind,
    Transaction,
    TransactionFields,
    TransactionItem,
    TransactionType,
    ensure_aware,
    items_total,
)
from finance_tracker.models.group import (
    Group,
    GroupInvitation,
    GroupMember,
    InvitationStatus,
    MemberRole,
    generate_invite_token,
)
from finance_tracker.models.user import AuthUser, UserSettings
from finance_tracker.models.validation import ValidationIssue, ValidationResult
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        transaction = Transaction(
            date=NOW,
            description="Weekly groceries",
            amount=Decimal("45.50"),
            type=TransactionType.EXPENSE,
            category=Category.GROCERIES,
            created_by="alice",
        )
        assert transaction.amount == Decimal("45.50")
        assert transaction.currency == Currency.USD
        assert transaction.id

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        transaction = Transaction(
            date=NOW,
            description="  Coffee  ",
            amount=Decimal("3"),
            type=TransactionType.EXPENSE,
            category=Category.DINING_OUT,
            created_by="alice",
        )
        assert transaction.description == "Coffee"

    def test_transaction_rejects_non_positive_amount(self):
        """Direction comes from the type, never the sign."""
        with pytest.raises(ValidationError):
            Transaction(
                date=NOW,
                description="Refund",
                amount=Decimal("-5"),
                type=TransactionType.INCOME,
                category=Category.OTHER,
                created_by="alice",
            )

    def test_missing_currency_defaults_to_usd(self):
        """Records written without a currency are read as USD."""
        transaction = Transaction(
            date=NOW,
            description="Old record",
            amount=Decimal("1"),
            currency=None,
            type=TransactionType.EXPENSE,
            category=Category.OTHER,
            created_by="alice",
        )
        assert transaction.currency == Currency.USD

    def test_naive_date_becomes_utc(self):
        """Test that naive datetimes are treated as UTC."""
        assert ensure_aware(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_signed_amount(self):
        fields = dict(
            date=NOW, description="Salary", amount=Decimal("100"),
            category=Category.INCOME, created_by="alice",
        )
        assert Transaction(type=TransactionType.INCOME, **fields).signed_amount == Decimal("100")
        assert Transaction(type=TransactionType.EXPENSE, **fields).signed_amount == Decimal("-100")

    def test_items_total_rounds_to_cents(self):
        """Test the item total is quantity x unit price, rounded half up."""
        items = [
            TransactionItem(description="Milk", quantity=Decimal("2"), unit_price=Decimal("1.25")),
            TransactionItem(description="Cheese", quantity=Decimal("0.333"), unit_price=Decimal("10")),
        ]
        assert items_total(items) == Decimal("5.83")

    def test_itemized_amount_must_match_items(self):
        """An itemized transaction's amount must equal its item total."""
        item = TransactionItem(description="Milk", quantity=Decimal("2"), unit_price=Decimal("1.25"))
        with pytest.raises(ValidationError):
            TransactionFields(
                date=NOW,
                description="Dairy",
                amount=Decimal("3.00"),
                type=TransactionType.EXPENSE,
                category=Category.GROCERIES,
                items=[item],
                has_item_details=True,
                created_by="alice",
            )

        fields = TransactionFields(
            date=NOW,
            description="Dairy",
            amount=Decimal("2.50"),
            type=TransactionType.EXPENSE,
            category=Category.GROCERIES,
            items=[item],
            has_item_details=True,
            created_by="alice",
        )
        assert fields.amount == Decimal("2.50")

    def test_itemized_transaction_needs_items(self):
        with pytest.raises(ValidationError):
            TransactionFields(
                date=NOW,
                description="Empty basket",
                amount=Decimal("1"),
                type=TransactionType.EXPENSE,
                category=Category.GROCERIES,
                has_item_details=True,
                created_by="alice",
            )

    def test_to_input_prefills_edit_form(self):
        item = TransactionItem(description="Milk", quantity=Decimal("2"), unit_price=Decimal("1.25"), unit="liter")
        transaction = Transaction(
            date=NOW,
            description="Dairy",
            amount=Decimal("2.50"),
            type=TransactionType.EXPENSE,
            category=Category.GROCERIES,
            items=[item],
            has_item_details=True,
            created_by="alice",
        )
        data = transaction.to_input()
        assert data.description == "Dairy"
        assert data.has_item_details
        assert data.items[0].unit == "liter"
        assert data.items[0].quantity == Decimal("2")


class TestOwnerScope:
    """Tests for the owner scope partition key."""

    def test_user_scope_path(self):
        scope = OwnerScope.for_user("alice")
        assert scope.collection_path == "users/alice/transactions"
        assert not scope.is_group

    def test_group_scope_path(self):
        scope = OwnerScope.for_group("g1")
        assert scope.collection_path == "groups/g1/transactions"
        assert scope.is_group

    def test_path_round_trip(self):
        scope = OwnerScope.from_collection_path("groups/g1/transactions")
        assert scope.kind == ScopeKind.GROUP
        assert scope.owner_id == "g1"


class TestGroupModels:
    """Tests for group and invitation models."""

    def _invitation(self, **overrides) -> GroupInvitation:
        values = dict(
            group_id="g1",
            group_name="Family",
            invited_by="alice",
            invited_by_name="Alice",
            invited_email="bob@example.com",
            created_at=NOW,
            expires_at=NOW + timedelta(days=7),
        )
        values.update(overrides)
        return GroupInvitation(**values)

    def test_member_ids_follow_members(self):
        """member_ids is always the projection of members."""
        group = Group(
            name="Family",
            created_by="alice",
            members=[
                GroupMember(user_id="alice", email="a@x.com", display_name="Alice", role=MemberRole.ADMIN),
                GroupMember(user_id="bob", email="b@x.com", display_name="Bob"),
            ],
        )
        assert group.member_ids == ["alice", "bob"]
        assert group.has_member("bob")
        assert group.is_admin("alice")
        assert not group.is_admin("bob")
        assert group.get_member("carol") is None

    def test_member_ids_serialized(self):
        group = Group(name="Trip", created_by="alice")
        assert group.model_dump()["member_ids"] == []

    def test_invite_tokens_are_unique(self):
        tokens = {generate_invite_token() for _ in range(50)}
        assert len(tokens) == 50
        assert self._invitation().invite_token != self._invitation().invite_token

    def test_pending_invitation_valid_until_expiry(self):
        """Valid up to and including expires_at."""
        invitation = self._invitation()
        assert invitation.is_valid(NOW + timedelta(days=7))
        assert not invitation.is_valid(NOW + timedelta(days=7, seconds=1))

    def test_effective_status_derives_expired(self):
        """Expiry is derived, never stored."""
        invitation = self._invitation()
        later = NOW + timedelta(days=8)
        assert invitation.effective_status(later) == InvitationStatus.EXPIRED
        assert invitation.status == InvitationStatus.PENDING

    def test_terminal_status_is_not_reported_expired(self):
        invitation = self._invitation(status=InvitationStatus.ACCEPTED)
        assert invitation.effective_status(NOW + timedelta(days=30)) == InvitationStatus.ACCEPTED


class TestUserModels:

    def test_effective_display_name(self):
        assert AuthUser(uid="u", display_name="Alice").effective_display_name == "Alice"
        assert AuthUser(uid="u", email="bob@example.com").effective_display_name == "bob"
        assert AuthUser(uid="u").effective_display_name == "User"

    def test_settings_defaults(self):
        settings = UserSettings(user_id="alice")
        assert settings.currency == Currency.USD
        assert settings.theme == "system"
        assert settings.notifications.email

    def test_settings_rejects_unknown_theme(self):
        with pytest.raises(ValidationError):
            UserSettings(user_id="alice", theme="neon")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id="g1",
            description="Test",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "group_created"
        assert log_dict["entity_id"] == "g1"
        assert "timestamp" in log_dict

    def test_audit_event_to_sheets_row(self):
        """Test conversion to Google Sheets row."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.INVITATION_ACCEPTED,
            correlation_id=correlation_id,
            description="Test",
            details={"group_id": "g1"},
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "invitation_accepted"
        assert row[7] == str(correlation_id)
        assert row[11] == "True"

    def test_builder_permission_denied(self):
        event = AuditEventBuilder.permission_denied(
            action="delete group",
            entity_type="group",
            entity_id="g1",
            actor_id="bob",
            reason="only the creator can delete a group",
        )
        assert event.event_type == AuditEventType.PERMISSION_DENIED
        assert event.severity == AuditSeverity.WARNING
        assert event.actor_id == "bob"

    def test_builder_member_left(self):
        event = AuditEventBuilder.member_left("g1", group_deleted=True, actor_id="alice")
        assert event.entity_id == "g1"
        assert event.details["group_deleted"] is True


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_valid_result(self):
        result = ValidationResult(is_valid=True)
        assert not result.has_errors
        assert result.error_count == 0

    def test_errors_for_field(self):
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing", message="Amount is required", severity="error"),
                ValidationIssue(field="date", issue_type="future_date", message="Future", severity="warning"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.errors_for("amount") == ["Amount is required"]
        assert result.errors_for("date") == []
