"""
Tests for Subly

Test strategy:
1. Unit tests for individual components (models, views, stores)
2. Integration tests for sync flows (against in-memory backends)
3. No real API calls in tests (no Google Sheets, no Cloudinary)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from subly.models.entities import (
    BillingCycle,
    BudgetCreate,
    BudgetUpdate,
    ContributionFrequency,
    Document,
    DocumentCreate,
    GoalCreate,
    SubscriptionCreate,
    SubscriptionUpdate,
    TransactionCreate,
    TransactionType,
    parse_tags,
)
from subly.models.results import ContributionResult, ContributionStatus, SyncResult
from subly.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestEntityModels:
    """Tests for entity Pydantic models."""

    def test_subscription_defaults(self):
        """Test SubscriptionCreate defaults."""
        sub = SubscriptionCreate(
            user_id="user-1",
            service_name="Netflix",
            cost=Decimal("15.99"),
            renewal_date=date(2024, 2, 1),
        )
        assert sub.billing_cycle == BillingCycle.MONTHLY
        assert sub.category == "other"
        assert sub.is_active is True
        assert sub.notes is None

    def test_subscription_strips_whitespace(self):
        """Test that whitespace is stripped from the service name."""
        sub = SubscriptionCreate(
            user_id="user-1",
            service_name="  Spotify  ",
            cost=Decimal("9.99"),
            renewal_date=date(2024, 2, 1),
        )
        assert sub.service_name == "Spotify"

    def test_subscription_rejects_negative_cost(self):
        """Test that negative costs are rejected."""
        with pytest.raises(ValueError):
            SubscriptionCreate(
                user_id="user-1",
                service_name="Test",
                cost=Decimal("-1"),
                renewal_date=date(2024, 2, 1),
            )

    def test_subscription_to_row_is_json_safe(self):
        """Test that rows carry strings for dates and decimals."""
        row = SubscriptionCreate(
            user_id="user-1",
            service_name="Netflix",
            cost=Decimal("15.99"),
            renewal_date=date(2024, 2, 1),
            billing_cycle=BillingCycle.YEARLY,
        ).to_row()
        assert row["cost"] == "15.99"
        assert row["renewal_date"] == "2024-02-01"
        assert row["billing_cycle"] == "yearly"

    def test_budget_alert_threshold_range(self):
        """Test that the alert threshold must be 1-100."""
        with pytest.raises(ValueError):
            BudgetCreate(
                user_id="user-1",
                category="food",
                monthly_limit=Decimal("500"),
                alert_threshold=0,
            )
        with pytest.raises(ValueError):
            BudgetCreate(
                user_id="user-1",
                category="food",
                monthly_limit=Decimal("500"),
                alert_threshold=101,
            )

    def test_budget_defaults(self):
        budget = BudgetCreate(user_id="user-1", category="food", monthly_limit=Decimal("500"))
        assert budget.current_spending == Decimal("0")
        assert budget.alert_threshold == 80

    def test_goal_rejects_end_before_start(self):
        """Test that a goal cannot end before it starts."""
        with pytest.raises(ValueError):
            GoalCreate(
                user_id="user-1",
                name="Vacation",
                target_amount=Decimal("1000"),
                start_date=date(2024, 6, 1),
                end_date=date(2024, 5, 1),
            )

    def test_goal_defaults(self):
        goal = GoalCreate(
            user_id="user-1",
            name="Emergency fund",
            target_amount=Decimal("5000"),
            start_date=date(2024, 1, 1),
        )
        assert goal.current_amount == Decimal("0")
        assert goal.contribution_frequency == ContributionFrequency.MONTHLY
        assert goal.end_date is None

    def test_transaction_allows_goal_contribution_type(self):
        tx = TransactionCreate(
            user_id="user-1",
            amount=Decimal("50"),
            transaction_type=TransactionType.GOAL_CONTRIBUTION,
            goal_id="goal-1",
        )
        assert tx.to_row()["transaction_type"] == "goal_contribution"
        assert tx.budget_id is None

    def test_document_parses_server_row(self):
        """Test that a stored row parses into a Document."""
        doc = Document.model_validate({
            "id": "doc-1",
            "user_id": "user-1",
            "title": "Car Insurance Receipt",
            "category": "insurance",
            "file_url": "memory://documents/user-1/1.pdf",
            "file_name": "receipt.pdf",
            "file_size": 1024,
            "tags": ["auto"],
            "storage_path": "user-1/1.pdf",
            "upload_date": "2024-01-15T10:00:00+00:00",
        })
        assert doc.upload_date == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)
        assert doc.tags == ["auto"]

    def test_document_requires_title(self):
        with pytest.raises(ValidationError):
            DocumentCreate(
                user_id="user-1",
                title="",
                file_url="x",
                file_name="x.pdf",
                file_size=1,
            )


class TestPartialUpdates:
    """Tests for the <Entity>Update models."""

    def test_only_set_fields_are_sent(self):
        patch = SubscriptionUpdate(cost=Decimal("12.50"))
        assert patch.to_fields() == {"cost": "12.50"}

    def test_explicit_none_is_sent(self):
        """Clearing a field is different from leaving it alone."""
        patch = SubscriptionUpdate(notes=None)
        assert patch.to_fields() == {"notes": None}

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            BudgetUpdate(user_id="someone-else")

    def test_update_keeps_numeric_invariants(self):
        with pytest.raises(ValidationError):
            BudgetUpdate(monthly_limit=Decimal("-5"))


class TestParseTags:

    def test_splits_and_trims(self):
        assert parse_tags("auto, insurance ,2024") == ["auto", "insurance", "2024"]

    def test_drops_blanks(self):
        assert parse_tags(" , ,auto,,") == ["auto"]

    def test_empty_input(self):
        assert parse_tags("") == []


class TestResultModels:

    def test_sync_result_success(self):
        result = SyncResult.success({"id": "x"})
        assert result.ok
        assert result.data == {"id": "x"}

    def test_sync_result_failure(self):
        result = SyncResult.failure("boom")
        assert not result.ok
        assert result.data is None
        assert result.error == "boom"

    def test_contribution_partial_is_distinct_from_rejected(self):
        partial = ContributionResult(status=ContributionStatus.PARTIAL, error="x")
        rejected = ContributionResult(status=ContributionStatus.REJECTED, error="x")
        assert partial.is_partial and not partial.ok
        assert not rejected.is_partial and not rejected.ok


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTITY_CREATED,
            description="Created row in goals",
        )
        assert event.event_type == AuditEventType.ENTITY_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            description="Deleted row",
            table="subscriptions",
            entity_id="sub-1",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "entity_deleted"
        assert log_dict["table"] == "subscriptions"
        assert log_dict["entity_id"] == "sub-1"

    def test_contribution_partial_builder(self):
        """Test the partial-contribution builder carries both ids."""
        correlation_id = uuid4()
        event = AuditEventBuilder.contribution_partial(
            goal_id="goal-1",
            transaction_id="tx-1",
            amount="50",
            error="timeout",
            user_id="user-1",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.CONTRIBUTION_PARTIAL
        assert event.severity == AuditSeverity.ERROR
        assert event.details["transaction_id"] == "tx-1"
        assert event.correlation_id == correlation_id

    def test_mutation_failed_builder(self):
        event = AuditEventBuilder.mutation_failed(
            table="budgets",
            operation="update",
            error="not found",
            user_id="user-1",
            entity_id="b-1",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"operation": "update"}
        assert event.error_message == "not found"
