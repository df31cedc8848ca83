"""
Data Models Package

This package contains all Pydantic models used in Subly.
All rows flowing between the store and the sync engines must conform to these schemas.
"""

from subly.models.entities import (
    BUDGET_CATEGORIES,
    DOCUMENT_CATEGORIES,
    SUBSCRIPTION_CATEGORIES,
    BillingCycle,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    ContributionFrequency,
    Document,
    DocumentCreate,
    DocumentUpdate,
    Goal,
    GoalCreate,
    GoalUpdate,
    Profile,
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    parse_tags,
)
from subly.models.events import (
    ChangeEvent,
    DeleteEvent,
    InsertEvent,
    UpdateEvent,
    parse_change_event,
)
from subly.models.results import (
    ContributionResult,
    ContributionStatus,
    SyncResult,
)
from subly.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entity models
    "BUDGET_CATEGORIES",
    "DOCUMENT_CATEGORIES",
    "SUBSCRIPTION_CATEGORIES",
    "BillingCycle",
    "Budget",
    "BudgetCreate",
    "BudgetUpdate",
    "ContributionFrequency",
    "Document",
    "DocumentCreate",
    "DocumentUpdate",
    "Goal",
    "GoalCreate",
    "GoalUpdate",
    "Profile",
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "Transaction",
    "TransactionCreate",
    "TransactionType",
    "TransactionUpdate",
    "parse_tags",
    # Change feed
    "ChangeEvent",
    "DeleteEvent",
    "InsertEvent",
    "UpdateEvent",
    "parse_change_event",
    # Results
    "ContributionResult",
    "ContributionStatus",
    "SyncResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
