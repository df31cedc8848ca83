"""
Core Data Models for Subly

These models define the schemas for every row that flows between the
remote collection store and the local sync engines.
They are designed to:
1. Enforce the numeric invariants (costs and limits are never negative)
2. Parse the store's ISO-8601 strings into dates and datetimes
3. Serialize back to JSON-safe rows for the store

Every entity comes in three shapes:
- <Entity>Create: the insert payload, without server-assigned fields
- <Entity>: the canonical row as returned by the store
- <Entity>Update: a partial update, only explicitly-set fields are sent

DESIGN DECISION: Identities and user keys are opaque strings.
The store decides what they look like; we only compare them.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillingCycle(str, Enum):
    """How often a subscription renews."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ContributionFrequency(str, Enum):
    """How often the user plans to contribute to a goal."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class TransactionType(str, Enum):
    """
    Kind of money movement.

    GOAL_CONTRIBUTION transactions are the only way a goal's
    current_amount advances.
    """
    EXPENSE = "expense"
    INCOME = "income"
    GOAL_CONTRIBUTION = "goal_contribution"


# Suggestions offered by the forms. Categories remain free text.
SUBSCRIPTION_CATEGORIES = [
    "entertainment",
    "productivity",
    "business",
    "health",
    "education",
    "other",
]

DOCUMENT_CATEGORIES = [
    "receipts",
    "contracts",
    "invoices",
    "warranties",
    "insurance",
    "general",
]

BUDGET_CATEGORIES = [
    "food",
    "rent",
    "entertainment",
    "transportation",
    "subscriptions",
    "utilities",
    "healthcare",
    "shopping",
    "education",
    "miscellaneous",
]


def parse_tags(text: str) -> list[str]:
    """Split comma-separated tag input, dropping blanks."""
    return [tag.strip() for tag in text.split(",") if tag.strip()]


class _Row(BaseModel):
    """Common config for every stored row."""
    model_config = ConfigDict(str_strip_whitespace=True)

    def to_row(self) -> dict:
        """JSON-safe dict for the store."""
        return self.model_dump(mode="json")


class _Patch(BaseModel):
    """Common config for partial updates."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    def to_fields(self) -> dict:
        """Only the fields the caller actually set."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class SubscriptionCreate(_Row):
    """A recurring service the user pays for."""

    user_id: str = Field(..., min_length=1)
    service_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name of the service (e.g., Netflix)"
    )
    cost: Decimal = Field(
        ...,
        ge=0,
        description="Cost per billing cycle"
    )
    renewal_date: date = Field(
        ...,
        description="Next renewal date"
    )
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    category: str = Field(default="other", max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True


class Subscription(SubscriptionCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class SubscriptionUpdate(_Patch):
    service_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    renewal_date: Optional[date] = None
    billing_cycle: Optional[BillingCycle] = None
    category: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=1000)
    is_active: Optional[bool] = None


# =============================================================================
# DOCUMENTS
# =============================================================================

class DocumentCreate(_Row):
    """
    An uploaded financial document.

    The file itself lives in file storage; the row only references it.
    """

    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    category: str = Field(default="general", max_length=100)
    file_url: str = Field(
        ...,
        description="Publicly resolvable URL of the stored file"
    )
    file_name: str = Field(
        ...,
        description="Original filename as uploaded"
    )
    file_size: int = Field(
        ...,
        ge=0,
        description="Size in bytes"
    )
    tags: list[str] = Field(default_factory=list)
    storage_path: Optional[str] = Field(
        default=None,
        description="Key in file storage, used to delete the file"
    )


class Document(DocumentCreate):
    id: str
    upload_date: datetime


class DocumentUpdate(_Patch):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    tags: Optional[list[str]] = None
    storage_path: Optional[str] = None


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetCreate(_Row):
    """
    A monthly spending limit for one category.

    One active budget per category is the intent, but it is not enforced.
    """

    user_id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    monthly_limit: Decimal = Field(..., ge=0)
    current_spending: Decimal = Field(default=Decimal("0"), ge=0)
    alert_threshold: int = Field(
        default=80,
        ge=1,
        le=100,
        description="Percentage of the limit that triggers an alert"
    )
    is_active: bool = True


class Budget(BudgetCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class BudgetUpdate(_Patch):
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    monthly_limit: Optional[Decimal] = Field(default=None, ge=0)
    current_spending: Optional[Decimal] = Field(default=None, ge=0)
    alert_threshold: Optional[int] = Field(default=None, ge=1, le=100)
    is_active: Optional[bool] = None


# =============================================================================
# GOALS
# =============================================================================

class GoalCreate(_Row):
    """
    A savings goal.

    CRITICAL: current_amount only advances through contributions.
    """

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    target_amount: Decimal = Field(..., ge=0)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    start_date: date
    end_date: Optional[date] = None
    contribution_frequency: ContributionFrequency = ContributionFrequency.MONTHLY
    is_active: bool = True

    @field_validator('end_date')
    @classmethod
    def validate_end_date(cls, v: Optional[date], info: ValidationInfo) -> Optional[date]:
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("End date cannot be before start date")
        return v


class Goal(GoalCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class GoalUpdate(_Patch):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    target_amount: Optional[Decimal] = Field(default=None, ge=0)
    current_amount: Optional[Decimal] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    contribution_frequency: Optional[ContributionFrequency] = None
    is_active: Optional[bool] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCreate(_Row):
    """A single money movement, optionally linked to a budget or a goal."""

    user_id: str = Field(..., min_length=1)
    amount: Decimal
    description: str = Field(default="", max_length=500)
    category: str = Field(default="other", max_length=100)
    transaction_type: TransactionType = TransactionType.EXPENSE
    budget_id: Optional[str] = None
    goal_id: Optional[str] = None


class Transaction(TransactionCreate):
    id: str
    transaction_date: datetime
    created_at: datetime


class TransactionUpdate(_Patch):
    amount: Optional[Decimal] = None
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    transaction_type: Optional[TransactionType] = None
    budget_id: Optional[str] = None
    goal_id: Optional[str] = None


# =============================================================================
# PROFILE
# =============================================================================

class Profile(BaseModel):
    """The signed-in user's profile row (read-only here)."""

    id: str
    email: str
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
