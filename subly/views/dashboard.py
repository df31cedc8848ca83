"""
Dashboard Statistics

Pure functions over the current collections. Nothing here talks to the
store or holds state; recompute whenever a collection changes.

Money stays in Decimal throughout. Ratios that would divide by zero are
defined as 0 instead of raising.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from subly.models.entities import BillingCycle, Budget, Document, Goal, Subscription


DEFAULT_RENEWAL_WINDOW_DAYS = 7
RECENT_DOCUMENTS_LIMIT = 5

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

# Multipliers from one billing period to one month
_MONTHLY_FACTORS: dict[BillingCycle, Decimal] = {
    BillingCycle.WEEKLY: Decimal("4.33"),
    BillingCycle.MONTHLY: Decimal("1"),
}
_MONTHLY_DIVISORS: dict[BillingCycle, Decimal] = {
    BillingCycle.QUARTERLY: Decimal("3"),
    BillingCycle.YEARLY: Decimal("12"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_instant(day: date) -> datetime:
    """Midnight UTC at the start of a calendar day."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

def monthly_equivalent(cost: Decimal, billing_cycle: BillingCycle) -> Decimal:
    """
    Cost normalized to one month.

    weekly x 4.33, monthly x 1, quarterly / 3, yearly / 12
    """
    if billing_cycle in _MONTHLY_DIVISORS:
        return cost / _MONTHLY_DIVISORS[billing_cycle]
    return cost * _MONTHLY_FACTORS.get(billing_cycle, Decimal("1"))


def monthly_spend(subscriptions: Iterable[Subscription]) -> Decimal:
    """Sum of monthly equivalents over active subscriptions."""
    return sum(
        (monthly_equivalent(sub.cost, sub.billing_cycle) for sub in subscriptions if sub.is_active),
        _ZERO,
    )


def yearly_spend(subscriptions: Iterable[Subscription]) -> Decimal:
    return monthly_spend(subscriptions) * 12


def upcoming_renewals(
    subscriptions: Iterable[Subscription],
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_RENEWAL_WINDOW_DAYS,
) -> list[Subscription]:
    """
    Active subscriptions renewing strictly between now and now + window.

    A renewal date counts as midnight UTC of that day. Both ends of the
    window are exclusive, so a renewal at exactly now is not upcoming.
    """
    now = _aware(now or _utcnow())
    horizon = now + timedelta(days=window_days)
    return [
        sub for sub in subscriptions
        if sub.is_active and now < _as_instant(sub.renewal_date) < horizon
    ]


def days_until_renewal(subscription: Subscription, now: Optional[datetime] = None) -> int:
    """Calendar days from today to the renewal date (negative if past)."""
    now = _aware(now or _utcnow())
    return (subscription.renewal_date - now.date()).days


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetUsage(BaseModel):
    """Spending state of one budget."""

    budget_id: str
    category: str
    spent_percentage: Decimal = Field(..., description="current_spending / monthly_limit x 100")
    remaining_amount: Decimal = Field(..., description="Negative when over budget")
    is_over_budget: bool
    is_near_limit: bool = Field(..., description="At or above the alert threshold")


def _spent_percentage(budget: Budget) -> Decimal:
    if budget.monthly_limit == 0:
        # Any spending against a zero limit is over it
        return _HUNDRED if budget.current_spending > 0 else _ZERO
    return budget.current_spending / budget.monthly_limit * _HUNDRED


def budget_usage(budget: Budget) -> BudgetUsage:
    spent = _spent_percentage(budget)
    return BudgetUsage(
        budget_id=budget.id,
        category=budget.category,
        spent_percentage=spent,
        remaining_amount=budget.monthly_limit - budget.current_spending,
        is_over_budget=(
            spent > _HUNDRED
            or (budget.monthly_limit == 0 and budget.current_spending > 0)
        ),
        is_near_limit=spent >= budget.alert_threshold,
    )


def budget_alerts(budgets: Iterable[Budget]) -> list[Budget]:
    """Active budgets whose spending reached their alert threshold."""
    return [
        budget for budget in budgets
        if budget.is_active and _spent_percentage(budget) >= budget.alert_threshold
    ]


def budget_usage_ratio(budgets: Iterable[Budget]) -> Decimal:
    """
    Total spending / total limit over active budgets.

    0 when there are no active budgets or all limits are 0.
    """
    active = [budget for budget in budgets if budget.is_active]
    limit = sum((budget.monthly_limit for budget in active), _ZERO)
    if limit == 0:
        return _ZERO
    spent = sum((budget.current_spending for budget in active), _ZERO)
    return spent / limit


# =============================================================================
# GOALS
# =============================================================================

class GoalProgress(BaseModel):
    """Progress of one goal towards its target."""

    goal_id: str
    name: str
    percentage: Decimal = Field(..., description="Unclamped, can exceed 100")
    display_percentage: Decimal = Field(..., description="Clamped to 100 for progress bars")
    remaining_amount: Decimal
    is_completed: bool
    deadline_label: Optional[str] = Field(
        default=None,
        description="'N days remaining', 'Overdue', or None"
    )


def _goal_ratio(goal: Goal) -> Decimal:
    if goal.target_amount == 0:
        return _ZERO
    return goal.current_amount / goal.target_amount


def goal_progress(goals: Iterable[Goal]) -> Decimal:
    """
    Mean completion percentage over active goals.

    Individual ratios are not clamped, so one over-funded goal can
    lift the mean above what the others reach. 0 without active goals.
    """
    active = [goal for goal in goals if goal.is_active]
    if not active:
        return _ZERO
    total = sum((_goal_ratio(goal) for goal in active), _ZERO)
    return total / len(active) * _HUNDRED


def goal_progress_for(goal: Goal, now: Optional[datetime] = None) -> GoalProgress:
    now = _aware(now or _utcnow())
    percentage = _goal_ratio(goal) * _HUNDRED
    completed = percentage >= _HUNDRED

    label = None
    if not completed and goal.end_date is not None:
        # Whole days, truncated towards zero
        days = int((_as_instant(goal.end_date) - now) / timedelta(days=1))
        label = "Overdue" if days <= 0 else f"{days} days remaining"

    return GoalProgress(
        goal_id=goal.id,
        name=goal.name,
        percentage=percentage,
        display_percentage=min(percentage, _HUNDRED),
        remaining_amount=goal.target_amount - goal.current_amount,
        is_completed=completed,
        deadline_label=label,
    )


# =============================================================================
# DOCUMENTS
# =============================================================================

def recent_documents(documents: Iterable[Document], limit: int = RECENT_DOCUMENTS_LIMIT) -> list[Document]:
    """First documents of the collection in its current order."""
    return list(documents)[:limit]


# =============================================================================
# AGGREGATE
# =============================================================================

class DashboardStats(BaseModel):
    """Everything the dashboard shows, computed in one pass."""

    total_monthly_spend: Decimal = _ZERO
    total_yearly_spend: Decimal = _ZERO
    active_subscriptions: int = 0
    upcoming_renewals: int = 0
    documents_count: int = 0
    total_budget_limit: Decimal = _ZERO
    total_budget_spent: Decimal = _ZERO
    budget_usage_ratio: Decimal = _ZERO
    active_goals: int = 0
    total_goal_progress: Decimal = _ZERO

    @property
    def budget_usage_percentage(self) -> Decimal:
        return self.budget_usage_ratio * _HUNDRED


def compute_dashboard_stats(
    subscriptions: Iterable[Subscription] = (),
    documents: Iterable[Document] = (),
    budgets: Iterable[Budget] = (),
    goals: Iterable[Goal] = (),
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_RENEWAL_WINDOW_DAYS,
) -> DashboardStats:
    subscriptions = list(subscriptions)
    budgets = list(budgets)
    goals = list(goals)
    active_budgets = [budget for budget in budgets if budget.is_active]
    monthly = monthly_spend(subscriptions)

    return DashboardStats(
        total_monthly_spend=monthly,
        total_yearly_spend=monthly * 12,
        active_subscriptions=sum(1 for sub in subscriptions if sub.is_active),
        upcoming_renewals=len(upcoming_renewals(subscriptions, now, window_days)),
        documents_count=len(list(documents)),
        total_budget_limit=sum((budget.monthly_limit for budget in active_budgets), _ZERO),
        total_budget_spent=sum((budget.current_spending for budget in active_budgets), _ZERO),
        budget_usage_ratio=budget_usage_ratio(budgets),
        active_goals=sum(1 for goal in goals if goal.is_active),
        total_goal_progress=goal_progress(goals),
    )
