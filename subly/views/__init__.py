"""Derived views: dashboard statistics and search."""

from subly.views.dashboard import (
    DEFAULT_RENEWAL_WINDOW_DAYS,
    BudgetUsage,
    DashboardStats,
    GoalProgress,
    budget_alerts,
    budget_usage,
    budget_usage_ratio,
    compute_dashboard_stats,
    days_until_renewal,
    goal_progress,
    goal_progress_for,
    monthly_equivalent,
    monthly_spend,
    recent_documents,
    upcoming_renewals,
    yearly_spend,
)
from subly.views.search import (
    category_facets,
    filter_budgets,
    filter_documents,
    filter_goals,
    filter_subscriptions,
)

__all__ = [
    "DEFAULT_RENEWAL_WINDOW_DAYS",
    "BudgetUsage",
    "DashboardStats",
    "GoalProgress",
    "budget_alerts",
    "budget_usage",
    "budget_usage_ratio",
    "compute_dashboard_stats",
    "days_until_renewal",
    "goal_progress",
    "goal_progress_for",
    "monthly_equivalent",
    "monthly_spend",
    "recent_documents",
    "upcoming_renewals",
    "yearly_spend",
    "category_facets",
    "filter_budgets",
    "filter_documents",
    "filter_goals",
    "filter_subscriptions",
]
