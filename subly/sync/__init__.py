"""Sync engines keeping local collections in step with the store."""

from subly.sync.engine import ChangeFeed, CollectionWatcher, EntitySync, EntitySyncConfig
from subly.sync.feed import ChangeFeedHub
from subly.sync.hooks import (
    BUDGETS,
    DOCUMENTS,
    GOAL_CONTRIBUTION_CATEGORY,
    GOALS,
    SUBSCRIPTIONS,
    TRANSACTIONS,
    BudgetSync,
    DocumentSync,
    GoalSync,
    SubscriptionSync,
    TransactionSync,
    create_sync_engines,
)

__all__ = [
    "ChangeFeed",
    "CollectionWatcher",
    "EntitySync",
    "EntitySyncConfig",
    "ChangeFeedHub",
    "BUDGETS",
    "DOCUMENTS",
    "GOAL_CONTRIBUTION_CATEGORY",
    "GOALS",
    "SUBSCRIPTIONS",
    "TRANSACTIONS",
    "BudgetSync",
    "DocumentSync",
    "GoalSync",
    "SubscriptionSync",
    "TransactionSync",
    "create_sync_engines",
]
