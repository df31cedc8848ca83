"""
Per-Entity Sync Engines

The five entity types the app keeps in sync, each one a configured
EntitySync. Canonical orderings:
- subscriptions: renewal_date ascending
- documents: upload_date descending
- budgets: active only, category ascending
- goals: active only, created_at descending
- transactions: transaction_date descending

Only budgets and goals append their own creates locally. The others wait
for the change feed or a refresh.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

from subly.audit import create_correlation_id
from subly.models.audit import AuditEventBuilder
from subly.models.entities import (
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Document,
    DocumentCreate,
    DocumentUpdate,
    Goal,
    GoalCreate,
    GoalUpdate,
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)
from subly.models.results import ContributionResult, ContributionStatus
from subly.services.storage import CollectionStore
from subly.sync.engine import ChangeFeed, EntitySync, EntitySyncConfig


SUBSCRIPTIONS = EntitySyncConfig(
    table="subscriptions",
    entity=Subscription,
    create_model=SubscriptionCreate,
    update_model=SubscriptionUpdate,
    order_by="renewal_date",
    ascending=True,
)

DOCUMENTS = EntitySyncConfig(
    table="documents",
    entity=Document,
    create_model=DocumentCreate,
    update_model=DocumentUpdate,
    order_by="upload_date",
    ascending=False,
)

BUDGETS = EntitySyncConfig(
    table="budgets",
    entity=Budget,
    create_model=BudgetCreate,
    update_model=BudgetUpdate,
    order_by="category",
    ascending=True,
    filters={"is_active": True},
    optimistic_append=True,
)

GOALS = EntitySyncConfig(
    table="goals",
    entity=Goal,
    create_model=GoalCreate,
    update_model=GoalUpdate,
    order_by="created_at",
    ascending=False,
    filters={"is_active": True},
    optimistic_append=True,
)

TRANSACTIONS = EntitySyncConfig(
    table="transactions",
    entity=Transaction,
    create_model=TransactionCreate,
    update_model=TransactionUpdate,
    order_by="transaction_date",
    ascending=False,
)

GOAL_CONTRIBUTION_CATEGORY = "goal_contribution"


class SubscriptionSync(EntitySync[Subscription]):

    def __init__(self, store: CollectionStore, **kwargs):
        super().__init__(store, SUBSCRIPTIONS, **kwargs)


class DocumentSync(EntitySync[Document]):

    def __init__(self, store: CollectionStore, **kwargs):
        super().__init__(store, DOCUMENTS, **kwargs)


class BudgetSync(EntitySync[Budget]):

    def __init__(self, store: CollectionStore, **kwargs):
        super().__init__(store, BUDGETS, **kwargs)


class TransactionSync(EntitySync[Transaction]):

    def __init__(self, store: CollectionStore, **kwargs):
        super().__init__(store, TRANSACTIONS, **kwargs)


class GoalSync(EntitySync[Goal]):
    """Goals, plus the contribution flow that advances them."""

    def __init__(self, store: CollectionStore, **kwargs):
        super().__init__(store, GOALS, **kwargs)

    async def add_contribution(
        self,
        goal_id: str,
        amount: Union[Decimal, int, float, str],
        description: str = "",
    ) -> ContributionResult:
        """
        Record a contribution and advance the goal's balance.

        Flow:
        1. Insert a goal_contribution transaction referencing the goal
        2. Increment the goal's current_amount by the amount, evaluated
           by the store

        A goal that is not in the current collection (unknown, inactive,
        or another user's) is REJECTED before anything is written.
        If step 1 fails nothing was written: REJECTED.
        If step 2 fails the transaction exists without the matching
        balance change: PARTIAL. Nothing is rolled back.

        Like update(), the local collection is not touched; the new
        balance arrives through the change feed or a refresh.
        """
        correlation_id = create_correlation_id()
        user_id = self.user_id

        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            return await self._reject(goal_id, str(amount), f"Invalid amount: {amount}", correlation_id)

        if not amount.is_finite() or amount <= 0:
            return await self._reject(
                goal_id, str(amount), "Contribution amount must be positive", correlation_id
            )
        if user_id is None:
            return await self._reject(goal_id, str(amount), "No signed-in user", correlation_id)
        if self.get(goal_id) is None:
            # Only goals in this user's collection can be advanced
            return await self._reject(goal_id, str(amount), f"Goal not found: {goal_id}", correlation_id)

        # Step 1: the transaction record
        try:
            payload = TransactionCreate(
                user_id=user_id,
                goal_id=goal_id,
                amount=amount,
                description=description,
                category=GOAL_CONTRIBUTION_CATEGORY,
                transaction_type=TransactionType.GOAL_CONTRIBUTION,
            )
            row = await self._store.insert(TRANSACTIONS.table, payload.to_row())
            transaction = Transaction.model_validate(row)
        except Exception as e:
            return await self._reject(goal_id, str(amount), str(e), correlation_id)

        # Step 2: the balance, as a delta
        try:
            goal_row = await self._store.increment(
                self.config.table, goal_id, "current_amount", str(amount)
            )
            goal = Goal.model_validate(goal_row)
        except Exception as e:
            self._logger.error(
                "contribution_partial",
                goal_id=goal_id,
                transaction_id=transaction.id,
                correlation_id=str(correlation_id),
                error=str(e),
            )
            await self._audit(
                AuditEventBuilder.contribution_partial(
                    goal_id=goal_id,
                    transaction_id=transaction.id,
                    amount=str(amount),
                    error=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            )
            return ContributionResult(
                status=ContributionStatus.PARTIAL,
                transaction=transaction,
                error=str(e),
            )

        self._error = None
        self._logger.info(
            "contribution_applied",
            goal_id=goal_id,
            transaction_id=transaction.id,
            amount=str(amount),
        )
        await self._audit(
            AuditEventBuilder.contribution_applied(
                goal_id=goal_id,
                transaction_id=transaction.id,
                amount=str(amount),
                user_id=user_id,
                correlation_id=correlation_id,
            )
        )
        return ContributionResult(
            status=ContributionStatus.APPLIED,
            transaction=transaction,
            goal=goal,
        )

    async def _reject(
        self,
        goal_id: str,
        amount: str,
        error: str,
        correlation_id: UUID,
    ) -> ContributionResult:
        self._logger.warning("contribution_rejected", goal_id=goal_id, amount=amount, error=error)
        await self._audit(
            AuditEventBuilder.contribution_rejected(
                goal_id=goal_id,
                amount=amount,
                error=error,
                user_id=self.user_id,
                correlation_id=correlation_id,
            )
        )
        return ContributionResult(status=ContributionStatus.REJECTED, error=error)


def create_sync_engines(
    store: CollectionStore,
    feed: Optional[ChangeFeed] = None,
    **kwargs,
) -> dict[str, EntitySync]:
    """All five engines over one store, keyed by table name."""
    engines: list[EntitySync] = [
        SubscriptionSync(store, feed=feed, **kwargs),
        DocumentSync(store, feed=feed, **kwargs),
        BudgetSync(store, feed=feed, **kwargs),
        GoalSync(store, feed=feed, **kwargs),
        TransactionSync(store, feed=feed, **kwargs),
    ]
    return {engine.config.table: engine for engine in engines}
