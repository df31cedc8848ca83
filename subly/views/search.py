"""
Search and category filtering over the local collections.

Matching is a case-insensitive substring test on entity-specific
fields, combined with an optional exact category match. An empty query
matches everything.
"""

from typing import Iterable, Optional, TypeVar

from subly.models.entities import Budget, Document, Goal, Subscription


T = TypeVar("T")


def _contains(value: Optional[str], query: str) -> bool:
    return value is not None and query in value.lower()


def _category_matches(item, category: Optional[str]) -> bool:
    return not category or item.category == category


def filter_subscriptions(
    subscriptions: Iterable[Subscription],
    query: str = "",
    category: Optional[str] = None,
) -> list[Subscription]:
    """Match on service name, notes and category."""
    query = query.lower()
    return [
        sub for sub in subscriptions
        if (
            _contains(sub.service_name, query)
            or _contains(sub.notes, query)
            or _contains(sub.category, query)
        )
        and _category_matches(sub, category)
    ]


def filter_documents(
    documents: Iterable[Document],
    query: str = "",
    category: Optional[str] = None,
) -> list[Document]:
    """Match on title, filename and any tag."""
    query = query.lower()
    return [
        doc for doc in documents
        if (
            _contains(doc.title, query)
            or _contains(doc.file_name, query)
            or any(_contains(tag, query) for tag in doc.tags)
        )
        and _category_matches(doc, category)
    ]


def filter_budgets(
    budgets: Iterable[Budget],
    query: str = "",
    category: Optional[str] = None,
) -> list[Budget]:
    query = query.lower()
    return [
        budget for budget in budgets
        if _contains(budget.category, query) and _category_matches(budget, category)
    ]


def filter_goals(goals: Iterable[Goal], query: str = "") -> list[Goal]:
    """Match on name. Goals have no category."""
    query = query.lower()
    return [goal for goal in goals if _contains(goal.name, query)]


def category_facets(items: Iterable[T]) -> list[str]:
    """Distinct categories, in order of first appearance."""
    return list(dict.fromkeys(item.category for item in items))
