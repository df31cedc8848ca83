"""
Subly - Source Package

Personal finance tracking: subscriptions, documents, budgets and
savings goals, kept in sync with a hosted table store.

DESIGN PRINCIPLES:
1. The remote store is the source of truth
2. Local collections are caches reconciled from a change feed
3. Mutations report failures, they never raise
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Subly Team"
