"""
Pytest fixtures for testing

Everything runs against in-memory backends. Async code is driven with
asyncio.run from plain test functions.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from itertools import count

import pytest

from subly.audit import AuditLogger
from subly.config import AppSettings, SyncSettings
from subly.models.entities import Budget, Document, Goal, Subscription
from subly.services.files import InMemoryFileStorage
from subly.services.storage import InMemoryCollectionStore


USER = "user-1"
OTHER_USER = "user-2"

_ids = count(1)


def _stamp() -> datetime:
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Fresh in-memory collection store."""
    return InMemoryCollectionStore()


@pytest.fixture
def files():
    return InMemoryFileStorage(max_size_bytes=1024)


@pytest.fixture
def audit_logger():
    """Local-only audit logger, events kept in recent_events."""
    return AuditLogger()


@pytest.fixture
def sync_settings():
    return SyncSettings(dedupe_inserts=True, refresh_after_mutation=True)


@pytest.fixture
def app_settings():
    return AppSettings(renewal_window_days=7, max_upload_size_mb=1)


# =============================================================================
# Payload factories (insert payloads, as a form would submit them)
# =============================================================================

@pytest.fixture
def subscription_payload():
    def make(**overrides) -> dict:
        payload = {
            "user_id": USER,
            "service_name": "Netflix",
            "cost": "15.99",
            "renewal_date": "2024-02-01",
            "billing_cycle": "monthly",
            "category": "entertainment",
        }
        payload.update(overrides)
        return payload
    return make


@pytest.fixture
def budget_payload():
    def make(**overrides) -> dict:
        payload = {
            "user_id": USER,
            "category": "food",
            "monthly_limit": "500",
            "current_spending": "0",
            "alert_threshold": 80,
            "is_active": True,
        }
        payload.update(overrides)
        return payload
    return make


@pytest.fixture
def goal_payload():
    def make(**overrides) -> dict:
        payload = {
            "user_id": USER,
            "name": "Vacation",
            "target_amount": "500",
            "current_amount": "0",
            "start_date": "2024-01-01",
            "is_active": True,
        }
        payload.update(overrides)
        return payload
    return make


# =============================================================================
# Entity factories (canonical rows, for the pure view functions)
# =============================================================================

@pytest.fixture
def make_subscription():
    def make(**overrides) -> Subscription:
        data = {
            "id": f"sub-{next(_ids)}",
            "user_id": USER,
            "service_name": "Netflix",
            "cost": Decimal("10"),
            "renewal_date": date(2024, 2, 1),
            "billing_cycle": "monthly",
            "category": "entertainment",
            "created_at": _stamp(),
            "updated_at": _stamp(),
        }
        data.update(overrides)
        return Subscription.model_validate(data)
    return make


@pytest.fixture
def make_budget():
    def make(**overrides) -> Budget:
        data = {
            "id": f"budget-{next(_ids)}",
            "user_id": USER,
            "category": "food",
            "monthly_limit": Decimal("500"),
            "current_spending": Decimal("0"),
            "alert_threshold": 80,
            "created_at": _stamp(),
            "updated_at": _stamp(),
        }
        data.update(overrides)
        return Budget.model_validate(data)
    return make


@pytest.fixture
def make_goal():
    def make(**overrides) -> Goal:
        data = {
            "id": f"goal-{next(_ids)}",
            "user_id": USER,
            "name": "Vacation",
            "target_amount": Decimal("500"),
            "current_amount": Decimal("0"),
            "start_date": date(2024, 1, 1),
            "created_at": _stamp(),
            "updated_at": _stamp(),
        }
        data.update(overrides)
        return Goal.model_validate(data)
    return make


@pytest.fixture
def make_document():
    def make(**overrides) -> Document:
        data = {
            "id": f"doc-{next(_ids)}",
            "user_id": USER,
            "title": "Receipt",
            "category": "receipts",
            "file_url": "memory://documents/user-1/1.pdf",
            "file_name": "receipt.pdf",
            "file_size": 100,
            "tags": [],
            "upload_date": _stamp(),
        }
        data.update(overrides)
        return Document.model_validate(data)
    return make
