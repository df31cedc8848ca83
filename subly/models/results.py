"""
Operation result models.

Sync engines never raise across their public boundary. Every mutation
returns one of these instead.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncResult(BaseModel):
    """Result-or-error pair returned by create/update/delete."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Optional[Any] = Field(
        default=None,
        description="The canonical row returned by the store, if any"
    )
    error: Optional[str] = Field(
        default=None,
        description="Failure message, None on success"
    )

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "SyncResult":
        return cls(data=data)

    @classmethod
    def failure(cls, error: str) -> "SyncResult":
        return cls(error=error)


class ContributionStatus(str, Enum):
    """
    Outcome of a goal contribution.

    PARTIAL is the one state where a failure follows a partial success:
    the transaction exists but the goal balance was not advanced.
    """
    APPLIED = "applied"
    REJECTED = "rejected"
    PARTIAL = "partial"


class ContributionResult(BaseModel):
    """Result of GoalSync.add_contribution."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: ContributionStatus
    transaction: Optional[Any] = None
    goal: Optional[Any] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ContributionStatus.APPLIED

    @property
    def is_partial(self) -> bool:
        return self.status == ContributionStatus.PARTIAL
