"""
Data models for storage layer.

Defines the subscription quota row, the activity ledger entry and the
stored brief artifact.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class PlanTier(Enum):
    """Subscription plans. Only PRO is exempt from the token ceiling."""
    TRIAL = "trial"
    STANDARD = "standard"
    PRO = "pro"

    @classmethod
    def from_value(cls, value: Optional[str]) -> "PlanTier":
        """Map a stored plan name to a tier, treating unknown plans as TRIAL."""
        if not value:
            return cls.TRIAL
        try:
            return cls(value.lower())
        except ValueError:
            return cls.TRIAL


@dataclass(frozen=True)
class AccountQuota:
    """Snapshot of an account's subscription usage counters.
    
    tokens_limit may be None when the subscription row carries no ceiling;
    the entitlement guard substitutes the configured default.
    """
    id: int
    account_id: str
    plan: PlanTier
    tokens_used: int
    tokens_limit: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class ActivityRecord:
    """Immutable audit entry written after a successful generation.
    
    Append-only: once written, these records are never modified.
    """
    account_id: str
    kind: str
    title: str
    description: str
    tokens_used: int
    created_at: datetime
    id: Optional[int] = None


@dataclass(frozen=True)
class BriefArtifact:
    """Stored copy of a generated strategic brief."""
    account_id: str
    title: str
    objective: str
    model: str
    tone: Optional[str]
    result: str
    tokens_used: int
    created_at: datetime
