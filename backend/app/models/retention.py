"""
Retention Engine - In-memory Models

Ephemeral structures passed between the signal reader, the scoring engine,
the workload balancer and the task lifecycle manager. None of these are
persisted directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

from .db_models import RetentionRiskLevel, RetentionTaskStatus


class _Unset:
    """Marker for a patch field the caller did not supply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class MemberSignalBundle:
    """Raw activity signals for one member, as read from the store."""
    member_id: str
    full_name: str = ""
    email: str = ""
    last_check_in_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    unpaid_pending_count: int = 0
    has_recent_rejected_payment: bool = False


@dataclass
class RiskSnapshot:
    """Computed churn risk for one member at one point in time."""
    member_id: str
    full_name: str
    email: str
    risk_level: RetentionRiskLevel
    score: int
    reasons: List[str] = field(default_factory=list)
    last_check_in_at: Optional[datetime] = None
    days_since_check_in: Optional[int] = None
    subscription_ends_at: Optional[datetime] = None
    unpaid_pending_count: int = 0
    last_evaluated_at: Optional[datetime] = None

    def to_row_values(self) -> Dict[str, Any]:
        """Column values for MemberRetentionRiskDB (every field, no merge)."""
        return {
            "risk_level": self.risk_level,
            "score": self.score,
            "reasons": list(self.reasons),
            "last_check_in_at": self.last_check_in_at,
            "days_since_check_in": self.days_since_check_in,
            "subscription_ends_at": self.subscription_ends_at,
            "unpaid_pending_count": self.unpaid_pending_count,
            "last_evaluated_at": self.last_evaluated_at,
        }


@dataclass
class StaffCandidate:
    """ADMIN/STAFF identity annotated with its current workload."""
    id: str
    created_at: datetime
    open_task_count: int = 0


@dataclass
class TaskPatch:
    """
    Partial update for a retention task.

    Fields left as UNSET are not touched. An explicit None for note,
    due_date or assigned_to_id is a value like any other.
    """
    status: Any = UNSET
    priority: Any = UNSET
    assigned_to_id: Any = UNSET
    note: Any = UNSET
    due_date: Any = UNSET

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskPatch":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def provided(self) -> Dict[str, Any]:
        """Only the fields the caller supplied. None never clears status or priority."""
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            if value is None and f.name in NON_NULLABLE_TASK_FIELDS:
                continue
            values[f.name] = value
        return values

    def is_empty(self) -> bool:
        return not self.provided()

    def status_value(self) -> Optional[RetentionTaskStatus]:
        if self.status is UNSET or self.status is None:
            return None
        return RetentionTaskStatus(self.status)


TRACKED_TASK_FIELDS = ("status", "priority", "assigned_to_id", "note", "due_date")
NON_NULLABLE_TASK_FIELDS = ("status", "priority")
