"""
Workload Balancer

Picks the assignee for a new follow-up task: the active ADMIN/STAFF user
with the fewest OPEN/IN_PROGRESS tasks.

Tie-breaks, in order:
1. fewer open tasks
2. earlier account creation (seniority)
3. lexically smaller user id

The workload snapshot is queried fresh on every call. Two dispatches that
run at the same moment may pick the same candidate.
"""
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import (
    UserDB, RetentionTaskDB, UserStatus, ACTIVE_TASK_STATUSES, ASSIGNABLE_ROLES,
)
from ...models.retention import StaffCandidate


logger = logging.getLogger(__name__)


def rank_candidates(candidates: Iterable[StaffCandidate]) -> List[StaffCandidate]:
    """Candidates ordered best-first by (open_task_count, created_at, id)."""
    return sorted(
        candidates,
        key=lambda c: (c.open_task_count, c.created_at, c.id),
    )


class WorkloadBalancer:
    """Least-loaded assignment over ADMIN/STAFF users."""

    def __init__(self, db: Session):
        self.db = db

    def get_candidates(self) -> List[StaffCandidate]:
        """Active ADMIN/STAFF users annotated with their open task count."""
        users = self.db.query(UserDB.id, UserDB.created_at).filter(
            UserDB.status == UserStatus.ACTIVE,
            UserDB.role.in_(ASSIGNABLE_ROLES),
        ).all()

        if not users:
            return []

        workload = self._open_task_counts([u.id for u in users])

        return [
            StaffCandidate(
                id=u.id,
                created_at=u.created_at,
                open_task_count=workload.get(u.id, 0),
            )
            for u in users
        ]

    def pick_assignee(self) -> Optional[str]:
        """Id of the least-loaded candidate, or None if nobody is eligible."""
        ranked = rank_candidates(self.get_candidates())
        if not ranked:
            logger.warning("No active ADMIN/STAFF user available for retention task assignment")
            return None
        return ranked[0].id

    def _open_task_counts(self, user_ids: List[str]) -> Dict[str, int]:
        rows = self.db.query(
            RetentionTaskDB.assigned_to_id,
            func.count(RetentionTaskDB.id),
        ).filter(
            RetentionTaskDB.assigned_to_id.in_(user_ids),
            RetentionTaskDB.status.in_(ACTIVE_TASK_STATUSES),
        ).group_by(RetentionTaskDB.assigned_to_id).all()

        return {assigned_to_id: count for assigned_to_id, count in rows if assigned_to_id}
