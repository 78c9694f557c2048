"""
Follow-up Task Dispatcher

Decides whether a HIGH-risk member needs a new follow-up task.

Rules:
- At most one OPEN/IN_PROGRESS task per member.
- No new task within 14 days of a DONE/DISMISSED task being resolved
  (resolved_at) or last touched (updated_at).

When a task is created it is assigned through the WorkloadBalancer and an
ADMIN notification is emitted.
"""
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models.db_models import (
    RetentionTaskDB, RetentionTaskStatus, UserRole,
    ACTIVE_TASK_STATUSES, RESOLVED_TASK_STATUSES,
)
from ..notifications import NotificationService
from .config import FOLLOW_UP_CONFIG, NOTIFICATION_CONFIG
from .workload_balancer import WorkloadBalancer


logger = logging.getLogger(__name__)


class FollowUpTaskDispatcher:
    """Creates deduplicated, cooled-down follow-up tasks."""

    def __init__(
        self,
        db: Session,
        balancer: Optional[WorkloadBalancer] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.db = db
        self.balancer = balancer or WorkloadBalancer(db)
        self.notifications = notifications or NotificationService(db)

    def has_active_task(self, member_id: str) -> bool:
        return self.db.query(RetentionTaskDB.id).filter(
            RetentionTaskDB.member_id == member_id,
            RetentionTaskDB.status.in_(ACTIVE_TASK_STATUSES),
        ).first() is not None

    def in_cooldown(self, member_id: str, now: datetime) -> bool:
        cutoff = now - timedelta(days=FOLLOW_UP_CONFIG["cooldown_days"])
        return self.db.query(RetentionTaskDB.id).filter(
            RetentionTaskDB.member_id == member_id,
            RetentionTaskDB.status.in_(RESOLVED_TASK_STATUSES),
            or_(
                RetentionTaskDB.resolved_at >= cutoff,
                RetentionTaskDB.updated_at >= cutoff,
            ),
        ).first() is not None

    def ensure_follow_up_task(
        self,
        member_id: str,
        display_name: str,
        now: Optional[datetime] = None,
    ) -> Optional[RetentionTaskDB]:
        """
        Create a follow-up task for a member unless one is active or cooling down.

        Returns the new task, or None when skipped.
        """
        now = now or datetime.utcnow()

        if self.has_active_task(member_id):
            logger.debug(f"Member {member_id} already has an active retention task")
            return None

        if self.in_cooldown(member_id, now):
            logger.debug(f"Member {member_id} is inside the follow-up cooldown window")
            return None

        assigned_to_id = self.balancer.pick_assignee()

        task = RetentionTaskDB(
            id=str(uuid4()),
            member_id=member_id,
            assigned_to_id=assigned_to_id,
            status=RetentionTaskStatus.OPEN,
            priority=FOLLOW_UP_CONFIG["priority"],
            title=FOLLOW_UP_CONFIG["title"],
            note=FOLLOW_UP_CONFIG["note"],
            due_date=now + timedelta(days=FOLLOW_UP_CONFIG["due_days"]),
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        self.db.flush()

        logger.info(f"Created retention task {task.id} for member {member_id} (assignee={assigned_to_id})")

        created = NOTIFICATION_CONFIG["follow_up_created"]
        self.notifications.notify_role(
            role=UserRole.ADMIN,
            title=created["title"],
            message=f"{display_name} was marked as high risk. A follow-up task was created.",
            severity=created["type"],
            action_url=NOTIFICATION_CONFIG["action_url"],
        )

        return task
