"""
Task Lifecycle Manager

Single and bulk mutations of retention tasks with an append-only history.

resolved_at rule (both paths):
- status set to DONE           -> resolved_at = now
- status set to anything else  -> resolved_at = None
- status not supplied          -> resolved_at untouched

Status transitions are deliberately permissive: any status value may
overwrite any other, including reopening DONE or DISMISSED tasks.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ...models.db_models import (
    RetentionTaskDB, RetentionTaskHistoryDB, RetentionTaskStatus,
    UserDB, UserRole, ASSIGNABLE_ROLES,
)
from ...models.retention import TaskPatch
from ..notifications import NotificationService
from .config import NOTIFICATION_CONFIG
from .errors import InvalidAssigneeError, NotFoundError, ValidationError
from .task_history import build_history_entry, tracked_values


logger = logging.getLogger(__name__)


class TaskLifecycleManager:
    """Applies operator updates to retention tasks."""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # =========================================================================
    # SINGLE UPDATE
    # =========================================================================

    def update_task(
        self,
        task_id: str,
        patch: TaskPatch,
        acting_user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RetentionTaskDB:
        """
        Apply a partial update to one task.

        Raises:
            NotFoundError: task or assignee does not exist
            InvalidAssigneeError: assignee is not ADMIN or STAFF
        """
        now = now or datetime.utcnow()

        task = self.db.query(RetentionTaskDB).filter(RetentionTaskDB.id == task_id).first()
        if task is None:
            raise NotFoundError(f"Retention task with ID {task_id} not found")

        values = self._prepare_values(patch, now)

        before = tracked_values(task)
        for column, value in values.items():
            setattr(task, column, value)
        task.updated_at = now
        after = tracked_values(task)

        entry = build_history_entry(task.id, before, after, acting_user_id)
        if entry:
            self.db.add(RetentionTaskHistoryDB(id=str(uuid4()), created_at=now, **entry))

        self.db.flush()

        if task.status == RetentionTaskStatus.DONE:
            completed = NOTIFICATION_CONFIG["task_completed"]
            self.notifications.notify_role(
                role=UserRole.ADMIN,
                title=completed["title"],
                message=f'Task "{task.title}" was completed.',
                severity=completed["type"],
                action_url=NOTIFICATION_CONFIG["action_url"],
            )

        return task

    # =========================================================================
    # BULK UPDATE
    # =========================================================================

    def bulk_update_tasks(
        self,
        task_ids: List[str],
        patch: TaskPatch,
        acting_user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, int]:
        """
        Apply the same partial update to many tasks with one UPDATE statement.

        History is diffed per task against its pre-update snapshot, falling
        back to the snapshot value for fields the patch does not set.

        Returns:
            {"updated_count": rows affected by the bulk write}

        Raises:
            ValidationError: patch supplies no mutable field
            NotFoundError / InvalidAssigneeError: bad assignee
        """
        if patch.is_empty():
            raise ValidationError("At least one field to update is required")

        now = now or datetime.utcnow()
        values = self._prepare_values(patch, now)

        task_ids = list(dict.fromkeys(task_ids))
        if not task_ids:
            return {"updated_count": 0}

        snapshots = {
            task.id: tracked_values(task)
            for task in self.db.query(RetentionTaskDB).filter(RetentionTaskDB.id.in_(task_ids)).all()
        }

        updated_count = self.db.query(RetentionTaskDB).filter(
            RetentionTaskDB.id.in_(task_ids)
        ).update({**values, "updated_at": now}, synchronize_session="fetch")

        history_rows = []
        for task_id, before in snapshots.items():
            after = {name: values.get(name, value) for name, value in before.items()}
            entry = build_history_entry(task_id, before, after, acting_user_id)
            if entry:
                history_rows.append(RetentionTaskHistoryDB(id=str(uuid4()), created_at=now, **entry))

        if history_rows:
            self.db.add_all(history_rows)
        self.db.flush()

        logger.info(
            f"Bulk retention task update: requested={len(task_ids)}, "
            f"updated={updated_count}, history_rows={len(history_rows)}"
        )

        if values.get("status") == RetentionTaskStatus.DONE and updated_count > 0:
            completed = NOTIFICATION_CONFIG["tasks_completed"]
            self.notifications.notify_role(
                role=UserRole.ADMIN,
                title=completed["title"],
                message=f"{updated_count} retention task(s) were marked as completed.",
                severity=completed["type"],
                action_url=NOTIFICATION_CONFIG["action_url"],
            )

        return {"updated_count": updated_count}

    # =========================================================================
    # HELPERS
    # =========================================================================

    def validate_assignee(self, assigned_to_id: str) -> UserDB:
        assignee = self.db.query(UserDB).filter(UserDB.id == assigned_to_id).first()
        if assignee is None:
            raise NotFoundError(f"Assignee user with ID {assigned_to_id} not found")
        if assignee.role not in ASSIGNABLE_ROLES:
            raise InvalidAssigneeError()
        return assignee

    def _prepare_values(self, patch: TaskPatch, now: datetime) -> Dict[str, Any]:
        """Validated column values for a patch, including the resolved_at side effect."""
        values = patch.provided()

        if values.get("assigned_to_id") is not None:
            self.validate_assignee(values["assigned_to_id"])

        if "status" in values:
            status = patch.status_value()
            values["status"] = status
            values["resolved_at"] = now if status == RetentionTaskStatus.DONE else None

        return values
