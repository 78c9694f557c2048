"""
Notification Service

Best-effort in-app notification sink.

Each notification is written inside a savepoint so that a failed insert
never poisons the enclosing task or risk write. Failures are logged and
swallowed; callers get None back.
"""
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ..models.db_models import NotificationDB, NotificationType, UserRole


logger = logging.getLogger(__name__)


class NotificationService:
    """Creates role-wide and per-user notifications."""

    def __init__(self, db: Session):
        self.db = db

    def notify_role(
        self,
        role: UserRole,
        title: str,
        message: str,
        severity: NotificationType = NotificationType.IN_APP,
        action_url: Optional[str] = None,
    ) -> Optional[NotificationDB]:
        """Notify every user holding `role`."""
        return self._create(
            role=role,
            user_id=None,
            title=title,
            message=message,
            severity=severity,
            action_url=action_url,
        )

    def notify_user(
        self,
        user_id: str,
        title: str,
        message: str,
        severity: NotificationType = NotificationType.IN_APP,
        action_url: Optional[str] = None,
    ) -> Optional[NotificationDB]:
        """Notify a single user."""
        return self._create(
            role=None,
            user_id=user_id,
            title=title,
            message=message,
            severity=severity,
            action_url=action_url,
        )

    def _create(
        self,
        role: Optional[UserRole],
        user_id: Optional[str],
        title: str,
        message: str,
        severity: NotificationType,
        action_url: Optional[str],
    ) -> Optional[NotificationDB]:
        target = role.value if role else f"user {user_id}"
        try:
            with self.db.begin_nested():
                notification = NotificationDB(
                    id=str(uuid4()),
                    role=role,
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=self._normalize_type(severity),
                    action_url=action_url,
                )
                self.db.add(notification)
            return notification
        except Exception:
            logger.exception(f"Failed to create notification for {target}: {title}")
            return None

    @staticmethod
    def _normalize_type(severity) -> NotificationType:
        """Unknown severities fall back to IN_APP."""
        if isinstance(severity, NotificationType):
            return severity
        try:
            return NotificationType(str(severity).upper())
        except ValueError:
            return NotificationType.IN_APP
