"""
Tests for the best-effort notification sink.
"""
from unittest.mock import MagicMock

from app.models.db_models import NotificationDB, NotificationType, UserRole
from app.services.notifications import NotificationService


class TestNotificationService:

    def test_notify_role_persists(self, db):
        notification = NotificationService(db).notify_role(
            role=UserRole.ADMIN,
            title="Hello",
            message="Something happened",
            severity=NotificationType.WARNING,
            action_url="/admin/retention/tasks",
        )

        assert notification is not None
        stored = db.query(NotificationDB).one()
        assert stored.role == UserRole.ADMIN
        assert stored.user_id is None
        assert stored.type == NotificationType.WARNING
        assert stored.read is False

    def test_notify_user_persists(self, db, make_user):
        staff = make_user()

        NotificationService(db).notify_user(staff.id, title="Assigned", message="New task")

        stored = db.query(NotificationDB).one()
        assert stored.user_id == staff.id
        assert stored.role is None
        assert stored.type == NotificationType.IN_APP

    def test_unknown_severity_falls_back_to_in_app(self, db):
        NotificationService(db).notify_role(UserRole.STAFF, "t", "m", severity="loud")

        assert db.query(NotificationDB).one().type == NotificationType.IN_APP

    def test_string_severity_is_normalized(self, db):
        NotificationService(db).notify_role(UserRole.STAFF, "t", "m", severity="success")

        assert db.query(NotificationDB).one().type == NotificationType.SUCCESS

    def test_failure_is_swallowed(self):
        mock_db = MagicMock()
        mock_db.begin_nested.side_effect = RuntimeError("savepoint failed")

        result = NotificationService(mock_db).notify_role(UserRole.ADMIN, "t", "m")

        assert result is None
