"""
Tests for follow-up task creation: deduplication, cooldown, assignment
and the ADMIN notification.
"""
from datetime import timedelta

from app.models.db_models import (
    NotificationDB, NotificationType, RetentionTaskDB, RetentionTaskStatus, UserRole,
)
from app.services.retention import FollowUpTaskDispatcher


class TestEnsureFollowUpTask:

    def test_creates_open_task_due_in_two_days(self, db, now, make_member, make_user):
        staff = make_user()
        member = make_member()

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is not None
        assert task.member_id == member.id
        assert task.status == RetentionTaskStatus.OPEN
        assert task.priority == 1
        assert task.title == "Follow up high-risk member"
        assert task.due_date == now + timedelta(days=2)
        assert task.assigned_to_id == staff.id
        assert task.created_at == now

    def test_unassigned_when_no_staff(self, db, now, make_member):
        member = make_member()

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is not None
        assert task.assigned_to_id is None

    def test_skips_when_active_task_exists(self, db, now, make_member, make_task):
        member = make_member()
        make_task(member, status=RetentionTaskStatus.IN_PROGRESS)

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is None
        assert db.query(RetentionTaskDB).filter_by(member_id=member.id).count() == 1

    def test_second_call_is_deduplicated(self, db, now, make_member):
        member = make_member()
        dispatcher = FollowUpTaskDispatcher(db)

        first = dispatcher.ensure_follow_up_task(member.id, "Alex Member", now=now)
        second = dispatcher.ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert first is not None
        assert second is None

    def test_skips_inside_cooldown(self, db, now, make_member, make_task):
        member = make_member()
        resolved = now - timedelta(days=5)
        make_task(
            member,
            status=RetentionTaskStatus.DONE,
            resolved_at=resolved,
            created_at=now - timedelta(days=10),
            updated_at=resolved,
        )

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is None

    def test_dismissed_task_touched_recently_counts_for_cooldown(self, db, now, make_member, make_task):
        """DISMISSED tasks carry no resolved_at; updated_at drives the window."""
        member = make_member()
        make_task(
            member,
            status=RetentionTaskStatus.DISMISSED,
            created_at=now - timedelta(days=30),
            updated_at=now - timedelta(days=3),
        )

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is None

    def test_creates_after_cooldown_expires(self, db, now, make_member, make_task):
        member = make_member()
        resolved = now - timedelta(days=20)
        make_task(
            member,
            status=RetentionTaskStatus.DONE,
            resolved_at=resolved,
            created_at=now - timedelta(days=25),
            updated_at=resolved,
        )

        task = FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert task is not None

    def test_notifies_admins(self, db, now, make_member):
        member = make_member()

        FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        notification = db.query(NotificationDB).one()
        assert notification.role == UserRole.ADMIN
        assert notification.type == NotificationType.WARNING
        assert notification.message == "Alex Member was marked as high risk. A follow-up task was created."
        assert notification.action_url == "/admin/retention/tasks"

    def test_no_notification_when_skipped(self, db, now, make_member, make_task):
        member = make_member()
        make_task(member)

        FollowUpTaskDispatcher(db).ensure_follow_up_task(member.id, "Alex Member", now=now)

        assert db.query(NotificationDB).count() == 0
