"""
Tests for the pure task history diff.
"""
from datetime import datetime, timedelta

from app.models.db_models import RetentionTaskStatus
from app.services.retention import build_history_entry


DUE = datetime(2025, 3, 17, 12, 0, 0)


def values(**overrides):
    base = {
        "status": RetentionTaskStatus.OPEN,
        "priority": 1,
        "assigned_to_id": "staff-1",
        "note": None,
        "due_date": DUE,
    }
    base.update(overrides)
    return base


class TestBuildHistoryEntry:

    def test_identical_values_produce_nothing(self):
        assert build_history_entry("task-1", values(), values()) is None

    def test_equal_due_dates_are_not_a_change(self):
        before = values(due_date=DUE)
        after = values(due_date=DUE + timedelta(0))

        assert build_history_entry("task-1", before, after) is None

    def test_due_date_cleared_is_a_change(self):
        entry = build_history_entry("task-1", values(), values(due_date=None))

        assert entry["from_due_date"] == DUE
        assert entry["to_due_date"] is None

    def test_entry_carries_every_pair(self):
        entry = build_history_entry(
            "task-1",
            values(),
            values(status=RetentionTaskStatus.DONE),
            changed_by_user_id="admin-1",
        )

        assert entry["task_id"] == "task-1"
        assert entry["changed_by_user_id"] == "admin-1"
        assert entry["from_status"] == RetentionTaskStatus.OPEN
        assert entry["to_status"] == RetentionTaskStatus.DONE
        assert entry["from_priority"] == entry["to_priority"] == 1
        assert entry["from_assigned_to_id"] == entry["to_assigned_to_id"] == "staff-1"
        assert entry["from_note"] is None and entry["to_note"] is None

    def test_unassigning_is_a_change(self):
        entry = build_history_entry("task-1", values(), values(assigned_to_id=None))

        assert entry["to_assigned_to_id"] is None
