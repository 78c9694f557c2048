"""
Task History Diff

Pure comparison of a task's tracked fields before and after a mutation.
Used by both the single and the bulk update paths.

A history row is produced only when at least one tracked field differs.
When it is produced it carries every from/to pair, changed or not.
"""
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ...models.retention import TRACKED_TASK_FIELDS


def _same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a == b


def has_changes(before: Mapping[str, Any], after: Mapping[str, Any]) -> bool:
    for name in TRACKED_TASK_FIELDS:
        if name == "due_date":
            if not _same_instant(before.get(name), after.get(name)):
                return True
        elif before.get(name) != after.get(name):
            return True
    return False


def build_history_entry(
    task_id: str,
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    changed_by_user_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Column values for a RetentionTaskHistoryDB row, or None for a no-op.

    Args:
        task_id: Task being mutated
        before: Tracked field values prior to the mutation
        after: Tracked field values after the mutation
        changed_by_user_id: Acting user, if known
    """
    if not has_changes(before, after):
        return None

    entry = {"task_id": task_id, "changed_by_user_id": changed_by_user_id}
    for name in TRACKED_TASK_FIELDS:
        entry[f"from_{name}"] = before.get(name)
        entry[f"to_{name}"] = after.get(name)
    return entry


def tracked_values(task) -> Dict[str, Any]:
    """Snapshot of the tracked fields of a task row."""
    return {name: getattr(task, name) for name in TRACKED_TASK_FIELDS}
