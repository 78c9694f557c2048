"""Retention Engine - Data Models"""
from .retention import (
    UNSET,
    MemberSignalBundle,
    RiskSnapshot,
    StaffCandidate,
    TaskPatch,
    TRACKED_TASK_FIELDS,
)

__all__ = [
    "UNSET",
    "MemberSignalBundle", "RiskSnapshot", "StaffCandidate", "TaskPatch",
    "TRACKED_TASK_FIELDS",
]
