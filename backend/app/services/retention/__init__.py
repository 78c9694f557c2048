"""
Retention Engine Services

Risk scoring, nightly recompute, follow-up task dispatch, workload
balancing and task lifecycle management for member retention.
"""

from .risk_scoring import score_member, classify_score
from .signal_reader import SignalReader
from .risk_recompute import RiskRecomputeBatch, run_nightly_recompute
from .follow_up_dispatcher import FollowUpTaskDispatcher
from .workload_balancer import WorkloadBalancer, rank_candidates
from .task_history import build_history_entry
from .task_lifecycle import TaskLifecycleManager
from .reporting import RetentionReportingService
from .errors import (
    RetentionServiceError,
    NotFoundError,
    InvalidAssigneeError,
    ValidationError,
)

__all__ = [
    'score_member',
    'classify_score',
    'SignalReader',
    'RiskRecomputeBatch',
    'run_nightly_recompute',
    'FollowUpTaskDispatcher',
    'WorkloadBalancer',
    'rank_candidates',
    'build_history_entry',
    'TaskLifecycleManager',
    'RetentionReportingService',
    # Errors
    'RetentionServiceError',
    'NotFoundError',
    'InvalidAssigneeError',
    'ValidationError',
]
