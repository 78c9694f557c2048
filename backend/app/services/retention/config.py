"""
Retention Engine Configuration

Scoring weights, risk thresholds and follow-up task defaults.
"""
from ...models.db_models import NotificationType


# =============================================================================
# RISK SCORING
# =============================================================================

RETENTION_CONFIG = {
    # Check-in recency
    "checkin_inactivity_days": 14,
    "checkin_points": 50,
    # Subscription expiry
    "subscription_expiry_window_days": 7,
    "subscription_expiry_points": 25,
    # Payments
    "pending_payment_points": 20,
    "rejected_payment_window_days": 30,
    "rejected_payment_points": 15,
    # Score bounds and level thresholds
    "min_score": 0,
    "max_score": 100,
    "high_threshold": 60,
    "medium_threshold": 30,
}

# Reason codes, in the order points are added
REASON_NO_CHECKIN_HISTORY = "NO_CHECKIN_HISTORY"
REASON_NO_CHECKIN_14_DAYS = "NO_CHECKIN_14_DAYS"
REASON_SUBSCRIPTION_ENDING_7_DAYS = "SUBSCRIPTION_ENDING_7_DAYS"
REASON_HAS_PENDING_PAYMENTS = "HAS_PENDING_PAYMENTS"
REASON_RECENT_REJECTED_PAYMENT = "RECENT_REJECTED_PAYMENT"


# =============================================================================
# FOLLOW-UP TASKS
# =============================================================================

FOLLOW_UP_CONFIG = {
    "cooldown_days": 14,   # No new task within this window after a resolution
    "due_days": 2,
    "priority": 1,
    "title": "Follow up high-risk member",
    "note": "Contact this member and offer support before they churn.",
}

NOTIFICATION_CONFIG = {
    "action_url": "/admin/retention/tasks",
    "follow_up_created": {
        "title": "High-risk member follow-up created",
        "type": NotificationType.WARNING,
    },
    "task_completed": {
        "title": "Retention task completed",
        "type": NotificationType.SUCCESS,
    },
    "tasks_completed": {
        "title": "Retention tasks completed",
        "type": NotificationType.SUCCESS,
    },
}


# =============================================================================
# REPORTING
# =============================================================================

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
NEW_HIGH_RISK_WINDOW_DAYS = 7
MEMBER_DETAIL_TASK_LIMIT = 10
MEMBER_DETAIL_SUBSCRIPTION_LIMIT = 3
