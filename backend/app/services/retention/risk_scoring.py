"""
Risk Scoring Engine

Maps a member's activity signals to a churn-risk snapshot.

Additive point system:
- No check-in history, or no check-in for 14+ days   +50
- Subscription ending within 0-7 days                 +25
- Any pending (unpaid) payment                        +20
- Payment rejected in the last 30 days                +15

Score is clamped to [0, 100].
HIGH >= 60, MEDIUM >= 30, LOW otherwise.

Pure function: no I/O, no clock reads. The caller supplies `now`.
"""
from datetime import datetime, timedelta
from typing import Optional

from ...models.db_models import RetentionRiskLevel
from ...models.retention import MemberSignalBundle, RiskSnapshot
from .config import (
    RETENTION_CONFIG,
    REASON_NO_CHECKIN_HISTORY,
    REASON_NO_CHECKIN_14_DAYS,
    REASON_SUBSCRIPTION_ENDING_7_DAYS,
    REASON_HAS_PENDING_PAYMENTS,
    REASON_RECENT_REJECTED_PAYMENT,
)


ONE_DAY = timedelta(days=1)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Floor of (end - start) in days. Negative when end precedes start."""
    return (end - start) // ONE_DAY


def classify_score(score: int) -> RetentionRiskLevel:
    """Risk level for an already clamped score."""
    if score >= RETENTION_CONFIG["high_threshold"]:
        return RetentionRiskLevel.HIGH
    if score >= RETENTION_CONFIG["medium_threshold"]:
        return RetentionRiskLevel.MEDIUM
    return RetentionRiskLevel.LOW


def score_member(signals: MemberSignalBundle, now: datetime) -> RiskSnapshot:
    """
    Compute the risk snapshot for one member.

    Reasons are listed in the order their points were added.
    last_evaluated_at is set to `now`.
    """
    cfg = RETENTION_CONFIG
    reasons = []
    score = 0

    days_since_check_in: Optional[int] = None
    if signals.last_check_in_at is None:
        score += cfg["checkin_points"]
        reasons.append(REASON_NO_CHECKIN_HISTORY)
    else:
        days_since_check_in = whole_days_between(signals.last_check_in_at, now)
        if days_since_check_in >= cfg["checkin_inactivity_days"]:
            score += cfg["checkin_points"]
            reasons.append(REASON_NO_CHECKIN_14_DAYS)

    if signals.subscription_ends_at is not None:
        days_to_expiry = whole_days_between(now, signals.subscription_ends_at)
        if 0 <= days_to_expiry <= cfg["subscription_expiry_window_days"]:
            score += cfg["subscription_expiry_points"]
            reasons.append(REASON_SUBSCRIPTION_ENDING_7_DAYS)

    if signals.unpaid_pending_count > 0:
        score += cfg["pending_payment_points"]
        reasons.append(REASON_HAS_PENDING_PAYMENTS)

    if signals.has_recent_rejected_payment:
        score += cfg["rejected_payment_points"]
        reasons.append(REASON_RECENT_REJECTED_PAYMENT)

    score = min(cfg["max_score"], max(cfg["min_score"], score))

    return RiskSnapshot(
        member_id=signals.member_id,
        full_name=signals.full_name,
        email=signals.email,
        risk_level=classify_score(score),
        score=score,
        reasons=reasons,
        last_check_in_at=signals.last_check_in_at,
        days_since_check_in=days_since_check_in,
        subscription_ends_at=signals.subscription_ends_at,
        unpaid_pending_count=signals.unpaid_pending_count,
        last_evaluated_at=now,
    )
