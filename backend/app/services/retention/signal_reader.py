"""
Signal Reader

Materializes one MemberSignalBundle per active member in a single query:
- latest check-in
- earliest end date among ACTIVE / PENDING / FROZEN subscriptions
- number of PENDING payments
- whether a payment was REJECTED within the last 30 days

Read-only. Never writes to the store.
"""
from datetime import datetime, timedelta
from typing import List

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from ...models.db_models import (
    MemberDB, UserDB, AttendanceDB, SubscriptionDB, PaymentDB,
    UserStatus, SubscriptionStatus, PaymentStatus,
)
from ...models.retention import MemberSignalBundle
from .config import RETENTION_CONFIG


OPEN_SUBSCRIPTION_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PENDING,
    SubscriptionStatus.FROZEN,
)


class SignalReader:
    """Reads per-member activity signals for the recompute batch."""

    def __init__(self, db: Session):
        self.db = db

    def read_active_members(self, now: datetime) -> List[MemberSignalBundle]:
        """Signal bundles for every member whose account is ACTIVE, ordered by member id."""
        rejected_cutoff = now - timedelta(days=RETENTION_CONFIG["rejected_payment_window_days"])

        last_check_in = (
            self.db.query(
                AttendanceDB.member_id.label("member_id"),
                func.max(AttendanceDB.check_in_time).label("last_check_in_at"),
            )
            .group_by(AttendanceDB.member_id)
            .subquery()
        )

        nearest_end = (
            self.db.query(
                SubscriptionDB.member_id.label("member_id"),
                func.min(SubscriptionDB.end_date).label("subscription_ends_at"),
            )
            .filter(SubscriptionDB.status.in_(OPEN_SUBSCRIPTION_STATUSES))
            .group_by(SubscriptionDB.member_id)
            .subquery()
        )

        payment_flags = (
            self.db.query(
                PaymentDB.member_id.label("member_id"),
                func.sum(
                    case((PaymentDB.status == PaymentStatus.PENDING, 1), else_=0)
                ).label("pending_count"),
                func.max(
                    case(
                        (
                            and_(
                                PaymentDB.status == PaymentStatus.REJECTED,
                                PaymentDB.created_at >= rejected_cutoff,
                            ),
                            1,
                        ),
                        else_=0,
                    )
                ).label("recent_rejected"),
            )
            .group_by(PaymentDB.member_id)
            .subquery()
        )

        rows = (
            self.db.query(
                MemberDB.id,
                UserDB.first_name,
                UserDB.last_name,
                UserDB.email,
                last_check_in.c.last_check_in_at,
                nearest_end.c.subscription_ends_at,
                payment_flags.c.pending_count,
                payment_flags.c.recent_rejected,
            )
            .join(UserDB, MemberDB.user_id == UserDB.id)
            .outerjoin(last_check_in, last_check_in.c.member_id == MemberDB.id)
            .outerjoin(nearest_end, nearest_end.c.member_id == MemberDB.id)
            .outerjoin(payment_flags, payment_flags.c.member_id == MemberDB.id)
            .filter(UserDB.status == UserStatus.ACTIVE)
            .order_by(MemberDB.id)
            .all()
        )

        return [
            MemberSignalBundle(
                member_id=row.id,
                full_name=f"{row.first_name or ''} {row.last_name or ''}".strip(),
                email=row.email,
                last_check_in_at=row.last_check_in_at,
                subscription_ends_at=row.subscription_ends_at,
                unpaid_pending_count=int(row.pending_count or 0),
                has_recent_rejected_payment=bool(row.recent_rejected),
            )
            for row in rows
        ]
