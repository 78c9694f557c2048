"""
Retention Reporting

Read-only projections over risk profiles and follow-up tasks for the
operator console: overview counts, filtered member and task listings,
member drilldown and task history.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import math

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, joinedload

from ...models.db_models import (
    MemberDB, MemberRetentionRiskDB, RetentionTaskDB, RetentionTaskHistoryDB,
    SubscriptionDB, UserDB, RetentionRiskLevel, RetentionTaskStatus,
    ACTIVE_TASK_STATUSES,
)
from .config import (
    DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, NEW_HIGH_RISK_WINDOW_DAYS,
    MEMBER_DETAIL_TASK_LIMIT, MEMBER_DETAIL_SUBSCRIPTION_LIMIT,
)
from .errors import NotFoundError


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _paginate(page: int, limit: int):
    page = max(1, page or 1)
    limit = min(MAX_PAGE_SIZE, max(1, limit or DEFAULT_PAGE_SIZE))
    return page, limit, (page - 1) * limit


def _page_envelope(data: List[Dict[str, Any]], page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "data": data,
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


class RetentionReportingService:
    """Read-only queries for the retention console."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # OVERVIEW
    # =========================================================================

    def get_overview(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.utcnow()
        week_ago = now - timedelta(days=NEW_HIGH_RISK_WINDOW_DAYS)

        grouped = dict(
            self.db.query(MemberRetentionRiskDB.risk_level, func.count(MemberRetentionRiskDB.id))
            .group_by(MemberRetentionRiskDB.risk_level)
            .all()
        )

        new_high_this_week = self.db.query(MemberRetentionRiskDB).filter(
            MemberRetentionRiskDB.risk_level == RetentionRiskLevel.HIGH,
            MemberRetentionRiskDB.updated_at >= week_ago,
        ).count()

        open_tasks = self.db.query(RetentionTaskDB).filter(
            RetentionTaskDB.status.in_(ACTIVE_TASK_STATUSES)
        ).count()

        return {
            "high_risk": grouped.get(RetentionRiskLevel.HIGH, 0),
            "medium_risk": grouped.get(RetentionRiskLevel.MEDIUM, 0),
            "low_risk": grouped.get(RetentionRiskLevel.LOW, 0),
            "new_high_this_week": new_high_this_week,
            "open_tasks": open_tasks,
            "evaluated_members": sum(grouped.values()),
        }

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def get_members(
        self,
        risk_level: Optional[RetentionRiskLevel] = None,
        min_score: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page, limit, offset = _paginate(page, limit)

        query = (
            self.db.query(MemberRetentionRiskDB, UserDB)
            .join(MemberDB, MemberRetentionRiskDB.member_id == MemberDB.id)
            .join(UserDB, MemberDB.user_id == UserDB.id)
        )
        if risk_level:
            query = query.filter(MemberRetentionRiskDB.risk_level == risk_level)
        if min_score is not None:
            query = query.filter(MemberRetentionRiskDB.score >= min_score)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(UserDB.first_name).like(pattern),
                func.lower(UserDB.last_name).like(pattern),
                func.lower(UserDB.email).like(pattern),
            ))

        total = query.count()

        level_rank = case(
            (MemberRetentionRiskDB.risk_level == RetentionRiskLevel.HIGH, 0),
            (MemberRetentionRiskDB.risk_level == RetentionRiskLevel.MEDIUM, 1),
            else_=2,
        )
        rows = query.order_by(
            level_rank,
            MemberRetentionRiskDB.score.desc(),
            MemberRetentionRiskDB.updated_at.desc(),
        ).offset(offset).limit(limit).all()

        data = [self._risk_to_dict(risk, user) for risk, user in rows]
        return _page_envelope(data, page, limit, total)

    def get_member_detail(self, member_id: str) -> Dict[str, Any]:
        row = (
            self.db.query(MemberRetentionRiskDB, UserDB)
            .join(MemberDB, MemberRetentionRiskDB.member_id == MemberDB.id)
            .join(UserDB, MemberDB.user_id == UserDB.id)
            .filter(MemberRetentionRiskDB.member_id == member_id)
            .first()
        )
        if row is None:
            raise NotFoundError(f"Retention risk profile not found for member {member_id}")
        risk, user = row

        tasks = (
            self.db.query(RetentionTaskDB)
            .options(joinedload(RetentionTaskDB.assigned_to))
            .filter(RetentionTaskDB.member_id == member_id)
            .order_by(RetentionTaskDB.created_at.desc())
            .limit(MEMBER_DETAIL_TASK_LIMIT)
            .all()
        )

        subscriptions = (
            self.db.query(SubscriptionDB)
            .filter(SubscriptionDB.member_id == member_id)
            .order_by(SubscriptionDB.end_date.desc())
            .limit(MEMBER_DETAIL_SUBSCRIPTION_LIMIT)
            .all()
        )

        return {
            "risk": self._risk_to_dict(risk, user),
            "tasks": [
                {
                    "id": t.id,
                    "title": t.title,
                    "note": t.note,
                    "status": t.status.value,
                    "priority": t.priority,
                    "due_date": _iso(t.due_date),
                    "created_at": _iso(t.created_at),
                    "assigned_to_email": t.assigned_to.email if t.assigned_to else None,
                }
                for t in tasks
            ],
            "recent_subscriptions": [
                {
                    "id": s.id,
                    "status": s.status.value,
                    "start_date": _iso(s.start_date),
                    "end_date": _iso(s.end_date),
                    "plan_name": s.plan_name,
                }
                for s in subscriptions
            ],
        }

    # =========================================================================
    # TASKS
    # =========================================================================

    def get_tasks(
        self,
        status: Optional[RetentionTaskStatus] = None,
        priority: Optional[int] = None,
        assigned_to_id: Optional[str] = None,
        member_id: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        page, limit, offset = _paginate(page, limit)

        query = self.db.query(RetentionTaskDB)
        if status:
            query = query.filter(RetentionTaskDB.status == status)
        if priority is not None:
            query = query.filter(RetentionTaskDB.priority == priority)
        if assigned_to_id:
            query = query.filter(RetentionTaskDB.assigned_to_id == assigned_to_id)
        if member_id:
            query = query.filter(RetentionTaskDB.member_id == member_id)

        total = query.count()
        tasks = (
            query.options(
                joinedload(RetentionTaskDB.assigned_to),
                joinedload(RetentionTaskDB.member).joinedload(MemberDB.user),
            )
            .order_by(RetentionTaskDB.priority.asc(), RetentionTaskDB.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return _page_envelope([self.task_to_dict(t) for t in tasks], page, limit, total)

    def get_task_history(self, task_id: str) -> List[Dict[str, Any]]:
        exists = self.db.query(RetentionTaskDB.id).filter(RetentionTaskDB.id == task_id).first()
        if exists is None:
            raise NotFoundError(f"Retention task with ID {task_id} not found")

        rows = (
            self.db.query(RetentionTaskHistoryDB)
            .filter(RetentionTaskHistoryDB.task_id == task_id)
            .order_by(RetentionTaskHistoryDB.created_at.asc())
            .all()
        )
        return [
            {
                "id": h.id,
                "task_id": h.task_id,
                "changed_by_user_id": h.changed_by_user_id,
                "from_status": h.from_status.value if h.from_status else None,
                "to_status": h.to_status.value if h.to_status else None,
                "from_priority": h.from_priority,
                "to_priority": h.to_priority,
                "from_assigned_to_id": h.from_assigned_to_id,
                "to_assigned_to_id": h.to_assigned_to_id,
                "from_note": h.from_note,
                "to_note": h.to_note,
                "from_due_date": _iso(h.from_due_date),
                "to_due_date": _iso(h.to_due_date),
                "created_at": _iso(h.created_at),
            }
            for h in rows
        ]

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    @staticmethod
    def task_to_dict(task: RetentionTaskDB) -> Dict[str, Any]:
        member_user = task.member.user if task.member else None
        return {
            "id": task.id,
            "member_id": task.member_id,
            "member_name": member_user.full_name if member_user else None,
            "member_email": member_user.email if member_user else None,
            "assigned_to_id": task.assigned_to_id,
            "assigned_to_email": task.assigned_to.email if task.assigned_to else None,
            "status": task.status.value,
            "priority": task.priority,
            "title": task.title,
            "note": task.note,
            "due_date": _iso(task.due_date),
            "resolved_at": _iso(task.resolved_at),
            "created_at": _iso(task.created_at),
            "updated_at": _iso(task.updated_at),
        }

    @staticmethod
    def _risk_to_dict(risk: MemberRetentionRiskDB, user: UserDB) -> Dict[str, Any]:
        return {
            "member_id": risk.member_id,
            "full_name": user.full_name,
            "email": user.email,
            "risk_level": risk.risk_level.value,
            "score": risk.score,
            "reasons": list(risk.reasons or []),
            "last_check_in_at": _iso(risk.last_check_in_at),
            "days_since_check_in": risk.days_since_check_in,
            "subscription_ends_at": _iso(risk.subscription_ends_at),
            "unpaid_pending_count": risk.unpaid_pending_count,
            "last_evaluated_at": _iso(risk.last_evaluated_at),
        }
