"""
Risk Recompute Batch

Nightly job that rescores every active member:
1. Read signal bundles (SignalReader)
2. Score each member (score_member)
3. Upsert MemberRetentionRiskDB keyed by member_id (last write wins)
4. Dispatch a follow-up task for HIGH-risk members

The loop is sequential and NOT fault-isolated: the first failure aborts
the remaining members and propagates. run_nightly_recompute() is the
scheduled wrapper that catches, logs and rolls back.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from ...models.db_models import MemberRetentionRiskDB, RetentionRiskLevel
from ...models.retention import RiskSnapshot
from .follow_up_dispatcher import FollowUpTaskDispatcher
from .risk_scoring import score_member
from .signal_reader import SignalReader


logger = logging.getLogger(__name__)


class RiskRecomputeBatch:
    """Recomputes and persists risk snapshots for all active members."""

    def __init__(
        self,
        db: Session,
        reader: Optional[SignalReader] = None,
        dispatcher: Optional[FollowUpTaskDispatcher] = None,
    ):
        self.db = db
        self.reader = reader or SignalReader(db)
        self.dispatcher = dispatcher or FollowUpTaskDispatcher(db)

    def recompute_all(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Rescore every active member.

        Returns:
            {"processed", "high", "medium", "low"} counts
        """
        now = now or datetime.utcnow()
        summary = {"processed": 0, "high": 0, "medium": 0, "low": 0}

        for signals in self.reader.read_active_members(now):
            snapshot = score_member(signals, now)
            self.upsert_risk(snapshot)

            if snapshot.risk_level == RetentionRiskLevel.HIGH:
                self.dispatcher.ensure_follow_up_task(
                    snapshot.member_id, snapshot.full_name, now=now,
                )

            summary["processed"] += 1
            summary[snapshot.risk_level.value.lower()] += 1

        return summary

    def upsert_risk(self, snapshot: RiskSnapshot) -> MemberRetentionRiskDB:
        """Create the member's risk row or overwrite every field of it."""
        values = snapshot.to_row_values()

        risk = self.db.query(MemberRetentionRiskDB).filter(
            MemberRetentionRiskDB.member_id == snapshot.member_id
        ).first()

        if risk is None:
            risk = MemberRetentionRiskDB(
                id=str(uuid4()),
                member_id=snapshot.member_id,
                **values,
            )
            self.db.add(risk)
        else:
            for column, value in values.items():
                setattr(risk, column, value)

        self.db.flush()
        return risk


def run_nightly_recompute(db: Session) -> Dict[str, Any]:
    """
    Scheduled entry point.

    Commits on success. On any failure rolls back, logs, and reports the
    error instead of raising; the next scheduled run starts from scratch.
    """
    started_at = datetime.now(timezone.utc)
    logger.info("Running nightly retention risk recomputation...")

    try:
        summary = RiskRecomputeBatch(db).recompute_all()
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("Nightly retention recomputation failed")
        return {
            "task": "retention_recompute",
            "status": "error",
            "error": str(e),
            "started_at": started_at.isoformat(),
        }

    logger.info(
        f"Retention recomputation completed: processed={summary['processed']}, "
        f"high={summary['high']}, medium={summary['medium']}, low={summary['low']}"
    )
    return {
        "task": "retention_recompute",
        "status": "success",
        "started_at": started_at.isoformat(),
        **summary,
    }
