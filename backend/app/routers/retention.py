"""
Retention API Routes

Operator console for member retention:
risk overview, member risk listings, follow-up task listing and updates.
Open to ADMIN and STAFF; manual recalculation is ADMIN-only.
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import require_admin, require_staff
from ..models.db_models import UserDB, RetentionRiskLevel, RetentionTaskStatus
from ..models.retention import TaskPatch
from ..services.retention import (
    RiskRecomputeBatch,
    TaskLifecycleManager,
    RetentionReportingService,
    NotFoundError,
    ValidationError,
)
from ..services.retention.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/retention", tags=["retention"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class UpdateTaskRequest(BaseModel):
    """Partial task update. Omitted fields are left untouched."""
    status: Optional[RetentionTaskStatus] = Field(None, description="New task status")
    priority: Optional[int] = Field(None, ge=1, le=3, description="Priority, 1 = most urgent")
    assigned_to_id: Optional[str] = Field(None, description="ADMIN or STAFF user id")
    note: Optional[str] = Field(None, max_length=2000, description="Free-form note")
    due_date: Optional[datetime] = Field(None, description="Due date")

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, value):
        return _to_naive_utc(value)

    def to_patch(self) -> TaskPatch:
        return TaskPatch.from_dict(self.model_dump(exclude_unset=True))


class BulkUpdateTasksRequest(UpdateTaskRequest):
    """Same partial update applied to every listed task."""
    task_ids: List[str] = Field(..., min_length=1, description="Tasks to update")


class BulkUpdateTasksResponse(BaseModel):
    updated_count: int


class RecalculateResponse(BaseModel):
    processed: int
    high: int
    medium: int
    low: int


class OverviewResponse(BaseModel):
    high_risk: int
    medium_risk: int
    low_risk: int
    new_high_this_week: int
    open_tasks: int
    evaluated_members: int


class MemberRiskItem(BaseModel):
    member_id: str
    full_name: str
    email: str
    risk_level: str
    score: int
    reasons: List[str]
    last_check_in_at: Optional[str] = None
    days_since_check_in: Optional[int] = None
    subscription_ends_at: Optional[str] = None
    unpaid_pending_count: int
    last_evaluated_at: Optional[str] = None


class MemberRiskListResponse(BaseModel):
    data: List[MemberRiskItem]
    page: int
    limit: int
    total: int
    total_pages: int


class MemberTaskItem(BaseModel):
    id: str
    title: str
    note: Optional[str] = None
    status: str
    priority: int
    due_date: Optional[str] = None
    created_at: Optional[str] = None
    assigned_to_email: Optional[str] = None


class SubscriptionItem(BaseModel):
    id: str
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    plan_name: Optional[str] = None


class MemberDetailResponse(BaseModel):
    risk: MemberRiskItem
    tasks: List[MemberTaskItem]
    recent_subscriptions: List[SubscriptionItem]


class TaskItem(BaseModel):
    id: str
    member_id: str
    member_name: Optional[str] = None
    member_email: Optional[str] = None
    assigned_to_id: Optional[str] = None
    assigned_to_email: Optional[str] = None
    status: str
    priority: int
    title: str
    note: Optional[str] = None
    due_date: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TaskListResponse(BaseModel):
    data: List[TaskItem]
    page: int
    limit: int
    total: int
    total_pages: int


class TaskHistoryItem(BaseModel):
    id: str
    task_id: str
    changed_by_user_id: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    from_priority: Optional[int] = None
    to_priority: Optional[int] = None
    from_assigned_to_id: Optional[str] = None
    to_assigned_to_id: Optional[str] = None
    from_note: Optional[str] = None
    to_note: Optional[str] = None
    from_due_date: Optional[str] = None
    to_due_date: Optional[str] = None
    created_at: Optional[str] = None


# =============================================================================
# READ ENDPOINTS
# =============================================================================

@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    db: Session = Depends(get_db),
    _: UserDB = Depends(require_staff),
):
    """Risk distribution and open follow-up task counts."""
    return RetentionReportingService(db).get_overview()


@router.get("/members", response_model=MemberRiskListResponse)
async def get_members(
    risk_level: Optional[RetentionRiskLevel] = Query(None),
    min_score: Optional[int] = Query(None, ge=0, le=100),
    search: Optional[str] = Query(None, description="Name or email contains"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _: UserDB = Depends(require_staff),
):
    """Paginated member risk profiles, highest risk first."""
    return RetentionReportingService(db).get_members(
        risk_level=risk_level,
        min_score=min_score,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/members/{member_id}", response_model=MemberDetailResponse)
async def get_member_detail(
    member_id: str,
    db: Session = Depends(get_db),
    _: UserDB = Depends(require_staff),
):
    """Risk profile, recent tasks and subscriptions for one member."""
    try:
        return RetentionReportingService(db).get_member_detail(member_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/tasks", response_model=TaskListResponse)
async def get_tasks(
    status: Optional[RetentionTaskStatus] = Query(None),
    priority: Optional[int] = Query(None, ge=1, le=3),
    assigned_to_id: Optional[str] = Query(None),
    member_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    _: UserDB = Depends(require_staff),
):
    """Paginated follow-up tasks, most urgent first."""
    return RetentionReportingService(db).get_tasks(
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        member_id=member_id,
        page=page,
        limit=limit,
    )


@router.get("/tasks/{task_id}/history", response_model=List[TaskHistoryItem])
async def get_task_history(
    task_id: str,
    db: Session = Depends(get_db),
    _: UserDB = Depends(require_staff),
):
    """Audit trail for one task, oldest first."""
    try:
        return RetentionReportingService(db).get_task_history(task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# =============================================================================
# MUTATING ENDPOINTS
# =============================================================================

@router.post("/recalculate", response_model=RecalculateResponse, status_code=201)
async def recalculate(
    db: Session = Depends(get_db),
    admin: UserDB = Depends(require_admin),
):
    """
    Recompute risk scores for all active members.

    Same batch as the nightly job; failures propagate to the caller.
    """
    logger.info(f"Manual retention recalculation requested by {admin.email}")
    result = RiskRecomputeBatch(db).recompute_all()
    db.commit()
    return result


@router.patch("/tasks/bulk", response_model=BulkUpdateTasksResponse)
async def bulk_update_tasks(
    request: BulkUpdateTasksRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(require_staff),
):
    """Apply one partial update to many tasks."""
    patch = TaskPatch.from_dict(request.model_dump(exclude_unset=True, exclude={"task_ids"}))
    try:
        result = TaskLifecycleManager(db).bulk_update_tasks(
            request.task_ids, patch, acting_user_id=current_user.id,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    db.commit()
    return result


@router.patch("/tasks/{task_id}", response_model=TaskItem)
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    db: Session = Depends(get_db),
    current_user: UserDB = Depends(require_staff),
):
    """Update status, priority, assignee, note or due date of one task."""
    try:
        task = TaskLifecycleManager(db).update_task(
            task_id, request.to_patch(), acting_user_id=current_user.id,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    db.commit()
    db.refresh(task)
    return RetentionReportingService.task_to_dict(task)
