"""
Scheduler API Routes

Internal endpoints for system-automatic tasks, hit by an external cron.
Nightly retention risk recomputation.
"""
import os

from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.retention import run_nightly_recompute


router = APIRouter(prefix="/internal", tags=["scheduler"])


# =============================================================================
# INTERNAL API KEY VALIDATION
# =============================================================================

INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "scheduler-internal-key-change-in-production")


async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for scheduler endpoints."""
    if x_internal_key != INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/retention-recompute", response_model=dict)
async def run_retention_recompute(
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Run nightly retention risk recomputation.

    System-automatic - rescoring all active members and raising follow-up
    tasks for HIGH risk. Failures are logged and reported in the body;
    the next run retries from scratch.
    """
    return run_nightly_recompute(db)
