"""
Gym Retention Engine - FastAPI Application

Main entry point for the retention backend.

Architecture:
- Members, subscriptions, attendance, payments → SignalReader → MemberSignalBundle
- MemberSignalBundle → risk scoring → RiskSnapshot (persisted per member)
- HIGH risk → FollowUpTaskDispatcher → RetentionTask (assigned by workload)
- RetentionTask updates → TaskLifecycleManager → RetentionTaskHistory
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import auth_router, retention_router, scheduler_router
from .database import init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Gym Retention Engine",
    description="""
    Gym Retention Engine - Member Churn Risk & Follow-up Tasks

    Scores every active member for churn risk from attendance, subscription
    and payment signals, and opens follow-up tasks for staff when a member
    becomes HIGH risk.

    ## Pipeline
    1. **Signal Reader**: member activity → MemberSignalBundle
    2. **Risk Scoring**: MemberSignalBundle → RiskSnapshot (LOW / MEDIUM / HIGH)
    3. **Follow-up Dispatch**: HIGH risk → task for the least-loaded staff user
    4. **Task Lifecycle**: staff updates → audit history

    ## Key Principles
    - Recomputation is idempotent; one risk row per member
    - At most one active follow-up task per member
    - 14-day cooldown after a task is resolved
    - Every effective task change leaves one history row
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(retention_router)
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Gym Retention Engine",
        "version": "1.0.0",
        "description": "Member churn risk scoring and follow-up tasks",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
