"""Retention Engine - API Routers"""
from .auth import router as auth_router
from .retention import router as retention_router
from .scheduler import router as scheduler_router

__all__ = [
    "auth_router",
    "retention_router",
    "scheduler_router",
]
