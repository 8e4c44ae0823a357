from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.jobs.router import router as jobs_router
from app.api.v1.notifications.router import router as notifications_router

api_router = APIRouter()
api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(jobs_router, prefix="/jobs", tags=["jobs"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
