import secrets

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings, settings
from app.core.database import async_session_maker
from app.core.exceptions import AppException
from app.core.push_client import Notifier
from app.core.scheduler import Scheduler


bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return settings


def get_session_maker() -> async_sessionmaker:
    return async_session_maker


def get_scheduler(request: Request) -> Scheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        AppException().raise_503("Scheduler is not initialized")
    return scheduler


def get_notifier(request: Request) -> Notifier:
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        AppException().raise_503("Push notifier is not initialized")
    return notifier


async def require_jobs_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    app_settings: Settings = Depends(get_settings),
) -> None:
    """Operator endpoints accept only the static JOBS_API_TOKEN; no token configured means disabled."""
    expected = (app_settings.JOBS_API_TOKEN or "").strip()
    if not expected:
        AppException().raise_403("Job API is disabled")
    if credentials is None or not credentials.credentials:
        AppException().raise_401("Not authenticated")
    if not secrets.compare_digest(credentials.credentials, expected):
        AppException().raise_401("Could not validate credentials")
