from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.jobs.schemas import JobRunResponse, VendorQualityResponse
from app.api.v1.jobs.service import recalculate_vendor, run_job_now
from app.core.config import Settings
from app.core.deps import get_scheduler, get_session_maker, get_settings, require_jobs_token
from app.core.exceptions import AppException, JobAlreadyRunning, UnknownJob, VendorNotFound
from app.core.scheduler import Scheduler

router = APIRouter(dependencies=[Depends(require_jobs_token)])


@router.post(
    "/quality-scores/vendors/{vendor_id}",
    response_model=VendorQualityResponse,
    status_code=status.HTTP_200_OK,
    summary="Recompute one vendor's quality score",
    description="Recollect metrics for a single vendor and update its quality score and top vendor badge.",
)
async def recalculate_vendor_quality_score(
    vendor_id: int,
    session_maker: async_sessionmaker = Depends(get_session_maker),
    app_settings: Settings = Depends(get_settings),
):
    try:
        return await recalculate_vendor(session_maker, vendor_id, app_settings)
    except VendorNotFound as e:
        AppException().raise_404(str(e))


@router.post(
    "/{job_name}/run",
    response_model=JobRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Run a background job now",
    description="Run offer-activation or quality-scores immediately. Fails with 409 while a run of the same job is in progress.",
)
async def run_job(
    job_name: str,
    scheduler: Scheduler = Depends(get_scheduler),
):
    try:
        return await run_job_now(scheduler, job_name)
    except UnknownJob as e:
        AppException().raise_404(str(e))
    except JobAlreadyRunning as e:
        AppException().raise_409(str(e))
