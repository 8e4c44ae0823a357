"""Operator actions on the background jobs."""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.jobs.schemas import JobRunResponse, VendorQualityResponse
from app.core.config import Settings
from app.core.scheduler import Scheduler
from app.cron.quality_scores import recalculate_vendor_quality

logger = logging.getLogger(__name__)


def _summary(result: Any) -> dict[str, Any]:
    if result is None:
        return {}
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return dict(result)


async def run_job_now(scheduler: Scheduler, job_name: str) -> JobRunResponse:
    """Run a job through the scheduler so the per-job run-lock applies."""
    logger.info("Manual run of job %s requested", job_name)
    result = await scheduler.run_job(job_name)
    return JobRunResponse(job=job_name, result=_summary(result))


async def recalculate_vendor(
    session_maker: async_sessionmaker,
    vendor_id: int,
    settings: Settings,
) -> VendorQualityResponse:
    result = await recalculate_vendor_quality(session_maker, vendor_id, settings=settings)
    m = result.metrics
    return VendorQualityResponse(
        vendor_id=result.vendor_id,
        total_orders=m.total_orders,
        completed_orders=m.completed_orders,
        repeat_customers=m.repeat_customers,
        unique_customers=m.unique_customers,
        avg_rating=m.avg_rating,
        quality_score=result.quality_score,
        is_top=result.is_top,
    )
