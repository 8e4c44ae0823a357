"""
Wire the background jobs into a Scheduler.
Started on app startup; stopped on shutdown.
"""
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, system_clock
from app.core.config import Settings
from app.core.push_client import Notifier
from app.core.scheduler import DailyTrigger, IntervalTrigger, Scheduler
from app.cron.offer_scheduler import process_scheduled_offers
from app.cron.quality_scores import calculate_quality_scores

logger = logging.getLogger(__name__)

OFFER_ACTIVATION_JOB = "offer-activation"
QUALITY_SCORES_JOB = "quality-scores"


def build_scheduler(
    settings: Settings,
    session_maker: async_sessionmaker,
    notifier: Notifier,
    clock: Clock = system_clock,
) -> Scheduler:
    scheduler = Scheduler(clock=clock, startup_delay=settings.SCHEDULER_STARTUP_DELAY_SECONDS)

    async def offer_activation():
        return await process_scheduled_offers(session_maker, notifier, settings=settings, clock=clock)

    async def quality_scores():
        return await calculate_quality_scores(session_maker, settings=settings, clock=clock)

    scheduler.add_job(
        OFFER_ACTIVATION_JOB,
        offer_activation,
        IntervalTrigger(settings.OFFER_SCHEDULER_INTERVAL_SECONDS),
        run_on_start=True,
    )
    if settings.QUALITY_SCORE_JOB_ENABLED:
        scheduler.add_job(
            QUALITY_SCORES_JOB,
            quality_scores,
            DailyTrigger(settings.QUALITY_SCORE_JOB_HOUR, settings.QUALITY_SCORE_JOB_MINUTE, settings.SCHEDULER_TIMEZONE),
        )
    else:
        logger.info("Quality score job disabled (QUALITY_SCORE_JOB_ENABLED=false)")
    return scheduler
