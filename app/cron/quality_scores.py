"""
Cron job: recompute quality metrics, score and "top vendor" badge for every vendor.
Runs daily (QUALITY_SCORE_JOB_HOUR in SCHEDULER_TIMEZONE); always a full recompute.
Vendors are scored independently: one vendor's failure is logged and counted, never fatal.

Run once by hand: python -m app.cron.quality_scores
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, system_clock
from app.core.config import Settings, settings as default_settings
from app.core.database import dialect_name
from app.core.exceptions import StoreUnavailable, VendorNotFound
from app.core.quality_score import (
    QualityThresholds,
    VendorMetricsSnapshot,
    calculate_quality_score,
    is_top_vendor,
)
from app.core.vendor_stats import AvailableSources, collect_vendor_metrics, detect_sources
from app.models.vendor import Vendor
from app.models.vendor_metrics import VendorMetrics

logger = logging.getLogger(__name__)


@dataclass
class VendorQualityResult:
    vendor_id: int
    metrics: VendorMetricsSnapshot
    quality_score: float
    is_top: bool

    def to_dict(self) -> dict:
        return {
            "vendorId": self.vendor_id,
            **asdict(self.metrics),
            "qualityScore": self.quality_score,
            "isTop": self.is_top,
        }


@dataclass
class QualityScoreSummary:
    updated: int = 0
    top_vendors: int = 0
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "topVendors": self.top_vendors,
            "errors": self.errors,
            "durationMs": self.duration_ms,
        }


async def upsert_vendor_metrics(
    db: AsyncSession,
    vendor_id: int,
    metrics: VendorMetricsSnapshot,
    quality_score: float,
    is_top: bool,
    computed_at: datetime,
) -> None:
    """Single INSERT .. ON CONFLICT so a manual recompute racing the nightly run cannot collide. Caller commits."""
    values = {
        **asdict(metrics),
        "quality_score": quality_score,
        "is_top": is_top,
        "computed_at": computed_at,
    }
    insert = pg_insert if dialect_name(db) == "postgresql" else sqlite_insert
    stmt = insert(VendorMetrics).values(vendor_id=vendor_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[VendorMetrics.vendor_id],
        set_={key: stmt.excluded[key] for key in values},
    )
    await db.execute(stmt)


async def score_vendor(
    db: AsyncSession,
    vendor_id: int,
    sources: AvailableSources,
    thresholds: QualityThresholds,
    now: datetime,
) -> VendorQualityResult:
    """Collect, score and persist one vendor. Raises on any failure."""
    metrics = await collect_vendor_metrics(db, vendor_id, sources)
    metrics.validate()
    quality_score = calculate_quality_score(metrics, thresholds)
    is_top = is_top_vendor(metrics, quality_score, thresholds)

    await upsert_vendor_metrics(db, vendor_id, metrics, quality_score, is_top, now)
    await db.commit()
    return VendorQualityResult(vendor_id=vendor_id, metrics=metrics, quality_score=quality_score, is_top=is_top)


async def calculate_quality_scores(
    session_maker: async_sessionmaker,
    *,
    settings: Settings = default_settings,
    clock: Clock = system_clock,
) -> QualityScoreSummary:
    started = time.monotonic()
    now = clock.now()
    thresholds = QualityThresholds.from_settings(settings)
    logger.info("Cron: calculateQualityScores started")

    try:
        async with session_maker() as db:
            vendors = (await db.execute(select(Vendor.id, Vendor.name).order_by(Vendor.id))).all()
            sources = await detect_sources(db)
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"could not list vendors: {e}") from e
    logger.info("Cron: %s vendor(s) to score", len(vendors))

    semaphore = asyncio.Semaphore(max(1, settings.QUALITY_SCORE_MAX_CONCURRENCY))

    async def run(vendor_id: int, name: str) -> VendorQualityResult | None:
        async with semaphore:
            try:
                async with session_maker() as db:
                    result = await score_vendor(db, vendor_id, sources, thresholds, now)
            except Exception as e:
                logger.exception("Cron: quality score for vendor %s (%s) failed: %s", vendor_id, name, e)
                return None
        if result.is_top:
            logger.info("Vendor %s (%s) earned the top vendor badge (score %.2f)", vendor_id, name, result.quality_score)
        return result

    results = await asyncio.gather(*(run(v.id, v.name) for v in vendors))
    done = [r for r in results if r is not None]
    summary = QualityScoreSummary(
        updated=len(done),
        top_vendors=sum(1 for r in done if r.is_top),
        errors=len(results) - len(done),
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    logger.info(
        "Cron: calculateQualityScores finished in %sms - updated=%s top=%s errors=%s",
        summary.duration_ms, summary.updated, summary.top_vendors, summary.errors,
    )
    return summary


async def recalculate_vendor_quality(
    session_maker: async_sessionmaker,
    vendor_id: int,
    *,
    settings: Settings = default_settings,
    clock: Clock = system_clock,
) -> VendorQualityResult:
    """On-demand recompute for a single vendor. Raises VendorNotFound."""
    async with session_maker() as db:
        if await db.get(Vendor, vendor_id) is None:
            raise VendorNotFound(vendor_id)
        sources = await detect_sources(db)
        result = await score_vendor(db, vendor_id, sources, QualityThresholds.from_settings(settings), clock.now())
    logger.info("Quality score updated for vendor %s: %.2f (top=%s)", vendor_id, result.quality_score, result.is_top)
    return result


if __name__ == "__main__":
    from app.core.database import async_session_maker

    logging.basicConfig(level=default_settings.LOG_LEVEL)
    print(asyncio.run(calculate_quality_scores(async_session_maker)).to_dict())
