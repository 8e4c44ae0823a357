"""Read-side queries over orders and reviews used to score vendors."""
import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import table_exists
from app.core.quality_score import VendorMetricsSnapshot
from app.models.enums import OrderStatus
from app.models.order import Order
from app.models.review import Review

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailableSources:
    orders: bool
    reviews: bool


async def detect_sources(db: AsyncSession) -> AvailableSources:
    """Which supporting tables exist. A missing one degrades its metrics to 0."""
    sources = AvailableSources(
        orders=await table_exists(db, Order.__tablename__),
        reviews=await table_exists(db, Review.__tablename__),
    )
    if not sources.orders:
        logger.warning("Table %s not found; order metrics will be 0", Order.__tablename__)
    if not sources.reviews:
        logger.warning("Table %s not found; ratings will be 0", Review.__tablename__)
    return sources


async def collect_vendor_metrics(
    db: AsyncSession,
    vendor_id: int,
    sources: AvailableSources,
) -> VendorMetricsSnapshot:
    if not sources.orders:
        return VendorMetricsSnapshot()

    totals = (
        await db.execute(
            select(
                func.count(Order.id).label("total_orders"),
                func.count(Order.id).filter(Order.status == OrderStatus.completed.value).label("completed_orders"),
            ).where(Order.vendor_id == vendor_id)
        )
    ).one()

    per_customer = (
        select(Order.customer_id, func.count(Order.id).label("order_count"))
        .where(Order.vendor_id == vendor_id)
        .group_by(Order.customer_id)
        .subquery()
    )
    customers = (
        await db.execute(
            select(
                func.count(per_customer.c.customer_id).label("unique_customers"),
                func.count(per_customer.c.customer_id).filter(per_customer.c.order_count > 1).label("repeat_customers"),
            )
        )
    ).one()

    avg_rating = 0.0
    if sources.reviews:
        value = (
            await db.execute(select(func.avg(Review.rating)).where(Review.vendor_id == vendor_id))
        ).scalar()
        avg_rating = round(float(value or 0), 2)

    return VendorMetricsSnapshot(
        total_orders=int(totals.total_orders or 0),
        completed_orders=int(totals.completed_orders or 0),
        repeat_customers=int(customers.repeat_customers or 0),
        unique_customers=int(customers.unique_customers or 0),
        avg_rating=avg_rating,
    )
