"""
Anti-spam ledger for offer notifications.
A (offer_id, subscriber_id, notification_type) pair may be delivered again only
once the previous successful delivery is older than the anti-spam window.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import dialect_name
from app.models.offer_notification_log import OfferNotificationLog

logger = logging.getLogger(__name__)


async def recently_notified(
    db: AsyncSession,
    offer_id: int,
    notification_type: str,
    subscriber_ids: Iterable[int],
    now: datetime,
    window: timedelta,
) -> set[int]:
    """Subscribers that already got this notification inside the window."""
    ids = list(subscriber_ids)
    if not ids:
        return set()
    result = await db.execute(
        select(OfferNotificationLog.subscriber_id).where(
            OfferNotificationLog.offer_id == offer_id,
            OfferNotificationLog.notification_type == notification_type,
            OfferNotificationLog.subscriber_id.in_(ids),
            OfferNotificationLog.sent_at > now - window,
        )
    )
    return set(result.scalars().all())


async def record_sent(
    db: AsyncSession,
    offer_id: int,
    subscriber_id: int,
    notification_type: str,
    sent_at: datetime,
) -> None:
    """Insert the ledger row or move its sent_at forward. Caller commits."""
    insert = pg_insert if dialect_name(db) == "postgresql" else sqlite_insert
    stmt = insert(OfferNotificationLog).values(
        offer_id=offer_id,
        subscriber_id=subscriber_id,
        notification_type=notification_type,
        sent_at=sent_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["offer_id", "subscriber_id", "notification_type"],
        set_={"sent_at": stmt.excluded.sent_at},
    )
    await db.execute(stmt)
    logger.debug("Ledger: offer=%s subscriber=%s type=%s sent_at=%s", offer_id, subscriber_id, notification_type, sent_at)
