"""
Cron job: activate and deactivate offers by their publish window, then notify waitlist subscribers.
Runs every OFFER_SCHEDULER_INTERVAL_SECONDS. Both transitions are conditional UPDATEs, so a
repeated tick is a no-op and a missed tick is caught up by the next one.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import Clock, system_clock
from app.core.config import Settings, settings as default_settings
from app.core.database import table_exists
from app.core.exceptions import StoreUnavailable
from app.core.notification_ledger import recently_notified
from app.core.notification_service import (
    DispatchSummary,
    build_offer_live_payload,
    dispatch_offer_notifications,
)
from app.core.push_client import Notifier
from app.core.subscriber_matching import find_offer_recipients
from app.models.enums import NotificationType
from app.models.notification import Notification
from app.models.offer import Offer
from app.models.vendor import Vendor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfferLive:
    offer_id: int
    title: str
    vendor_id: int


@dataclass
class OfferTickResult:
    activated: int = 0
    deactivated: int = 0
    notified: int = 0
    endpoints_disabled: int = 0
    failed_sends: int = 0
    failed_offers: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


async def activate_due_offers(db: AsyncSession, now: datetime) -> list[OfferLive]:
    """
    scheduled -> active. An offer whose window already closed (unpublish_at <= now) is
    never activated, so a deactivated offer stays inactive.
    """
    result = await db.execute(
        update(Offer)
        .where(
            Offer.publish_at <= now,
            Offer.is_active.is_(False),
            or_(Offer.unpublish_at.is_(None), Offer.unpublish_at > now),
        )
        .values(is_active=True)
        .returning(Offer.id, Offer.title, Offer.vendor_id)
        .execution_options(synchronize_session=False)
    )
    activated = [OfferLive(offer_id=r.id, title=r.title, vendor_id=r.vendor_id) for r in result.all()]
    await db.commit()
    return activated


async def deactivate_expired_offers(db: AsyncSession, now: datetime) -> list[int]:
    """active -> inactive once unpublish_at has passed."""
    result = await db.execute(
        update(Offer)
        .where(
            Offer.unpublish_at.isnot(None),
            Offer.unpublish_at <= now,
            Offer.is_active.is_(True),
        )
        .values(is_active=False)
        .returning(Offer.id)
        .execution_options(synchronize_session=False)
    )
    deactivated = list(result.scalars().all())
    await db.commit()
    return deactivated


async def notify_offer_subscribers(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    offer: OfferLive,
    now: datetime,
    settings: Settings = default_settings,
    notification_type: str = NotificationType.offer_live.value,
) -> DispatchSummary:
    """Match subscribers for a live offer, drop those inside the anti-spam window, send the rest."""
    async with session_maker() as db:
        vendor = await db.get(Vendor, offer.vendor_id)
        lat, lon = (vendor.latitude, vendor.longitude) if vendor else (None, None)
        recipients = await find_offer_recipients(
            db, offer.offer_id, offer.vendor_id, lat, lon, settings.DEFAULT_SUBSCRIPTION_RADIUS_KM
        )
        suppressed = await recently_notified(
            db,
            offer.offer_id,
            notification_type,
            (r.subscriber_id for r in recipients),
            now,
            timedelta(hours=settings.ANTISPAM_HOURS),
        )
        record_history = await table_exists(db, Notification.__tablename__)

    if suppressed:
        logger.info("Offer %s: %s subscriber(s) suppressed by anti-spam window", offer.offer_id, len(suppressed))
    recipients = [r for r in recipients if r.subscriber_id not in suppressed]
    if not recipients:
        logger.info("No subscribers to notify for offer %s", offer.offer_id)
        return DispatchSummary()

    logger.info("Sending offer %s notifications to %s subscriber(s)", offer.offer_id, len(recipients))
    payload = build_offer_live_payload(
        offer.offer_id, offer.title, offer.vendor_id, settings.PUSH_ICON_URL, settings.PUSH_BADGE_URL
    )
    return await dispatch_offer_notifications(
        session_maker,
        notifier,
        recipients,
        payload,
        offer_id=offer.offer_id,
        notification_type=notification_type,
        sent_at=now,
        max_concurrency=settings.PUSH_MAX_CONCURRENCY,
        timeout=settings.PUSH_SEND_TIMEOUT_SECONDS,
        record_history=record_history,
    )


async def process_scheduled_offers(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    *,
    settings: Settings = default_settings,
    clock: Clock = system_clock,
) -> OfferTickResult:
    """
    One scheduler tick. Raises StoreUnavailable when a transition statement fails; offers
    activated before the failure are still notified.
    """
    now = clock.now()
    logger.info("Cron: processScheduledOffers started at %s", now.isoformat())
    result = OfferTickResult()

    try:
        async with session_maker() as db:
            activated = await activate_due_offers(db, now)
    except SQLAlchemyError as e:
        raise StoreUnavailable(f"offer activation failed: {e}") from e
    result.activated = len(activated)

    deactivation_error = None
    try:
        async with session_maker() as db:
            result.deactivated = len(await deactivate_expired_offers(db, now))
    except SQLAlchemyError as e:
        deactivation_error = e

    for offer in activated:
        try:
            summary = await notify_offer_subscribers(session_maker, notifier, offer, now, settings)
        except Exception as e:
            result.failed_offers += 1
            logger.exception("Cron: notifying subscribers of offer %s failed: %s", offer.offer_id, e)
            continue
        result.notified += summary.sent
        result.endpoints_disabled += summary.gone
        result.failed_sends += summary.failed

    logger.info(
        "Cron: processScheduledOffers finished - activated=%s deactivated=%s notified=%s failed_sends=%s",
        result.activated, result.deactivated, result.notified, result.failed_sends,
    )
    if deactivation_error is not None:
        raise StoreUnavailable(f"offer deactivation failed: {deactivation_error}") from deactivation_error
    return result
