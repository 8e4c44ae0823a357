"""
Push notification service: deliver payloads to subscriber endpoints.
Fan-out is bounded by a semaphore and every send has its own timeout. Delivery
outcomes feed back into the store: the anti-spam ledger on success, endpoint
invalidation when the push service says the subscription is gone.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, settings as default_settings
from app.core.database import table_exists
from app.core.exceptions import EndpointGone, TransientDeliveryFailure
from app.core.notification_ledger import record_sent
from app.core.push_client import Notifier
from app.core.subscriber_matching import Recipient
from app.models.enums import NotificationType
from app.models.notification import Notification
from app.models.push_endpoint import PushEndpoint

logger = logging.getLogger(__name__)

SENT = "sent"
GONE = "gone"
FAILED = "failed"


@dataclass
class DispatchSummary:
    sent: int = 0
    gone: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.gone + self.failed


def build_push_payload(
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    icon: str = "",
    badge: str = "",
) -> dict[str, Any]:
    return {"title": title, "body": body, "icon": icon, "badge": badge, "data": dict(data or {})}


def build_offer_live_payload(
    offer_id: int,
    offer_title: str,
    vendor_id: int,
    icon: str = "",
    badge: str = "",
) -> dict[str, Any]:
    """Wire payload consumed by the client service worker; data drives client-side routing."""
    return build_push_payload(
        title="🎉 New offer!",
        body=f"{offer_title} is now available!",
        data={
            "type": NotificationType.offer_live.value,
            "offerId": offer_id,
            "businessId": vendor_id,
            "url": f"/vendor/{vendor_id}",
        },
        icon=icon,
        badge=badge,
    )


async def deliver(notifier: Notifier, subscription: dict[str, Any], payload: dict[str, Any], timeout: float) -> None:
    """
    Send one push with a hard timeout. Raises EndpointGone or TransientDeliveryFailure.

    A timeout only cancels the await: a transport running in a worker thread keeps going
    until its own HTTP timeout fires, so notifiers must be built with the same timeout
    (see build_notifier) to keep detached sends short-lived.
    """
    try:
        await asyncio.wait_for(notifier.send(subscription, payload), timeout=timeout)
    except (EndpointGone, TransientDeliveryFailure):
        raise
    except asyncio.TimeoutError as e:
        raise TransientDeliveryFailure(f"push send timed out after {timeout}s") from e
    except Exception as e:
        raise TransientDeliveryFailure(str(e) or e.__class__.__name__) from e


async def disable_endpoint(db: AsyncSession, endpoint_id: int) -> bool:
    """Turn off an endpoint and drop its subscription blob. Returns False if it was already disabled."""
    result = await db.execute(
        update(PushEndpoint)
        .where(PushEndpoint.id == endpoint_id, PushEndpoint.enabled.is_(True))
        .values(enabled=False, subscription=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def _disable_gone_endpoint(session_maker: async_sessionmaker, subscriber_id: int, endpoint_id: int) -> None:
    try:
        async with session_maker() as db:
            if await disable_endpoint(db, endpoint_id):
                logger.warning("Push endpoint of subscriber %s no longer exists; disabled", subscriber_id)
    except SQLAlchemyError as e:
        logger.error("Could not disable push endpoint %s of subscriber %s: %s", endpoint_id, subscriber_id, e)


def _history_row(user_id: int, payload: dict[str, Any]) -> Notification:
    data = payload.get("data") or {}
    return Notification(
        user_id=user_id,
        title=payload["title"],
        body=payload["body"],
        type=data.get("type") or "info",
        data=data,
    )


async def _store_history(session_maker: async_sessionmaker, user_id: int, payload: dict[str, Any]) -> None:
    """History is optional: a failed insert is logged and never touches the ledger."""
    try:
        async with session_maker() as db:
            db.add(_history_row(user_id, payload))
            await db.commit()
    except SQLAlchemyError as e:
        logger.warning("Could not store notification history for subscriber %s: %s", user_id, e)


async def dispatch_offer_notifications(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    recipients: Iterable[Recipient],
    payload: dict[str, Any],
    *,
    offer_id: int,
    notification_type: str,
    sent_at: datetime,
    max_concurrency: int,
    timeout: float,
    record_history: bool = False,
) -> DispatchSummary:
    """
    Deliver payload to every recipient with at most max_concurrency sends in flight.
    A recipient's failure (send or bookkeeping) never affects the others.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def deliver_to(recipient: Recipient) -> str:
        async with semaphore:
            try:
                await deliver(notifier, recipient.subscription, payload, timeout)
            except EndpointGone as e:
                logger.info("Offer %s: endpoint of subscriber %s gone (%s)", offer_id, recipient.subscriber_id, e)
                await _disable_gone_endpoint(session_maker, recipient.subscriber_id, recipient.endpoint_id)
                return GONE
            except TransientDeliveryFailure as e:
                logger.error("Offer %s: push to subscriber %s failed: %s", offer_id, recipient.subscriber_id, e)
                return FAILED

            try:
                async with session_maker() as db:
                    await record_sent(db, offer_id, recipient.subscriber_id, notification_type, sent_at)
                    await db.commit()
            except SQLAlchemyError as e:
                logger.error(
                    "Offer %s: push delivered to subscriber %s but ledger write failed: %s",
                    offer_id, recipient.subscriber_id, e,
                )
            if record_history:
                await _store_history(session_maker, recipient.subscriber_id, payload)
            logger.info("Offer %s: push sent to subscriber %s", offer_id, recipient.subscriber_id)
            return SENT

    outcomes = await asyncio.gather(*(deliver_to(r) for r in recipients))
    return DispatchSummary(
        sent=outcomes.count(SENT),
        gone=outcomes.count(GONE),
        failed=outcomes.count(FAILED),
    )


async def send_push_notification(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    subscriber_id: int,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
    settings: Settings = default_settings,
) -> bool:
    """
    Send a one-off push to a single subscriber (order events and the like).
    Returns True if delivered, False if the subscriber has no usable endpoint or the send failed.
    """
    async with session_maker() as db:
        result = await db.execute(select(PushEndpoint).where(PushEndpoint.subscriber_id == subscriber_id))
        endpoint = result.scalar_one_or_none()
        if endpoint is None or not endpoint.enabled or not endpoint.subscription:
            logger.debug("Subscriber %s has no enabled push endpoint, skipping", subscriber_id)
            return False
        endpoint_id, subscription = endpoint.id, endpoint.subscription
        keep_history = await table_exists(db, Notification.__tablename__)

    payload_data = dict(data or {})
    if now is not None:
        payload_data["timestamp"] = now.isoformat()
    payload = build_push_payload(title, body, payload_data, settings.PUSH_ICON_URL, settings.PUSH_BADGE_URL)

    try:
        await deliver(notifier, subscription, payload, settings.PUSH_SEND_TIMEOUT_SECONDS)
    except EndpointGone:
        await _disable_gone_endpoint(session_maker, subscriber_id, endpoint_id)
        return False
    except TransientDeliveryFailure as e:
        logger.error("Push to subscriber %s failed: %s", subscriber_id, e)
        return False
    logger.info("Push sent to subscriber %s: %s", subscriber_id, title)

    if keep_history:
        await _store_history(session_maker, subscriber_id, payload)
    return True
