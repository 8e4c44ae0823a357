"""Operator-triggered pushes: free-form messages and order events."""
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.notifications.schemas import (
    NewOrderNotificationRequest,
    NewOrderNotificationResponse,
    OrderStatusNotificationRequest,
    OrderStatusNotificationResponse,
    SendNotificationRequest,
    SendNotificationResponse,
)
from app.core.config import Settings
from app.core.notification_service import send_push_notification
from app.core.order_notifications import (
    notify_customer_about_new_order,
    notify_customer_about_order_status,
    notify_vendor_about_new_order,
)
from app.core.push_client import Notifier

logger = logging.getLogger(__name__)


async def send_notification_to_subscribers(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    data: SendNotificationRequest,
    settings: Settings,
) -> SendNotificationResponse:
    sent_count = 0
    for subscriber_id in dict.fromkeys(data.subscriber_ids):
        if await send_push_notification(
            session_maker, notifier, subscriber_id, data.title, data.body, data.data, settings=settings
        ):
            sent_count += 1
    failed_count = len(set(data.subscriber_ids)) - sent_count
    logger.info("Operator push %r: sent=%s failed=%s", data.title, sent_count, failed_count)
    return SendNotificationResponse(sent_count=sent_count, failed_count=failed_count)


async def notify_new_order(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    data: NewOrderNotificationRequest,
    settings: Settings,
) -> NewOrderNotificationResponse:
    vendor_notified = await notify_vendor_about_new_order(
        session_maker, notifier, data.vendor_id, data.order_id, data.total, data.items_count, settings=settings
    )
    customer_notified = await notify_customer_about_new_order(
        session_maker, notifier, data.customer_id, data.order_id, data.vendor_name, data.total, settings=settings
    )
    return NewOrderNotificationResponse(vendor_notified=vendor_notified, customer_notified=customer_notified)


async def notify_order_status(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    order_id: int,
    data: OrderStatusNotificationRequest,
    settings: Settings,
) -> OrderStatusNotificationResponse:
    customer_notified = await notify_customer_about_order_status(
        session_maker, notifier, data.customer_id, order_id, data.status.value, data.vendor_name, settings=settings
    )
    return OrderStatusNotificationResponse(customer_notified=customer_notified)
