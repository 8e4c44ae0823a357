from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.notifications.schemas import (
    NewOrderNotificationRequest,
    NewOrderNotificationResponse,
    OrderStatusNotificationRequest,
    OrderStatusNotificationResponse,
    SendNotificationRequest,
    SendNotificationResponse,
)
from app.api.v1.notifications.service import (
    notify_new_order,
    notify_order_status,
    send_notification_to_subscribers,
)
from app.core.config import Settings
from app.core.deps import get_notifier, get_session_maker, get_settings, require_jobs_token
from app.core.push_client import Notifier

router = APIRouter(dependencies=[Depends(require_jobs_token)])


@router.post(
    "/send",
    response_model=SendNotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Send notification to subscribers",
    description="Send a push notification with title, body and optional data to one or more subscribers.",
)
async def send_notification(
    data: SendNotificationRequest,
    session_maker: async_sessionmaker = Depends(get_session_maker),
    notifier: Notifier = Depends(get_notifier),
    app_settings: Settings = Depends(get_settings),
):
    return await send_notification_to_subscribers(session_maker, notifier, data, app_settings)


@router.post(
    "/orders",
    response_model=NewOrderNotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Notify about a new order",
    description="Push the new order to the vendor and an order confirmation to the customer.",
)
async def new_order_notification(
    data: NewOrderNotificationRequest,
    session_maker: async_sessionmaker = Depends(get_session_maker),
    notifier: Notifier = Depends(get_notifier),
    app_settings: Settings = Depends(get_settings),
):
    return await notify_new_order(session_maker, notifier, data, app_settings)


@router.post(
    "/orders/{order_id}/status",
    response_model=OrderStatusNotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Notify the customer about an order status change",
)
async def order_status_notification(
    order_id: int,
    data: OrderStatusNotificationRequest,
    session_maker: async_sessionmaker = Depends(get_session_maker),
    notifier: Notifier = Depends(get_notifier),
    app_settings: Settings = Depends(get_settings),
):
    return await notify_order_status(session_maker, notifier, order_id, data, app_settings)
