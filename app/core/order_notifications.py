"""Push messages for the ordering flow (new order for the vendor, order updates for the customer)."""
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import Settings, settings as default_settings
from app.core.notification_service import send_push_notification
from app.core.push_client import Notifier
from app.models.enums import NotificationType, OrderStatus


def new_order_message(order_id: int, total: float, items_count: int) -> tuple[str, str]:
    items = "item" if items_count == 1 else "items"
    return "🛒 New order!", f"New order #{order_id} for {total:.2f} ({items_count} {items})"


def order_created_message(order_id: int, vendor_name: str, total: float) -> tuple[str, str]:
    return "📦 Order placed", f"Your order #{order_id} from {vendor_name} for {total:.2f} has been placed"


def order_status_message(order_id: int, status: str, vendor_name: str) -> tuple[str, str]:
    if status == OrderStatus.confirmed.value:
        return "✅ Order confirmed", f"Your order #{order_id} from {vendor_name} is confirmed"
    if status == OrderStatus.ready.value:
        return "🎉 Order ready!", f"Your order #{order_id} from {vendor_name} is ready for pickup"
    if status == OrderStatus.completed.value:
        return "✨ Order completed", f"Thank you! Your order #{order_id} from {vendor_name} is completed"
    if status == OrderStatus.cancelled.value:
        return "❌ Order cancelled", f"Your order #{order_id} from {vendor_name} was cancelled"
    return "📦 Order update", f"The status of your order #{order_id} from {vendor_name} has changed"


async def notify_vendor_about_new_order(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    vendor_id: int,
    order_id: int,
    total: float,
    items_count: int,
    *,
    settings: Settings = default_settings,
) -> bool:
    title, body = new_order_message(order_id, total, items_count)
    return await send_push_notification(
        session_maker,
        notifier,
        vendor_id,
        title,
        body,
        {
            "type": NotificationType.new_order.value,
            "orderId": order_id,
            "businessId": vendor_id,
            "url": "/panel?tab=orders",
        },
        settings=settings,
    )


async def notify_customer_about_new_order(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    customer_id: int,
    order_id: int,
    vendor_name: str,
    total: float,
    *,
    settings: Settings = default_settings,
) -> bool:
    title, body = order_created_message(order_id, vendor_name, total)
    return await send_push_notification(
        session_maker,
        notifier,
        customer_id,
        title,
        body,
        {"type": NotificationType.order_created.value, "orderId": order_id, "url": f"/orders/{order_id}"},
        settings=settings,
    )


async def notify_customer_about_order_status(
    session_maker: async_sessionmaker,
    notifier: Notifier,
    customer_id: int,
    order_id: int,
    status: str,
    vendor_name: str,
    *,
    settings: Settings = default_settings,
) -> bool:
    title, body = order_status_message(order_id, status, vendor_name)
    return await send_push_notification(
        session_maker,
        notifier,
        customer_id,
        title,
        body,
        {
            "type": NotificationType.order_status.value,
            "orderId": order_id,
            "status": status,
            "url": f"/orders/{order_id}",
        },
        settings=settings,
    )
