from typing import Any

from pydantic import BaseModel, Field

from app.models.enums import OrderStatus


class SendNotificationRequest(BaseModel):
    """Operator sends a push notification to one or more subscribers."""
    title: str = Field(..., min_length=1, description="Notification title")
    body: str = Field(..., min_length=1, description="Notification body text")
    subscriber_ids: list[int] = Field(..., min_length=1, description="Subscribers to send to")
    data: dict[str, Any] | None = Field(None, description="Optional data payload for the client")


class SendNotificationResponse(BaseModel):
    """Result of sending notifications."""
    sent_count: int = Field(..., description="Number of subscribers who received the notification")
    failed_count: int = Field(..., description="No usable endpoint or the send failed")


class NewOrderNotificationRequest(BaseModel):
    """A customer placed an order: tell the vendor and confirm to the customer."""
    order_id: int
    vendor_id: int
    vendor_name: str = Field(..., min_length=1)
    customer_id: int
    total: float = Field(..., ge=0)
    items_count: int = Field(..., ge=1)


class NewOrderNotificationResponse(BaseModel):
    vendor_notified: bool
    customer_notified: bool


class OrderStatusNotificationRequest(BaseModel):
    customer_id: int
    status: OrderStatus
    vendor_name: str = Field(..., min_length=1)


class OrderStatusNotificationResponse(BaseModel):
    customer_notified: bool
