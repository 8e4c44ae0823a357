from enum import Enum


class SubscriptionScope(str, Enum):
    offer = "offer"
    business = "business"
    area = "area"


class NotificationType(str, Enum):
    offer_live = "offer_live"
    new_order = "new_order"
    order_created = "order_created"
    order_status = "order_status"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    ready = "ready"
    completed = "completed"
    cancelled = "cancelled"
