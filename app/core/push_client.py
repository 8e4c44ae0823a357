"""
Push transport contract and factory.
A Notifier delivers one payload to one endpoint blob: it returns on success and raises
EndpointGone (subscription no longer exists) or TransientDeliveryFailure (anything else).
"""
import logging
from typing import Any, Protocol

from app.core.config import Settings
from app.core.firebase_client import FcmNotifier, load_credentials
from app.core.webpush_client import WebPushNotifier

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Used when no transport credentials are configured: logs the push and reports it delivered."""

    async def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None:
        logger.info("[SIMULATED] push: %s", payload.get("title"))


def build_notifier(settings: Settings) -> Notifier:
    transport = (settings.PUSH_TRANSPORT or "").strip().lower()
    if transport == "fcm":
        creds = load_credentials(settings.FIREBASE_CREDENTIALS_JSON, settings.FIREBASE_CREDENTIALS_PATH)
        if creds:
            return FcmNotifier(creds, timeout=settings.PUSH_SEND_TIMEOUT_SECONDS)
        logger.warning("PUSH_TRANSPORT=fcm but Firebase credentials are missing; pushes will only be logged")
        return LoggingNotifier()
    if transport == "webpush":
        if settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY:
            return WebPushNotifier(
                settings.VAPID_PRIVATE_KEY,
                settings.VAPID_SUBJECT,
                timeout=settings.PUSH_SEND_TIMEOUT_SECONDS,
            )
        logger.warning("VAPID keys are not configured; pushes will only be logged")
        return LoggingNotifier()
    raise ValueError(f"Unknown PUSH_TRANSPORT: {settings.PUSH_TRANSPORT!r}")
