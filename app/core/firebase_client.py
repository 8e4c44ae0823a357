"""
Firebase Cloud Messaging (FCM) push transport.
Initializes from service account file path or JSON string. The endpoint blob is {"token": <registration token>}.
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from app.core.exceptions import EndpointGone, TransientDeliveryFailure

logger = logging.getLogger(__name__)


def load_credentials(credentials_json: str = "", credentials_path: str = "") -> dict | None:
    """Load Firebase credentials from a raw JSON string (preferred) or a file path."""
    json_str = (credentials_json or "").strip()
    if json_str:
        try:
            return json.loads(json_str)
        except json.JSONDecodeError as e:
            logger.warning("Firebase credentials JSON invalid: %s", e)
            return None
    path = (credentials_path or "").strip()
    if path:
        p = Path(path)
        if p.is_absolute():
            full_path = p
        else:
            from app.core.config import BASE_DIR
            full_path = BASE_DIR / path
        if full_path.exists():
            with open(full_path) as f:
                return json.load(f)
        logger.warning("Firebase credentials path not found: %s", full_path)
        return None
    return None


def _stringify(data: dict[str, Any] | None) -> dict[str, str]:
    """FCM data values must be strings."""
    return {k: str(v) for k, v in (data or {}).items() if v is not None}


class FcmNotifier:
    """Notifier backed by firebase_admin.messaging; owns its own named Firebase app."""

    def __init__(self, credentials: dict, timeout: float = 10.0, app_name: str = "push-notifier"):
        import firebase_admin
        from firebase_admin import credentials as fb_credentials

        try:
            self._app = firebase_admin.get_app(app_name)
        except ValueError:
            self._app = firebase_admin.initialize_app(
                fb_credentials.Certificate(credentials),
                options={"httpTimeout": timeout},
                name=app_name,
            )
            logger.info("Firebase Admin SDK initialized (app=%s)", app_name)

    def _build_message(self, token: str, payload: dict[str, Any]):
        from firebase_admin import messaging

        return messaging.Message(
            notification=messaging.Notification(title=payload.get("title"), body=payload.get("body")),
            data=_stringify(payload.get("data")),
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    icon=payload.get("icon"),
                    badge=payload.get("badge"),
                ),
            ),
            token=token,
        )

    def _send_sync(self, token: str, payload: dict[str, Any]) -> None:
        from firebase_admin import exceptions as fb_exceptions
        from firebase_admin import messaging

        try:
            messaging.send(self._build_message(token, payload), app=self._app)
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError, fb_exceptions.NotFoundError) as e:
            raise EndpointGone(str(e)) from e
        except Exception as e:
            raise TransientDeliveryFailure(f"FCM send failed: {e}") from e

    async def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None:
        token = str((subscription or {}).get("token") or "").strip()
        if not token:
            raise EndpointGone("FCM endpoint has no registration token")
        await asyncio.to_thread(self._send_sync, token, payload)
        logger.debug("FCM sent to token %s...", token[:20] if len(token) > 20 else token)
