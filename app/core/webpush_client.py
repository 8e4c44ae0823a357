"""Web Push (VAPID) transport for browser PushSubscription endpoints."""
import asyncio
import json
import logging
from typing import Any

from pywebpush import WebPushException, webpush

from app.core.exceptions import EndpointGone, TransientDeliveryFailure

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)
DEFAULT_TTL_SECONDS = 3600


class WebPushNotifier:
    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        timeout: float = 10.0,
        ttl: int = DEFAULT_TTL_SECONDS,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.timeout = timeout
        self.ttl = ttl

    def _send_sync(self, subscription: dict[str, Any], body: str) -> None:
        try:
            webpush(
                subscription_info=subscription,
                data=body,
                vapid_private_key=self.vapid_private_key,
                # webpush() adds aud/exp to the claims dict, so never share it between calls
                vapid_claims={"sub": self.vapid_subject},
                timeout=self.timeout,
                ttl=self.ttl,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                raise EndpointGone(f"push service answered {status_code}") from e
            raise TransientDeliveryFailure(f"web push failed (status={status_code}): {e}") from e
        except Exception as e:
            raise TransientDeliveryFailure(f"web push failed: {e}") from e

    async def send(self, subscription: dict[str, Any], payload: dict[str, Any]) -> None:
        if not subscription or not subscription.get("endpoint"):
            raise EndpointGone("subscription has no endpoint")
        await asyncio.to_thread(self._send_sync, subscription, json.dumps(payload, ensure_ascii=False))
