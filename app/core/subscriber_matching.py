"""
Resolve which subscribers should hear about an offer going live.
Union of offer-scope, business-scope and area-scope subscriptions whose subscriber
has an enabled push endpoint; area candidates are narrowed by a lat/lon box in SQL,
then filtered by haversine distance.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.geo import bounding_box, match_area_subscriptions
from app.models.enums import SubscriptionScope
from app.models.push_endpoint import PushEndpoint
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    subscriber_id: int
    endpoint_id: int
    subscription: dict[str, Any] = field(hash=False, compare=False)


async def _area_filter(db: AsyncSession, lat: float, lon: float, default_radius_km: float):
    """Area candidates inside the box of the widest active circle; the exact distance check runs afterwards."""
    widest = (
        await db.execute(
            select(func.max(Subscription.radius_km)).where(
                Subscription.scope == SubscriptionScope.area.value,
                Subscription.is_active.is_(True),
            )
        )
    ).scalar()
    box = bounding_box(lat, lon, max(default_radius_km, widest or 0.0))
    conditions = [
        Subscription.scope == SubscriptionScope.area.value,
        Subscription.latitude.between(box.min_lat, box.max_lat),
        Subscription.longitude.isnot(None),
    ]
    if box.min_lon is not None:
        conditions.append(Subscription.longitude.between(box.min_lon, box.max_lon))
    return and_(*conditions)


async def find_offer_recipients(
    db: AsyncSession,
    offer_id: int,
    vendor_id: int,
    vendor_lat: float | None,
    vendor_lon: float | None,
    default_radius_km: float,
) -> list[Recipient]:
    """Eligible recipients for an offer, one per subscriber, ordered by subscriber id."""
    scope_filters = [
        and_(Subscription.scope == SubscriptionScope.offer.value, Subscription.scope_id == offer_id),
        and_(Subscription.scope == SubscriptionScope.business.value, Subscription.scope_id == vendor_id),
    ]
    if vendor_lat is not None and vendor_lon is not None:
        scope_filters.append(await _area_filter(db, vendor_lat, vendor_lon, default_radius_km))

    result = await db.execute(
        select(Subscription, PushEndpoint.id, PushEndpoint.subscription)
        .join(PushEndpoint, PushEndpoint.subscriber_id == Subscription.subscriber_id)
        .where(
            Subscription.is_active.is_(True),
            PushEndpoint.enabled.is_(True),
            PushEndpoint.subscription.isnot(None),
            or_(*scope_filters),
        )
    )
    rows = result.all()

    endpoints: dict[int, tuple[int, dict]] = {}
    direct: set[int] = set()
    area_candidates: list[Subscription] = []
    for sub, endpoint_id, blob in rows:
        endpoints[sub.subscriber_id] = (endpoint_id, blob)
        if sub.scope == SubscriptionScope.area.value:
            area_candidates.append(sub)
        else:
            direct.add(sub.subscriber_id)

    in_area = {
        sub.subscriber_id
        for sub in match_area_subscriptions(vendor_lat, vendor_lon, area_candidates, default_radius_km)
    }
    subscriber_ids = sorted(direct | in_area)
    logger.debug(
        "Offer %s: %s direct and %s area subscribers matched (%s area candidates)",
        offer_id, len(direct), len(in_area), len(area_candidates),
    )
    return [
        Recipient(subscriber_id=sid, endpoint_id=endpoints[sid][0], subscription=endpoints[sid][1])
        for sid in subscriber_ids
    ]
