"""Great-circle distance and area-subscription matching."""
from dataclasses import dataclass
from math import asin, cos, degrees, radians, sin, sqrt
from typing import Iterable, TypeVar

EARTH_RADIUS_KM = 6371.0
# keeps points lying exactly on the circle inside the box despite float rounding
BOX_PADDING_DEG = 1e-6

T = TypeVar("T")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in km between two lat/lon points (degrees)."""
    phi1, phi2 = radians(lat1), radians(lat2)
    d_phi = radians(lat2 - lat1)
    d_lambda = radians(lon2 - lon1)
    a = sin(d_phi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(min(1.0, sqrt(a)))


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # None when the circle touches a pole or crosses the antimeridian
    min_lon: float | None = None
    max_lon: float | None = None


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """Smallest lat/lon box that contains every point within radius_km of (lat, lon)."""
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = degrees(angular) + BOX_PADDING_DEG
    min_lat, max_lat = lat - d_lat, lat + d_lat
    if min_lat <= -90 or max_lat >= 90:
        return BoundingBox(max(min_lat, -90.0), min(max_lat, 90.0))

    ratio = sin(angular) / cos(radians(lat))
    if ratio >= 1:
        return BoundingBox(min_lat, max_lat)
    d_lon = degrees(asin(ratio)) + BOX_PADDING_DEG
    min_lon, max_lon = lon - d_lon, lon + d_lon
    if min_lon < -180 or max_lon > 180:
        return BoundingBox(min_lat, max_lat)
    return BoundingBox(min_lat, max_lat, min_lon, max_lon)


def is_within_radius(
    lat: float,
    lon: float,
    subscription,
    default_radius_km: float,
) -> bool:
    """True if the point lies inside the subscription's circle (boundary included)."""
    if subscription.latitude is None or subscription.longitude is None:
        return False
    radius = subscription.radius_km if subscription.radius_km is not None else default_radius_km
    return haversine_km(lat, lon, subscription.latitude, subscription.longitude) <= radius


def match_area_subscriptions(
    lat: float | None,
    lon: float | None,
    subscriptions: Iterable[T],
    default_radius_km: float = 5.0,
) -> list[T]:
    """
    Filter area subscriptions (anything with latitude/longitude/radius_km attributes)
    down to those whose circle contains the point. No point, no matches.
    """
    if lat is None or lon is None:
        return []
    return [s for s in subscriptions if is_within_radius(lat, lon, s, default_radius_km)]
