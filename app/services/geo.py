"""Great-circle distance and radius filtering for shops.

Everything here is pure: no database access and no Flask context, so the
functions can be exercised directly with plain objects.
"""
import math
from typing import Iterable, List, NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0
DEFAULT_BASE_MINUTES = 10
DEFAULT_SPEED_KMPH = 20.0


class Coordinate(NamedTuple):
    lat: float
    lng: float


class NearbyShop(NamedTuple):
    shop: object
    distance_km: float
    delivery_minutes: int


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates on a spherical Earth."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # clamp float noise so asin stays in its domain
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def delivery_minutes(
    dist_km: float,
    base_minutes: Optional[int] = None,
    speed_kmph: float = DEFAULT_SPEED_KMPH,
) -> int:
    """Estimated delivery time: shop base time plus travel time, in whole minutes."""
    if speed_kmph <= 0:
        raise ValueError("speed_kmph must be positive")
    base = DEFAULT_BASE_MINUTES if base_minutes is None else base_minutes
    return int(base + math.ceil(dist_km / speed_kmph * 60))


def shop_coordinate(shop) -> Optional[Coordinate]:
    if shop.latitude is None or shop.longitude is None:
        return None
    return Coordinate(float(shop.latitude), float(shop.longitude))


def nearby_shops(
    origin: Coordinate,
    shops: Iterable,
    radius_km: float,
    base_minutes: Optional[int] = None,
    speed_kmph: float = DEFAULT_SPEED_KMPH,
) -> List[NearbyShop]:
    """Shops within radius_km of origin (inclusive), nearest first.

    Shops without coordinates are skipped. Ties on distance are ordered by
    shop id so the result is deterministic.
    """
    if radius_km < 0:
        raise ValueError("radius_km must not be negative")
    found = []
    for shop in shops:
        coord = shop_coordinate(shop)
        if coord is None:
            continue
        d = distance_km(origin, coord)
        if d <= radius_km:
            base = shop.delivery_time if getattr(shop, "delivery_time", None) is not None else base_minutes
            found.append(NearbyShop(shop, d, delivery_minutes(d, base, speed_kmph)))
    found.sort(key=lambda n: (n.distance_km, n.shop.id))
    return found


def bounding_box(origin: Coordinate, radius_km: float):
    """(min_lat, max_lat, min_lng, max_lng) containing every point within radius_km.

    Used as a cheap SQL prefilter before the exact haversine check, so it is
    padded outward and falls back to the full longitude range near the poles
    and across the antimeridian.
    """
    pad = 1e-6
    ang = radius_km / EARTH_RADIUS_KM
    dlat = math.degrees(ang) + pad
    min_lat, max_lat = origin.lat - dlat, origin.lat + dlat
    if min_lat <= -90 or max_lat >= 90:
        return (max(-90.0, min_lat), min(90.0, max_lat), -180.0, 180.0)
    ratio = math.sin(ang) / math.cos(math.radians(origin.lat))
    if ang >= math.pi / 2 or ratio >= 1:
        return (min_lat, max_lat, -180.0, 180.0)
    dlng = math.degrees(math.asin(ratio)) + pad
    min_lng, max_lng = origin.lng - dlng, origin.lng + dlng
    if min_lng < -180 or max_lng > 180:
        return (min_lat, max_lat, -180.0, 180.0)
    return (min_lat, max_lat, min_lng, max_lng)
