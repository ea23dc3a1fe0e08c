"""Proximity search: nearby shops and best nearby price per product."""
import math
from decimal import Decimal
from typing import List, NamedTuple, Optional
from flask import current_app
from sqlalchemy import func, or_
from models import db
from models.user import Address
from models.shop import Shop
from models.product import Product, InventoryEntry
from app.errors import ValidationError
from app.services.geo import Coordinate, NearbyShop, bounding_box, nearby_shops


class SearchResult(NamedTuple):
    results: List[dict]
    reason: Optional[str]  # None, "empty_query", "no_shops_in_radius", "no_matches"
    message: str
    radius_km: float


def default_address(user_id: int) -> Address:
    address = Address.query.filter_by(user_id=user_id, is_default=True).first()
    if not address:
        raise ValidationError(
            "Default address not found. Please set one before searching nearby.",
            kind="NoDefaultAddress",
        )
    if address.latitude is None or address.longitude is None:
        raise ValidationError(
            "Default address has no location. Please update it before searching nearby.",
            kind="NoDefaultAddress",
        )
    return address


def reference_coordinate(user_id: int) -> Coordinate:
    address = default_address(user_id)
    return Coordinate(float(address.latitude), float(address.longitude))


def resolve_radius(radius_km, default_km: float) -> float:
    if radius_km is None or radius_km == "":
        return float(default_km)
    try:
        radius = float(radius_km)
    except (TypeError, ValueError):
        raise ValidationError("Radius must be a number", kind="InvalidRadius")
    max_km = current_app.config.get("MAX_RADIUS_KM", 50)
    if not math.isfinite(radius) or radius <= 0 or radius > max_km:
        raise ValidationError(
            f"Radius must be greater than 0 and at most {max_km:g} km", kind="InvalidRadius"
        )
    return radius


def shops_near(origin: Coordinate, radius_km: float) -> List[NearbyShop]:
    min_lat, max_lat, min_lng, max_lng = bounding_box(origin, radius_km)
    candidates = Shop.query.filter(
        Shop.latitude.isnot(None),
        Shop.longitude.isnot(None),
        Shop.latitude.between(min_lat, max_lat),
        Shop.longitude.between(min_lng, max_lng),
    ).all()
    cfg = current_app.config
    return nearby_shops(
        origin,
        candidates,
        radius_km,
        base_minutes=cfg.get("DELIVERY_BASE_MINUTES"),
        speed_kmph=cfg.get("DELIVERY_SPEED_KMPH", 20.0),
    )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _result_row(entry: InventoryEntry, near: NearbyShop) -> dict:
    product = entry.product
    return {
        "id": product.id,
        "name": product.name,
        "price": float(entry.price),
        "quantity": entry.quantity,
        "is_available": entry.is_available,
        "net_qty": entry.net_qty or product.net_qty,
        "shop_id": entry.shop_id,
        "shop_name": near.shop.store_name,
        "distance_km": round(near.distance_km, 3),
        "delivery_time": near.delivery_minutes,
        "product": product.summary(),
        "shop": near.shop.summary(),
    }


def pick_best_offers(entries, nearby_by_shop):
    """Cheapest entry per product; ties go to the nearer shop, then lower shop id."""
    best = {}
    for entry in entries:
        near = nearby_by_shop[entry.shop_id]
        rank = (Decimal(str(entry.price)), near.distance_km, entry.shop_id)
        current = best.get(entry.product_id)
        if current is None or rank < current[0]:
            best[entry.product_id] = (rank, entry, near)
    return [(entry, near) for _, entry, near in best.values()]


def search_products(user_id: int, query: str, radius_km=None) -> SearchResult:
    origin = reference_coordinate(user_id)
    radius = resolve_radius(radius_km, current_app.config.get("SEARCH_RADIUS_KM", 10))

    term = (query or "").strip()
    if not term:
        return SearchResult([], "empty_query", "Enter a product name to search", radius)

    nearby = shops_near(origin, radius)
    if not nearby:
        return SearchResult(
            [], "no_shops_in_radius", f"No shops found within {radius:g} km of your address", radius
        )
    by_shop = {n.shop.id: n for n in nearby}

    pattern = f"%{_escape_like(term)}%"
    entries = (
        InventoryEntry.query.join(Product, Product.id == InventoryEntry.product_id)
        .filter(
            InventoryEntry.shop_id.in_(list(by_shop)),
            InventoryEntry.is_available.is_(True),
            InventoryEntry.quantity > 0,
            or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.brand.ilike(pattern, escape="\\"),
                Product.description.ilike(pattern, escape="\\"),
            ),
        )
        .all()
    )

    rows = [_result_row(entry, near) for entry, near in pick_best_offers(entries, by_shop)]
    rows.sort(key=lambda r: (r["distance_km"], r["price"], r["id"]))
    if not rows:
        return SearchResult([], "no_matches", f"No products matching '{term}' found nearby", radius)
    return SearchResult(rows, None, f"Found {len(rows)} products nearby", radius)


def list_nearby_shops(user_id: int, radius_km=None):
    """Nearby shops for the caller's default address, with product counts."""
    origin = reference_coordinate(user_id)
    radius = resolve_radius(radius_km, current_app.config.get("NEARBY_RADIUS_KM", 7))
    nearby = shops_near(origin, radius)
    counts = {}
    if nearby:
        counts = dict(
            db.session.query(InventoryEntry.shop_id, func.count())
            .filter(
                InventoryEntry.shop_id.in_([n.shop.id for n in nearby]),
                InventoryEntry.is_available.is_(True),
            )
            .group_by(InventoryEntry.shop_id)
            .all()
        )
    shops = []
    for n in nearby:
        row = n.shop.summary()
        row.update(
            latitude=n.shop.latitude,
            longitude=n.shop.longitude,
            distance_km=round(n.distance_km, 3),
            delivery_time=n.delivery_minutes,
            total_products=counts.get(n.shop.id, 0),
        )
        shops.append(row)
    return shops, radius
