"""Stock ledger over shop_inventory rows.

reserve() and restore() are single conditional UPDATE statements so the
quantity check and the decrement happen atomically inside the database.
None of these functions commit; the caller owns the transaction.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, NamedTuple
from sqlalchemy import select, update
from models import db
from models.product import InventoryEntry
from app.errors import InternalError

logger = logging.getLogger(__name__)


class StockView(NamedTuple):
    price: Decimal
    quantity: int
    is_available: bool


def get_available(shop_id: int, product_ids: Iterable[int]) -> Dict[int, StockView]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = db.session.execute(
        select(
            InventoryEntry.product_id,
            InventoryEntry.price,
            InventoryEntry.quantity,
            InventoryEntry.is_available,
        ).where(
            InventoryEntry.shop_id == shop_id,
            InventoryEntry.product_id.in_(ids),
        )
    ).all()
    return {
        r.product_id: StockView(Decimal(str(r.price)), int(r.quantity or 0), bool(r.is_available))
        for r in rows
    }


def _expire_cached(shop_id: int, product_id: int) -> None:
    key = db.session.identity_key(InventoryEntry, (shop_id, product_id))
    entry = db.session.identity_map.get(key)
    if entry is not None:
        db.session.expire(entry, ["quantity"])


def reserve(shop_id: int, product_id: int, qty: int) -> bool:
    """Take qty units if, and only if, that many are in stock right now."""
    if qty <= 0:
        raise ValueError("qty must be positive")
    result = db.session.execute(
        update(InventoryEntry)
        .where(
            InventoryEntry.shop_id == shop_id,
            InventoryEntry.product_id == product_id,
            InventoryEntry.is_available.is_(True),
            InventoryEntry.quantity >= qty,
        )
        .values(quantity=InventoryEntry.quantity - qty)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(
            "stock reservation refused",
            extra={"event": {"shop_id": shop_id, "product_id": product_id, "qty": qty}},
        )
        return False
    _expire_cached(shop_id, product_id)
    return True


def restore(shop_id: int, product_id: int, qty: int) -> None:
    """Give qty units back. Callers guarantee this runs once per cancellation."""
    if qty <= 0:
        raise ValueError("qty must be positive")
    result = db.session.execute(
        update(InventoryEntry)
        .where(
            InventoryEntry.shop_id == shop_id,
            InventoryEntry.product_id == product_id,
        )
        .values(quantity=InventoryEntry.quantity + qty)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # entries are never deleted, so this is a data integrity problem
        raise InternalError(
            f"Inventory entry ({shop_id}, {product_id}) missing during restore"
        )
    _expire_cached(shop_id, product_id)
