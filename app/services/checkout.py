"""Multi-shop checkout.

A cart may hold lines from several shops. Each shop's lines become one Order.
All partitions share the caller's transaction: the first failing partition
aborts the whole checkout and nothing is persisted (all-or-nothing).
"""
import logging
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import List, NamedTuple, Optional
from flask import current_app
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from models import db
from models.user import Address
from models.shop import Shop
from models.order import Order, OrderItem, OrderStatusLog, CheckoutAttempt, OrderStatus, PaymentStatus
from app.errors import ValidationError, ForbiddenError, ConflictError
from app.schemas.order import CartItem
from app.services import inventory
from app.services.geo import Coordinate, distance_km, shop_coordinate

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")

# matches CheckoutAttempt.idempotency_key
MAX_IDEMPOTENCY_KEY_LENGTH = 100


class CheckoutResult(NamedTuple):
    orders: List[Order]
    replayed: bool = False


def _to_money(value):
    d = Decimal(str(value))
    return d.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _coerce_items(cart_items) -> List[CartItem]:
    items = []
    for raw in cart_items or []:
        if isinstance(raw, CartItem):
            items.append(raw)
            continue
        try:
            items.append(CartItem.model_validate(raw))
        except PydanticValidationError:
            raise ValidationError("Malformed cart item", kind="InvalidCartItem")
    return items


def partition_by_shop(items: List[CartItem]) -> "OrderedDict[int, OrderedDict[int, int]]":
    """Group lines by shop in first-seen order, merging repeated products."""
    partitions = OrderedDict()
    for item in items:
        lines = partitions.setdefault(item.shop_id, OrderedDict())
        lines[item.product_id] = lines.get(item.product_id, 0) + item.quantity
    return partitions


def _check_reachable(shop_id: int, origin: Optional[Coordinate]) -> None:
    """The shop must lie within DELIVERY_RADIUS_KM of the delivery address.

    Skipped when the address has no coordinates; an unknown shop is left to
    the availability check.
    """
    if origin is None:
        return
    shop = db.session.get(Shop, shop_id)
    if shop is None:
        return
    radius = current_app.config.get("DELIVERY_RADIUS_KM", 10)
    coord = shop_coordinate(shop)
    if coord is None or distance_km(origin, coord) > radius:
        raise ConflictError(
            f"Shop {shop_id} does not deliver to the selected address",
            kind="ShopOutOfRange",
        )


def _place_shop_order(user_id: int, shop_id: int, lines, address_id: int) -> Order:
    stock = inventory.get_available(shop_id, lines.keys())

    total = Decimal("0")
    snapshot = []
    for product_id, qty in lines.items():
        view = stock.get(product_id)
        if view is None or not view.is_available:
            raise ConflictError(
                f"Product {product_id} unavailable in shop {shop_id}",
                kind="ProductUnavailable",
            )
        if qty > view.quantity:
            raise ConflictError(
                f"Insufficient stock for product {product_id} in shop {shop_id}",
                kind="InsufficientStock",
            )
        price = _to_money(view.price)
        total += price * qty
        snapshot.append((product_id, qty, price))

    total = _to_money(total)
    if total <= 0:
        raise ConflictError(
            f"Invalid total amount for shop {shop_id}", kind="InvalidOrderTotal"
        )

    # the conditional decrement is the real stock check; the read above can be stale
    for product_id, qty, _ in snapshot:
        if not inventory.reserve(shop_id, product_id, qty):
            raise ConflictError(
                f"Insufficient stock for product {product_id} in shop {shop_id}",
                kind="InsufficientStock",
            )

    order = Order(
        user_id=user_id,
        shop_id=shop_id,
        delivery_address_id=address_id,
        total_amount=total,
        order_status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.session.add(order)
    db.session.flush()

    for product_id, qty, price in snapshot:
        db.session.add(
            OrderItem(
                order_id=order.id,
                product_id=product_id,
                quantity=qty,
                price_per_unit=price,
            )
        )
    db.session.add(
        OrderStatusLog(
            order_id=order.id,
            from_status=None,
            status=OrderStatus.PENDING.value,
            updated_by=user_id,
        )
    )
    return order


def _replay(user_id: int, idempotency_key: str) -> Optional[CheckoutResult]:
    attempt = CheckoutAttempt.query.filter_by(
        user_id=user_id, idempotency_key=idempotency_key
    ).first()
    if not attempt:
        return None
    ids = attempt.order_id_list()
    orders = Order.query.filter(Order.id.in_(ids)).order_by(Order.id).all() if ids else []
    logger.info(
        "checkout replayed",
        extra={"event": {"idempotency_key": idempotency_key, "order_ids": ids}},
    )
    return CheckoutResult(orders, replayed=True)


def place_orders(
    user_id: int,
    cart_items,
    address_id: Optional[int],
    idempotency_key: Optional[str] = None,
) -> CheckoutResult:
    """Create one pending order per shop in the cart and reserve its stock.

    Does NOT commit; wrap the call in transactional() so every order and
    every stock decrement commit or roll back together.
    """
    items = _coerce_items(cart_items)
    if not items:
        raise ValidationError("Cart is empty", kind="EmptyCart")
    max_lines = current_app.config.get("MAX_CART_LINES", 100)
    if len(items) > max_lines:
        raise ValidationError(
            f"Cart cannot contain more than {max_lines} lines", kind="InvalidCartItem"
        )
    if idempotency_key and len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(
            f"Idempotency-Key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters",
            kind="InvalidIdempotencyKey",
        )
    if not address_id:
        raise ValidationError("Address ID is required", kind="MissingAddress")

    address = db.session.get(Address, address_id)
    if not address or address.user_id != user_id:
        raise ForbiddenError("Invalid address selected", kind="ForbiddenAddress")

    if idempotency_key:
        previous = _replay(user_id, idempotency_key)
        if previous:
            return previous

    origin = None
    if address.latitude is not None and address.longitude is not None:
        origin = Coordinate(float(address.latitude), float(address.longitude))

    orders = []
    for shop_id, lines in partition_by_shop(items).items():
        _check_reachable(shop_id, origin)
        orders.append(_place_shop_order(user_id, shop_id, lines, address.id))

    if idempotency_key:
        db.session.add(
            CheckoutAttempt(
                user_id=user_id,
                idempotency_key=idempotency_key,
                order_ids=[o.id for o in orders],
            )
        )
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(
                "A checkout with this idempotency key is already in progress",
                kind="DuplicateCheckout",
            )

    logger.info(
        "checkout placed",
        extra={
            "event": {
                "order_ids": [o.id for o in orders],
                "shop_ids": [o.shop_id for o in orders],
                "total": str(sum((o.total_amount for o in orders), Decimal("0"))),
            }
        },
    )
    return CheckoutResult(orders)
