"""Order status transitions and stock-restoring cancellation.

Callers wrap each mutating call in transactional(): the status change, the
stock restorations and the status log row form one atomic unit.
"""
import logging
from typing import NamedTuple
from sqlalchemy import update
from sqlalchemy.sql import func
from models import db
from models.shop import Shop
from models.order import Order, OrderStatusLog, OrderStatus, PaymentStatus
from app.errors import ValidationError, NotFoundError, ForbiddenError, ConflictError
from app.services import inventory

logger = logging.getLogger(__name__)

S = OrderStatus

ALLOWED_TRANSITIONS = {
    S.PENDING: {S.CONFIRMED, S.CANCELLED, S.FAILED},
    S.CONFIRMED: {S.PREPARING, S.CANCELLED, S.FAILED},
    S.PREPARING: {S.OUT_FOR_DELIVERY, S.CANCELLED, S.FAILED},
    S.OUT_FOR_DELIVERY: {S.DELIVERED, S.CANCELLED, S.FAILED},
    S.DELIVERED: set(),
    S.CANCELLED: set(),
    S.FAILED: set(),
}

TERMINAL_STATUSES = {S.DELIVERED, S.CANCELLED, S.FAILED}

# reaching one of these gives the reserved stock back to the shop
RELEASING_STATUSES = {S.CANCELLED, S.FAILED}


class TransitionResult(NamedTuple):
    order: Order
    changed: bool
    restored_units: int = 0


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid order status '{value}'", kind="InvalidStatus")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _load_order(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", kind="OrderNotFound")
    return order


def _payment_status_after(order: Order, target: OrderStatus) -> str:
    current = order.payment_status
    if target == S.CANCELLED and current == PaymentStatus.COMPLETED.value:
        return PaymentStatus.REFUNDED.value
    if target == S.FAILED and current == PaymentStatus.PENDING.value:
        return PaymentStatus.FAILED.value
    return current


def _transition(order: Order, target: OrderStatus, acting_user_id: int) -> TransitionResult:
    current = OrderStatus(order.order_status)
    if current == target:
        return TransitionResult(order, changed=False)
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot move order {order.id} from {current.value} to {target.value}",
            kind="InvalidTransition",
        )

    # compare-and-set on the status column: only one concurrent caller wins,
    # so compensation below runs at most once per order
    result = db.session.execute(
        update(Order)
        .where(Order.id == order.id, Order.order_status == current.value)
        .values(order_status=target.value, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.refresh(order)
        if order.order_status == target.value:
            return TransitionResult(order, changed=False)
        raise ConflictError(
            f"Order {order.id} was updated concurrently (now {order.order_status})",
            kind="InvalidTransition",
        )
    db.session.expire(order, ["order_status", "updated_at"])

    restored = 0
    if target in RELEASING_STATUSES:
        for item in order.items:
            inventory.restore(order.shop_id, item.product_id, item.quantity)
            restored += item.quantity
        logger.info(
            "stock restored",
            extra={"event": {"order_id": order.id, "units": restored}},
        )

    order.payment_status = _payment_status_after(order, target)
    db.session.add(
        OrderStatusLog(
            order_id=order.id,
            from_status=current.value,
            status=target.value,
            updated_by=acting_user_id,
        )
    )
    logger.info(
        "order status changed",
        extra={"event": {"order_id": order.id, "from": current.value, "to": target.value}},
    )
    return TransitionResult(order, changed=True, restored_units=restored)


def update_status(order_id: int, new_status, acting_user_id: int) -> TransitionResult:
    """Move an order to new_status on behalf of the owning shop's user."""
    target = parse_status(new_status)
    order = _load_order(order_id)
    if order.shop.user_id != acting_user_id:
        raise ForbiddenError("Only the shop owner can update this order", kind="Unauthorized")
    return _transition(order, target, acting_user_id)


def cancel_by_customer(order_id: int, acting_user_id: int) -> TransitionResult:
    """Buyer-initiated cancellation, allowed while the shop has not confirmed."""
    order = _load_order(order_id)
    if order.user_id != acting_user_id:
        raise ForbiddenError("You can only cancel your own orders", kind="Unauthorized")
    if order.order_status == S.CANCELLED.value:
        return TransitionResult(order, changed=False)
    if order.order_status != S.PENDING.value:
        raise ConflictError(
            "Order can no longer be cancelled by the customer", kind="InvalidTransition"
        )
    return _transition(order, S.CANCELLED, acting_user_id)


def orders_for_user(user_id: int):
    return (
        Order.query.filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def orders_for_shop(shop_id: int, acting_user_id: int, status=None):
    shop = db.session.get(Shop, shop_id)
    if not shop:
        raise NotFoundError("Shop not found", kind="ShopNotFound")
    if shop.user_id != acting_user_id:
        raise ForbiddenError("Only the shop owner can view its orders", kind="Unauthorized")
    query = Order.query.filter_by(shop_id=shop_id)
    if status:
        query = query.filter_by(order_status=parse_status(status).value)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def order_for_participant(order_id: int, acting_user_id: int) -> Order:
    order = _load_order(order_id)
    if acting_user_id not in (order.user_id, order.shop.user_id):
        raise ForbiddenError("Not allowed to view this order", kind="Unauthorized")
    return order
