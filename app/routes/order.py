from flask import Blueprint, request, current_app
from flask_limiter.util import get_remote_address
from extensions import limiter
from app.version import API_PREFIX
from app.errors import AppError
from app.metrics import record_checkout, record_checkout_rejected, record_transition
from app.schemas.order import CheckoutRequest, StatusUpdateRequest
from app.services import checkout, order_lifecycle
from app.tasks.notifications import notify_order_placed, notify_status_changed
from app.telemetry import tracer
from app.utils import auth_required, validate_schema, transactional, ok, error

order_bp = Blueprint("order", __name__, url_prefix=f"{API_PREFIX}/order")


@order_bp.before_request
@auth_required
def _enforce_authenticated():
    """Every order endpoint needs a logged-in caller."""
    return None


def _notify(task, *args):
    try:
        task.delay(*args)
    except Exception as e:  # pragma: no cover
        current_app.logger.warning("notification %s not queued: %s", task.name, e)


def _after_transition(result):
    if not result.changed:
        return
    order = result.order
    record_transition(order, result.restored_units)
    _notify(notify_status_changed, order.id, order.user_id, order.order_status)


# ------------------- Checkout -------------------

@order_bp.route("/checkout", methods=["POST"])
@limiter.limit(lambda: current_app.config["ORDER_LIMIT_PER_IP"], key_func=get_remote_address, error_message="Too many orders from this IP")
@validate_schema(CheckoutRequest, kind="InvalidCartItem")
def place_checkout():
    user = request.user
    data = request.validated_data
    key = (request.headers.get("Idempotency-Key") or "").strip() or None
    try:
        with tracer.start_as_current_span("checkout.place_orders"):
            with transactional("Checkout failed"):
                result = checkout.place_orders(
                    user.id, data.cart_items, data.address_id, idempotency_key=key
                )
    except AppError as e:
        record_checkout_rejected(e.kind)
        return error(e.message, status=e.status, kind=e.kind)

    orders = [o.to_dict() for o in result.orders]
    if result.replayed:
        return ok(
            message="Orders already placed for this request",
            orders=orders,
            count=len(orders),
            replayed=True,
        )
    record_checkout(result.orders)
    for o in result.orders:
        _notify(notify_order_placed, o.id, o.shop_id, o.user_id)
    return ok(
        message="Orders placed successfully",
        status=201,
        orders=orders,
        count=len(orders),
        replayed=False,
    )


# ------------------- Reads -------------------

@order_bp.route("/user", methods=["GET"])
def get_user_orders():
    orders = order_lifecycle.orders_for_user(request.user.id)
    return ok(orders=[o.to_dict() for o in orders], count=len(orders))


@order_bp.route("/shop/<int:shop_id>", methods=["GET"])
def get_shop_orders(shop_id):
    try:
        orders = order_lifecycle.orders_for_shop(
            shop_id, request.user.id, status=request.args.get("status")
        )
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    return ok(orders=[o.to_dict() for o in orders], count=len(orders))


@order_bp.route("/<int:order_id>", methods=["GET"])
def get_order(order_id):
    try:
        order = order_lifecycle.order_for_participant(order_id, request.user.id)
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    data = order.to_dict()
    data["address"] = order.address.to_dict() if order.address else None
    data["status_log"] = [entry.to_dict() for entry in order.status_log]
    return ok(order=data)


# ------------------- Lifecycle -------------------

@order_bp.route("/<int:order_id>/status", methods=["PUT"])
@validate_schema(StatusUpdateRequest, kind="InvalidStatus")
def update_order_status(order_id):
    new_status = request.validated_data.status
    try:
        with transactional("Failed to update order status"):
            result = order_lifecycle.update_status(order_id, new_status, request.user.id)
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    _after_transition(result)
    order = result.order
    return ok(message=f"Order status updated to {order.order_status}", order=order.to_dict())


@order_bp.route("/<int:order_id>/cancel", methods=["POST"])
def cancel_order(order_id):
    try:
        with transactional("Failed to cancel order"):
            result = order_lifecycle.cancel_by_customer(order_id, request.user.id)
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    _after_transition(result)
    order = result.order
    return ok(message="Order cancelled", order=order.to_dict())
