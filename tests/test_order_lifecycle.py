import pytest
from sqlalchemy import update

from app.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.services import checkout, order_lifecycle
from app.services.order_lifecycle import ALLOWED_TRANSITIONS, TERMINAL_STATUSES
from app.utils.db import transactional
from conftest import line, stock_of
from models import db, Order, OrderStatusLog
from models.order import OrderStatus


@pytest.fixture()
def order(market):
    """A pending order for two milks from shop_a."""
    with transactional():
        result = checkout.place_orders(
            market.customer.id, [line(market.shop_a, market.milk, 2)], market.address.id
        )
    return result.orders[0]


def move(order_id, status, user):
    with transactional():
        return order_lifecycle.update_status(order_id, status, user.id)


def test_happy_path_to_delivered(market, order):
    for status in ("confirmed", "preparing", "out_for_delivery", "delivered"):
        result = move(order.id, status, market.owner_a)
        assert result.changed is True
        assert result.order.order_status == status
    logged = [(e.from_status, e.status) for e in db.session.get(Order, order.id).status_log]
    assert logged == [
        (None, "pending"),
        ("pending", "confirmed"),
        ("confirmed", "preparing"),
        ("preparing", "out_for_delivery"),
        ("out_for_delivery", "delivered"),
    ]
    # delivery consumes the stock for good
    assert stock_of(market.shop_a.id, market.milk.id) == 8


def test_terminal_statuses_have_no_exits():
    for status in TERMINAL_STATUSES:
        assert ALLOWED_TRANSITIONS[status] == set()
    for status in OrderStatus:
        assert status in ALLOWED_TRANSITIONS


def test_skipping_ahead_is_rejected(market, order):
    with pytest.raises(ConflictError) as exc:
        move(order.id, "delivered", market.owner_a)
    assert exc.value.kind == "InvalidTransition"
    assert db.session.get(Order, order.id).order_status == "pending"


def test_leaving_a_terminal_status_is_rejected(market, order):
    move(order.id, "cancelled", market.owner_a)
    with pytest.raises(ConflictError) as exc:
        move(order.id, "confirmed", market.owner_a)
    assert exc.value.kind == "InvalidTransition"


def test_unknown_status_rejected_before_lookup(market):
    with pytest.raises(ValidationError) as exc:
        move(424242, "shipped", market.owner_a)
    assert exc.value.kind == "InvalidStatus"


def test_unknown_status_leaves_order_untouched(market, order):
    with pytest.raises(ValidationError):
        move(order.id, "SHIPPED", market.owner_a)
    assert db.session.get(Order, order.id).order_status == "pending"
    assert OrderStatusLog.query.filter_by(order_id=order.id).count() == 1


def test_missing_order(market):
    with pytest.raises(NotFoundError) as exc:
        move(424242, "confirmed", market.owner_a)
    assert exc.value.kind == "OrderNotFound"


@pytest.mark.parametrize("who", ["customer", "owner_b"])
def test_only_the_shop_owner_updates_status(market, order, who):
    with pytest.raises(ForbiddenError) as exc:
        move(order.id, "confirmed", getattr(market, who))
    assert exc.value.kind == "Unauthorized"
    assert db.session.get(Order, order.id).order_status == "pending"


def test_cancel_restores_stock_exactly_once(market, order):
    assert stock_of(market.shop_a.id, market.milk.id) == 8
    first = move(order.id, "cancelled", market.owner_a)
    assert first.changed is True
    assert first.restored_units == 2
    assert stock_of(market.shop_a.id, market.milk.id) == 10

    again = move(order.id, "cancelled", market.owner_a)
    assert again.changed is False
    assert stock_of(market.shop_a.id, market.milk.id) == 10
    assert OrderStatusLog.query.filter_by(order_id=order.id, status="cancelled").count() == 1


def test_cancel_after_confirmation_restores_stock(market, order):
    move(order.id, "confirmed", market.owner_a)
    move(order.id, "preparing", market.owner_a)
    move(order.id, "cancelled", market.owner_a)
    assert stock_of(market.shop_a.id, market.milk.id) == 10


def test_failed_restores_stock_and_fails_payment(market, order):
    result = move(order.id, "failed", market.owner_a)
    assert result.restored_units == 2
    assert stock_of(market.shop_a.id, market.milk.id) == 10
    assert db.session.get(Order, order.id).payment_status == "failed"


def test_cancelling_a_paid_order_marks_refund(market, order):
    db.session.get(Order, order.id).payment_status = "completed"
    db.session.commit()
    move(order.id, "cancelled", market.owner_a)
    assert db.session.get(Order, order.id).payment_status == "refunded"


def test_lost_race_does_not_compensate_twice(market, order):
    """A concurrent writer cancels the order after we loaded it as pending."""
    loaded = db.session.get(Order, order.id)
    assert loaded.order_status == "pending"
    db.session.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(order_status="cancelled")
        .execution_options(synchronize_session=False)
    )

    result = order_lifecycle._transition(loaded, OrderStatus.CANCELLED, market.owner_a.id)
    assert result.changed is False
    # the other writer owns the restoration; we did not add units
    assert stock_of(market.shop_a.id, market.milk.id) == 8


def test_lost_race_to_a_different_status_conflicts(market, order):
    loaded = db.session.get(Order, order.id)
    db.session.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(order_status="confirmed")
        .execution_options(synchronize_session=False)
    )
    with pytest.raises(ConflictError):
        order_lifecycle._transition(loaded, OrderStatus.FAILED, market.owner_a.id)
    assert stock_of(market.shop_a.id, market.milk.id) == 8


def test_customer_can_cancel_pending_order(market, order):
    with transactional():
        result = order_lifecycle.cancel_by_customer(order.id, market.customer.id)
    assert result.changed is True
    assert result.order.order_status == "cancelled"
    assert stock_of(market.shop_a.id, market.milk.id) == 10


def test_customer_cannot_cancel_after_confirmation(market, order):
    move(order.id, "confirmed", market.owner_a)
    with pytest.raises(ConflictError) as exc:
        order_lifecycle.cancel_by_customer(order.id, market.customer.id)
    assert exc.value.kind == "InvalidTransition"


def test_customer_cannot_cancel_someone_elses_order(factory, order):
    stranger = factory.user()
    with pytest.raises(ForbiddenError):
        order_lifecycle.cancel_by_customer(order.id, stranger.id)


def test_stock_is_conserved_across_mixed_outcomes(factory, market):
    m = market
    orders = []
    for qty in (1, 2, 3):
        with transactional():
            orders.extend(
                checkout.place_orders(m.customer.id, [line(m.shop_a, m.milk, qty)], m.address.id).orders
            )
    move(orders[0].id, "cancelled", m.owner_a)
    move(orders[1].id, "confirmed", m.owner_a)
    move(orders[2].id, "failed", m.owner_a)

    held = sum(
        item.quantity
        for o in Order.query.filter(Order.order_status.notin_(["cancelled", "failed"])).all()
        for item in o.items
    )
    assert stock_of(m.shop_a.id, m.milk.id) + held == 10


def test_orders_for_shop_requires_owner(market, order):
    assert [o.id for o in order_lifecycle.orders_for_shop(market.shop_a.id, market.owner_a.id)] == [order.id]
    with pytest.raises(ForbiddenError):
        order_lifecycle.orders_for_shop(market.shop_a.id, market.owner_b.id)
    with pytest.raises(NotFoundError) as exc:
        order_lifecycle.orders_for_shop(999, market.owner_a.id)
    assert exc.value.kind == "ShopNotFound"


def test_orders_for_shop_status_filter(market, order):
    assert order_lifecycle.orders_for_shop(market.shop_a.id, market.owner_a.id, status="confirmed") == []
    with pytest.raises(ValidationError):
        order_lifecycle.orders_for_shop(market.shop_a.id, market.owner_a.id, status="bogus")


def test_order_visible_to_buyer_and_owner_only(factory, market, order):
    assert order_lifecycle.order_for_participant(order.id, market.customer.id).id == order.id
    assert order_lifecycle.order_for_participant(order.id, market.owner_a.id).id == order.id
    with pytest.raises(ForbiddenError):
        order_lifecycle.order_for_participant(order.id, market.owner_b.id)
