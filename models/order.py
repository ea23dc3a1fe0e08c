import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.sql import func
from models import db, BIGINT


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Order(db.Model):
    __tablename__ = "order"
    __table_args__ = (
        db.Index("ix_order_shop_status", "shop_id", "order_status"),
        db.Index("ix_order_user_created", "user_id", "created_at"),
    )
    id = Column(BIGINT, primary_key=True)
    user_id = Column(BIGINT, ForeignKey("user.id"), nullable=False)
    shop_id = Column(BIGINT, ForeignKey("shop.id"), nullable=False)
    delivery_address_id = Column(BIGINT, ForeignKey("address.id"), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)  # snapshot, never recomputed
    order_status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    shop = db.relationship("Shop", backref="orders", lazy=True)
    address = db.relationship("Address", lazy=True)
    items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan", lazy=True)
    status_log = db.relationship(
        "OrderStatusLog", backref="order", lazy=True, order_by="OrderStatusLog.id"
    )

    def to_dict(self, include_items=True):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "shop": self.shop.summary() if self.shop else None,
            "delivery_address_id": self.delivery_address_id,
            "total_amount": float(self.total_amount),
            "order_status": self.order_status,
            "payment_status": self.payment_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data["items"] = [oi.to_dict() for oi in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_item"
    id = Column(BIGINT, primary_key=True)
    order_id = Column(BIGINT, ForeignKey("order.id"), nullable=False)
    product_id = Column(BIGINT, ForeignKey("product.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_unit = Column(Numeric(10, 2), nullable=False)  # price at order time

    product = db.relationship("Product", lazy=True)

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_per_unit": float(self.price_per_unit),
            "subtotal": float(self.price_per_unit * self.quantity),
        }


class OrderStatusLog(db.Model):
    __tablename__ = "order_status_log"
    id = Column(BIGINT, primary_key=True)
    order_id = Column(BIGINT, ForeignKey("order.id"), nullable=False)
    from_status = Column(String(30), nullable=True)
    status = Column(String(30), nullable=False)
    updated_by = Column(BIGINT, nullable=False)
    timestamp = Column(DateTime, default=func.now())

    def to_dict(self):
        return {
            "order_id": self.order_id,
            "from_status": self.from_status,
            "status": self.status,
            "updated_by": self.updated_by,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


class CheckoutAttempt(db.Model):
    """Idempotency record for one client-keyed checkout submission."""

    __tablename__ = "checkout_attempt"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_checkout_attempt_user_key"),
    )
    id = Column(BIGINT, primary_key=True)
    user_id = Column(BIGINT, ForeignKey("user.id"), nullable=False)
    idempotency_key = Column(String(100), nullable=False)
    order_ids = Column(db.JSON, nullable=False, default=list)  # [order.id, ...] in cart order
    created_at = Column(DateTime, default=func.now())

    def order_id_list(self):
        return [int(x) for x in self.order_ids or []]
