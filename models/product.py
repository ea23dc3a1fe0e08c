from models import db, BIGINT
from datetime import datetime


class Product(db.Model):
    """Catalog-global product, shared by every shop that stocks it."""

    __tablename__ = "product"

    id = db.Column(BIGINT, primary_key=True)
    category = db.Column(db.String(50), nullable=True)
    name = db.Column(db.String(100), nullable=False)
    brand = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(255), nullable=True)
    net_qty = db.Column(db.String(20), nullable=True)             # 500, 1, 12
    unit = db.Column(db.String(20), nullable=True)                # g, kg, ml, pcs
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
            "net_qty": self.net_qty,
            "unit": self.unit,
        }


class InventoryEntry(db.Model):
    """Per-shop stock and price of one catalog product.

    quantity is only ever changed through the ledger's conditional
    UPDATE statements (see app.services.inventory).
    """

    __tablename__ = "shop_inventory"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_shop_inventory_quantity_nonnegative"),
        db.Index("ix_shop_inventory_product", "product_id"),
    )

    shop_id = db.Column(BIGINT, db.ForeignKey("shop.id"), primary_key=True)
    product_id = db.Column(BIGINT, db.ForeignKey("product.id"), primary_key=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    net_qty = db.Column(db.String(20), nullable=True)             # overrides Product.net_qty
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shop = db.relationship("Shop", backref=db.backref("inventory", lazy=True))
    product = db.relationship("Product", backref=db.backref("in_shops", lazy=True))
