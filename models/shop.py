from models import db, BIGINT
from datetime import datetime


class Shop(db.Model):
    __tablename__ = "shop"
    __table_args__ = (
        db.Index("ix_shop_lat_lng", "latitude", "longitude"),
    )

    id = db.Column(BIGINT, primary_key=True)
    user_id = db.Column(BIGINT, db.ForeignKey("user.id"), nullable=False)
    store_name = db.Column(db.String(100), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    delivery_time = db.Column(db.Integer, nullable=True)  # owner's base estimate, minutes
    store_banner = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    owner = db.relationship("User", backref="shops", lazy=True)

    def summary(self):
        return {
            "id": self.id,
            "store_name": self.store_name,
            "city": self.city,
            "address": self.address,
            "store_banner": self.store_banner,
        }
