# --- models/user.py ---
from models import db, BIGINT
from datetime import datetime


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(BIGINT, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    fullname = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(20), default="customer")  # customer, shop_owner, admin
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    addresses = db.relationship("Address", backref="user", lazy=True)

    def __repr__(self):
        return f"<User id={self.id} role={self.role}>"


class Address(db.Model):
    __tablename__ = "address"
    __table_args__ = (
        # at most one default address per user
        db.Index(
            "uq_address_default_per_user",
            "user_id",
            unique=True,
            sqlite_where=db.text("is_default = 1"),
            postgresql_where=db.text("is_default"),
        ),
    )

    id = db.Column(BIGINT, primary_key=True)
    user_id = db.Column(BIGINT, db.ForeignKey("user.id"), nullable=False)
    line1 = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    is_default = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "line1": self.line1,
            "city": self.city,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "is_default": self.is_default,
        }
