from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import BigInteger, Integer

# Use BigInteger in production but fall back to Integer for SQLite
BIGINT = BigInteger().with_variant(Integer, "sqlite")

db = SQLAlchemy()

# Re-export common models for convenience
from .user import User, Address  # noqa: F401,E402
from .shop import Shop  # noqa: F401,E402
from .product import Product, InventoryEntry  # noqa: F401,E402
from .order import Order, OrderItem, OrderStatusLog, CheckoutAttempt  # noqa: F401,E402
