from .order import order_bp
from .product import product_bp
from .shop import shop_bp


__all__ = [
    'order_bp',
    'product_bp',
    'shop_bp',
]
