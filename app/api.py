from app.routes import (
    order_bp,
    product_bp,
    shop_bp,
)


def register_api_v1(app):
    """Register blueprint routes under the API version prefix."""
    app.register_blueprint(order_bp)
    app.register_blueprint(product_bp)
    app.register_blueprint(shop_bp)
