from flask import Blueprint, request, current_app
from flask_limiter.util import get_remote_address
from extensions import limiter
from app.version import API_PREFIX
from app.errors import AppError
from app.services.search import search_products
from app.utils import auth_required, ok, error

product_bp = Blueprint("product", __name__, url_prefix=f"{API_PREFIX}/product")


@product_bp.route("/search", methods=["GET"])
@limiter.limit(lambda: current_app.config["SEARCH_LIMIT_PER_IP"], key_func=get_remote_address)
@auth_required
def search():
    """Best nearby price per matching product around the caller's default address."""
    try:
        result = search_products(
            request.user.id, request.args.get("q", ""), request.args.get("radius")
        )
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    return ok(
        message=result.message,
        products=result.results,
        count=len(result.results),
        reason=result.reason,
        radius_km=result.radius_km,
    )
