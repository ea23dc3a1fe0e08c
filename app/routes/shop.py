from flask import Blueprint, request
from app.version import API_PREFIX
from app.errors import AppError
from app.services.search import list_nearby_shops
from app.utils import auth_required, ok, error

shop_bp = Blueprint("shop", __name__, url_prefix=f"{API_PREFIX}/shop")


@shop_bp.route("/nearby", methods=["GET"])
@auth_required
def nearby():
    try:
        shops, radius = list_nearby_shops(request.user.id, request.args.get("radius"))
    except AppError as e:
        return error(e.message, status=e.status, kind=e.kind)
    if not shops:
        return ok(
            message=f"No shops found within {radius:g} km of your address",
            shops=[],
            count=0,
            radius_km=radius,
        )
    return ok(message=f"{len(shops)} shops nearby", shops=shops, count=len(shops), radius_km=radius)
