from functools import wraps
from flask import request, g
from .responses import error
from .jwt import decode_token, TokenError
from models import db
from models.user import User


def auth_required(func):
    """Resolve the bearer token to request.user; 401 when missing or invalid."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        auth = request.headers.get("Authorization", "")
        if not auth:
            return error("Auth header missing", status=401, kind="Unauthenticated")
        token = auth.split(" ", 1)[1] if auth.startswith("Bearer ") else auth
        try:
            payload = decode_token(token, expected_type="access")
        except TokenError as e:
            return error(str(e), status=401, kind="Unauthenticated")

        user = db.session.get(User, int(payload["sub"]))
        if not user:
            return error("User not found", status=401, kind="Unauthenticated")
        g.user_id = user.id
        g.role = user.role or payload.get("role")
        request.user = user
        return func(*args, **kwargs)

    return wrapper
