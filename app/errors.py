import logging
from flask import Blueprint
from werkzeug.exceptions import HTTPException
from app.utils.responses import error

errors_bp = Blueprint("errors_bp", __name__)


class AppError(Exception):
    """Base for errors reported to the caller with a stable kind."""

    status = 500
    default_kind = "InternalError"

    def __init__(self, message, kind=None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind


class ValidationError(AppError):
    status = 400
    default_kind = "ValidationError"


class NotFoundError(AppError):
    status = 404
    default_kind = "NotFound"


class ForbiddenError(AppError):
    status = 403
    default_kind = "Forbidden"


class ConflictError(AppError):
    status = 409
    default_kind = "Conflict"


class InternalError(AppError):
    status = 500
    default_kind = "InternalError"


@errors_bp.app_errorhandler(AppError)
def handle_app_error(e):
    if e.status >= 500:
        logging.exception("Internal error: %s", e.message)
    return error(e.message, status=e.status, code=e.status, kind=e.kind)


@errors_bp.app_errorhandler(HTTPException)
def handle_http_exception(e):
    msg = e.description or getattr(e, "name", "HTTP Error")
    return error(msg, status=e.code, code=e.code)


@errors_bp.app_errorhandler(Exception)
def handle_unexpected_exception(e):
    logging.exception("Unhandled exception")
    return error(
        "An unexpected error occurred. Please try again later.",
        status=500,
        code=500,
        kind="InternalError",
    )
