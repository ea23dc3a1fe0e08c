from flask import jsonify


def ok(data=None, message="success", status=200, **extra):
    payload = {"status": "success", "success": True, "message": message}
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return jsonify(payload), status


def error(message, status=400, code=None, kind=None):
    payload = {
        "status": "error",
        "success": False,
        "message": message,
        "code": code or status,
    }
    if kind:
        payload["kind"] = kind
    return jsonify(payload), status


def validation_error_response(errors, kind="InvalidPayload"):
    return jsonify({
        "status": "error",
        "success": False,
        "message": "Invalid request payload",
        "code": 400,
        "kind": kind,
        "errors": errors,
    }), 400
