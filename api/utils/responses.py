from flask import jsonify


def api_response(status: int, message: str, data=None, **extra):
    """Uniform envelope: {statusCode, message, data, success}."""
    payload = {
        "statusCode": status,
        "message": message,
        "data": data,
        "success": status < 400,
    }
    payload.update(extra)
    return jsonify(payload), status
