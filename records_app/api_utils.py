from flask import jsonify, request


def api_success(data=None, meta=None, status=200, message=None):
    body = {"success": True, "data": data if data is not None else {}, "meta": meta or {}}
    if message:
        body["message"] = message
    return jsonify(body), status


def api_error(code="error", message="", status=400, details=None):
    body = {"success": False, "error": {"code": code, "message": message}}
    if details:
        body["error"]["details"] = details
    return jsonify(body), status


def json_body():
    """Request JSON as a dict; anything else is treated as an empty body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
