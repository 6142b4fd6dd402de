"""
Helpers shared by the route modules.

Every route answers with the same JSON envelope:

    {"success": true,  "data": ..., "message": "..."}
    {"success": false, "error": "...", "message": "..."}
"""

from typing import Any, Optional

from flask import jsonify, request

from core.exceptions import ValidationError


def success(data: Any = None, message: Optional[str] = None, status: int = 200):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def failure(error: str, message: Optional[str] = None, status: int = 400):
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return jsonify(body), status


def parse_id(raw: str) -> int:
    """Positive integer id from a URL segment, else ValidationError."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Invalid ID", field="id")
    if value < 1:
        raise ValidationError("Invalid ID", field="id")
    return value


def json_body() -> Any:
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be JSON")
    return data
