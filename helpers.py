"""
Shared helpers used across blueprints.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import jsonify, request
from flask_login import current_user

from errors import InvalidInput


def current_user_id() -> str:
    """Id of the signed-in user; routes calling this are behind login_required."""
    return current_user.id


def teacher_required(f: Callable) -> Callable:
    """Decorator that requires the signed-in user to have the teacher role."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        if not current_user.is_authenticated:
            return jsonify({"error": "Login required"}), 401
        if not getattr(current_user, "is_teacher", False):
            return jsonify({"error": "Teacher role required"}), 403
        return f(*args, **kwargs)
    return decorated


def json_body() -> dict:
    """Request JSON as a dict; anything else is a client error."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("JSON object expected")
    return data


def int_field(data: dict, name: str, default: int) -> int:
    value = data.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be an integer")


def bool_field(data: dict, name: str, default: bool) -> bool:
    value = data.get(name, default)
    if not isinstance(value, bool):
        raise InvalidInput(f"{name} must be true or false")
    return value


def image_data_url_field(data: dict, name: str) -> str:
    """A base64 image data URL, e.g. the photo attached to a certification."""
    value = data.get(name)
    if not isinstance(value, str) or not value.startswith("data:image/") or ";base64," not in value:
        raise InvalidInput(f"{name} must be an image data URL")
    if not value.split(";base64,", 1)[1].strip():
        raise InvalidInput(f"{name} is empty")
    return value
