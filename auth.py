"""
User sessions: Flask-Login blueprint.

There are no passwords: a student or teacher signs in with an id, a display
name and a role, and the account is created or refreshed on the spot. The
signed-in profile is kept in the Flask session so loading the user on each
request needs no storage round-trip.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request, session
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user

from errors import InvalidInput, StorageError
from extensions import limiter
from models import User as UserRecord
from models import UserRole
from storage import get_storage

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()

_SESSION_KEY = "profile"


class User(UserMixin):
    """Wraps a stored user for Flask-Login."""

    def __init__(self, id: str, name: str, role: UserRole = UserRole.STUDENT):
        self.id = id
        self.name = name
        self.role = role

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @classmethod
    def from_record(cls, record: UserRecord) -> "User":
        return cls(record.id, record.name, record.role)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "role": self.role.value}


@login_manager.user_loader
def load_user(user_id):
    profile = session.get(_SESSION_KEY)
    if not profile or profile.get("id") != user_id:
        return None
    try:
        return User(profile["id"], profile["name"], UserRole.parse(profile.get("role")))
    except (KeyError, InvalidInput):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Login required"}), 401


@auth_bp.route("/api/login", methods=["POST"])
@limiter.limit("20 per minute")
def api_login():
    data = request.get_json(silent=True) or {}
    user_id = str(data.get("id", "")).strip()
    name = str(data.get("name", "")).strip()
    if not user_id:
        return jsonify({"error": "id is required"}), 400

    # InvalidInput (unknown role) is mapped to 400 by the app error handler.
    # StorageError only surfaces when the local fallback fails as well.
    try:
        record = get_storage().login_or_create_user(user_id, name, data.get("role", "STUDENT"))
    except StorageError as e:
        logger.error("Login failed for %s: %s", user_id, e)
        return jsonify({"error": "Login is temporarily unavailable"}), 503

    user = User.from_record(record)
    session[_SESSION_KEY] = user.to_dict()
    login_user(user, remember=False)
    logger.info("User %s signed in as %s", user.id, user.role.value)
    return jsonify({"success": True, "user": user.to_dict()})


@auth_bp.route("/api/logout", methods=["POST"])
@login_required
def api_logout():
    logout_user()
    session.pop(_SESSION_KEY, None)
    return jsonify({"success": True})


@auth_bp.route("/api/me")
@login_required
def api_me():
    return jsonify({"user": current_user.to_dict(), "storage": get_storage().mode})
