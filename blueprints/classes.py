"""Teacher classes: create with a join code, students join, list my classes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from helpers import current_user_id, json_body, teacher_required
from storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint("classes", __name__)


@bp.route("/api/classes", methods=["POST"])
@teacher_required
def api_create_class():
    data = json_body()
    school_class = get_storage().create_class(
        current_user_id(), str(data.get("name", "")), str(data.get("subject", "")),
    )
    logger.info("Class %s created with code %s", school_class.id, school_class.code)
    return jsonify({"success": True, "class": school_class.to_dict()}), 201


@bp.route("/api/classes/join", methods=["POST"])
@login_required
def api_join_class():
    if current_user.is_teacher:
        return jsonify({"error": "Only students can join a class"}), 403
    school_class = get_storage().join_class(current_user_id(), str(json_body().get("code", "")))
    return jsonify({
        "success": True,
        "class": {"id": school_class.id, "name": school_class.name, "subject": school_class.subject},
    })


@bp.route("/api/classes/my")
@login_required
def api_my_classes():
    storage = get_storage()
    if current_user.is_teacher:
        classes = storage.list_teacher_classes(current_user_id())
    else:
        classes = storage.list_student_classes(current_user_id())
    return jsonify({"classes": [c.to_dict() for c in classes]})
