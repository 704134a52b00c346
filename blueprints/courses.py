"""Course catalog and completion routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from helpers import bool_field, current_user_id, json_body, teacher_required
from learning import build_course, youtube_watch_url
from storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint("courses", __name__)


@bp.route("/api/courses")
@login_required
def api_courses():
    """Catalog with the caller's completion flags merged in."""
    storage = get_storage()
    done = storage.list_completed_course_ids(current_user_id())
    return jsonify({
        "courses": [
            {**c.to_dict(), "completed": c.id in done, "watch_url": youtube_watch_url(c.video_url)}
            for c in storage.list_courses()
        ],
    })


@bp.route("/api/courses", methods=["POST"])
@teacher_required
def api_add_course():
    data = json_body()
    course = build_course(
        title=data.get("title", ""),
        subject=data.get("subject", ""),
        video_url=data.get("video_url", ""),
    )
    if data.get("thumbnail"):
        course.thumbnail = data["thumbnail"]
    get_storage().add_course(course)
    logger.info("Course %s added by %s", course.id, current_user_id())
    return jsonify({"success": True, "course": course.to_dict()}), 201


@bp.route("/api/courses/<course_id>", methods=["DELETE"])
@teacher_required
def api_remove_course(course_id):
    get_storage().remove_course(course_id)
    logger.info("Course %s removed by %s", course_id, current_user_id())
    return jsonify({"success": True})


@bp.route("/api/courses/<course_id>/complete", methods=["POST"])
@login_required
def api_complete_course(course_id):
    data = json_body()
    completed = bool_field(data, "completed", True)
    get_storage().set_course_completion(current_user_id(), course_id, completed)
    return jsonify({"success": True, "course_id": course_id, "completed": completed})
