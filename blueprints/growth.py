"""Growth page: reflection, AI feedback, handwriting log, score, export."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, Response, jsonify
from flask_login import current_user, login_required

import ai_service
from errors import InvalidInput
from export import student_report_csv
from helpers import current_user_id, json_body
from learning import grade_change_summary, growth_series
from storage import get_storage

bp = Blueprint("growth", __name__)


def _series_for(uid: str) -> list[dict]:
    storage = get_storage()
    return growth_series(
        len(storage.list_completed_course_ids(uid)),
        storage.list_challenges(uid),
    )


@bp.route("/api/reflection")
@login_required
def api_get_reflection():
    return jsonify(get_storage().get_reflection(current_user_id()).to_dict())


@bp.route("/api/reflection", methods=["PUT"])
@login_required
def api_save_reflection():
    data = json_body()
    get_storage().upsert_reflection(
        current_user_id(), str(data.get("text", "")), data.get("feedback"),
    )
    return jsonify({"success": True})


@bp.route("/api/reflection/feedback", methods=["POST"])
@login_required
def api_reflection_feedback():
    """Generate AI feedback for the saved (or posted) reflection and store both."""
    uid = current_user_id()
    storage = get_storage()
    data = json_body()
    text = str(data.get("text") or storage.get_reflection(uid).text)
    if not text.strip():
        raise InvalidInput("변화에 대한 이야기를 먼저 적어주세요!")
    feedback = ai_service.generate_feedback(text, grade_change_summary(_series_for(uid)))
    storage.upsert_reflection(uid, text, feedback)
    return jsonify({"text": text, "feedback": feedback})


@bp.route("/api/handwriting")
@login_required
def api_handwriting_logs():
    logs = get_storage().list_handwriting_logs(current_user_id())
    return jsonify({"logs": [entry.to_dict() for entry in logs]})


@bp.route("/api/handwriting", methods=["POST"])
@login_required
def api_append_handwriting():
    data = json_body()
    entry = get_storage().append_handwriting_log(current_user_id(), str(data.get("phrase", "")))
    return jsonify({"success": True, "log": entry.to_dict()}), 201


@bp.route("/api/growth/score")
@login_required
def api_growth_score():
    series = _series_for(current_user_id())
    return jsonify({"series": series, "current": series[-1]["score"]})


@bp.route("/api/growth/export")
@login_required
def api_growth_export():
    uid = current_user_id()
    storage = get_storage()
    csv_data = student_report_csv(
        name=current_user.name,
        courses=storage.list_courses(),
        completed_ids=storage.list_completed_course_ids(uid),
        challenges=storage.list_challenges(uid),
        reflection=storage.get_reflection(uid),
        series=_series_for(uid),
    )
    return Response(
        csv_data,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="growth_{date.today().isoformat()}.csv"'},
    )
