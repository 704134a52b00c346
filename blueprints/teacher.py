"""Teacher dashboard routes: leaderboards, AI summaries, exports, thumbnails."""

from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, Response, current_app, jsonify
from flask_login import current_user

import ai_service
from errors import InvalidInput
from export import (
    SHEET_URL_KEY,
    SheetExportError,
    class_growth_csv,
    push_to_sheet,
    sheet_payload,
)
from helpers import json_body, teacher_required
from storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint("teacher", __name__)


@bp.route("/api/teacher/effort")
@teacher_required
def api_teacher_effort():
    rows = get_storage().aggregate_challenge_effort()
    return jsonify({"students": [r.to_dict() for r in rows]})


@bp.route("/api/teacher/growth")
@teacher_required
def api_teacher_growth():
    rows = get_storage().aggregate_growth()
    return jsonify({"students": [r.to_dict() for r in rows]})


@bp.route("/api/teacher/summarize", methods=["POST"])
@teacher_required
def api_teacher_summarize():
    text = str(json_body().get("reflection", ""))
    if not text.strip():
        raise InvalidInput("reflection is required")
    return jsonify({"summary": ai_service.summarize_reflection(text)})


@bp.route("/api/teacher/export.csv")
@teacher_required
def api_teacher_export_csv():
    storage = get_storage()
    csv_data = class_growth_csv(storage.aggregate_growth(), storage.aggregate_challenge_effort())
    return Response(
        csv_data,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="class_growth_{date.today().isoformat()}.csv"'},
    )


@bp.route("/api/teacher/sheet-url")
@teacher_required
def api_get_sheet_url():
    return jsonify({"url": get_storage().get_config(SHEET_URL_KEY) or ""})


@bp.route("/api/teacher/sheet-url", methods=["PUT"])
@teacher_required
def api_set_sheet_url():
    url = str(json_body().get("url", "")).strip()
    if url and not url.startswith(("https://", "http://")):
        raise InvalidInput("url must start with http:// or https://")
    get_storage().set_config(SHEET_URL_KEY, url)
    return jsonify({"success": True, "url": url})


@bp.route("/api/teacher/sheet-export", methods=["POST"])
@teacher_required
def api_sheet_export():
    storage = get_storage()
    url = storage.get_config(SHEET_URL_KEY) or ""
    if not url:
        return jsonify({"error": "먼저 설정에서 구글 시트 URL을 입력해주세요."}), 400
    payload = sheet_payload(current_user.name, storage.aggregate_growth())
    try:
        status = push_to_sheet(url, payload, timeout=current_app.config.get("SHEET_EXPORT_TIMEOUT", 10))
    except SheetExportError as e:
        return jsonify({"error": str(e)}), 502
    return jsonify({"success": True, "status": status, "count": len(payload["students"])})


@bp.route("/api/teacher/thumbnail", methods=["POST"])
@teacher_required
def api_teacher_thumbnail():
    topic = str(json_body().get("topic", "")).strip()
    if not topic:
        raise InvalidInput("topic is required")
    image = ai_service.generate_thumbnail(topic)
    if image is None:
        return jsonify({"error": "썸네일을 생성하지 못했습니다."}), 503
    return jsonify({"thumbnail": image})
