"""Habit challenge board: CRUD, daily certification, stats, AI helpers."""

from __future__ import annotations

import logging
from dataclasses import replace

from flask import Blueprint, jsonify
from flask_login import login_required

import ai_service
from errors import ChallengeNotFound, InvalidInput
from helpers import current_user_id, image_data_url_field, int_field, json_body
from learning import build_challenge, challenge_stats
from storage import get_storage

logger = logging.getLogger(__name__)

bp = Blueprint("challenges", __name__)


def _owned(challenge_id: str):
    for c in get_storage().list_challenges(current_user_id()):
        if c.id == challenge_id:
            return c
    raise ChallengeNotFound(challenge_id)


@bp.route("/api/challenges")
@login_required
def api_challenges():
    challenges = get_storage().list_challenges(current_user_id())
    return jsonify({
        "challenges": [c.to_dict() for c in challenges],
        "stats": challenge_stats(challenges),
    })


@bp.route("/api/challenges", methods=["POST"])
@login_required
def api_create_challenge():
    data = json_body()
    challenge = build_challenge(
        title=data.get("title", ""),
        description=data.get("description", ""),
        days_total=int_field(data, "days_total", 30),
        badge_icon=data.get("badge_icon", ""),
    )
    get_storage().upsert_challenge(current_user_id(), challenge)
    return jsonify({"success": True, "challenge": challenge.to_dict()}), 201


@bp.route("/api/challenges/<challenge_id>", methods=["PUT"])
@login_required
def api_update_challenge(challenge_id):
    existing = _owned(challenge_id)
    data = json_body()
    updated = replace(
        existing,
        title=str(data.get("title", existing.title)),
        description=str(data.get("description", existing.description)),
        days_total=int_field(data, "days_total", existing.days_total),
        days_completed=int_field(data, "days_completed", existing.days_completed),
        badge_icon=str(data.get("badge_icon", existing.badge_icon)),
        color=str(data.get("color", existing.color)),
    )
    if not updated.title.strip():
        raise InvalidInput("challenge title is required")
    get_storage().upsert_challenge(current_user_id(), updated)
    return jsonify({"success": True, "challenge": updated.to_dict()})


@bp.route("/api/challenges/<challenge_id>", methods=["DELETE"])
@login_required
def api_delete_challenge(challenge_id):
    _owned(challenge_id)
    get_storage().delete_challenge(challenge_id)
    return jsonify({"success": True})


@bp.route("/api/challenges/<challenge_id>/certify", methods=["POST"])
@login_required
def api_certify_challenge(challenge_id):
    """Advance one day. The proof photo is checked, then discarded."""
    proof = image_data_url_field(json_body(), "proof")
    challenge = get_storage().certify_challenge(current_user_id(), challenge_id)
    logger.info("Challenge %s certified by %s (proof %d bytes)",
                challenge_id, current_user_id(), len(proof))
    return jsonify({"success": True, "challenge": challenge.to_dict(),
                    "completed": challenge.is_complete})


@bp.route("/api/challenges/stats")
@login_required
def api_challenge_stats():
    return jsonify(challenge_stats(get_storage().list_challenges(current_user_id())))


@bp.route("/api/challenges/slogan")
@login_required
def api_challenge_slogan():
    titles = [c.title for c in get_storage().list_challenges(current_user_id())]
    if not titles:
        return jsonify({"slogan": ai_service.SLOGAN_EMPTY})
    return jsonify({"slogan": ai_service.generate_challenge_summary(titles)})


@bp.route("/api/challenges/recommend", methods=["POST"])
@login_required
def api_recommend_challenge():
    rec = ai_service.recommend_challenge()
    if rec is None:
        return jsonify({"error": "AI 추천을 불러오지 못했습니다. 다시 시도해주세요."}), 503
    return jsonify({"recommendation": rec})
