"""
School Learning Tracker: Flask Web Application

Micro-learning courses, habit challenges and growth reflections for students,
with leaderboards and exports for teachers. Storage is either a relational
database or a key-value local store, chosen once at startup.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import click
from flask import Flask, Response, jsonify

from auth import auth_bp, login_manager
from blueprints import register_blueprints
from errors import (
    AlreadyJoined,
    BackendRejected,
    BackendUnavailable,
    ChallengeNotFound,
    ClassNotFound,
    InvalidInput,
)
from extensions import limiter
from storage import init_storage

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    if test_config is not None:
        from config import TestingConfig
        app.config.from_object(TestingConfig)
        app.config.update(test_config)
    else:
        from config import config_by_name
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config.get("SECRET_KEY", "dev-key-change-in-production")

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Storage facade (relational or local, decided once here)
    init_storage(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    app.register_blueprint(auth_bp)
    login_manager.init_app(app)
    register_blueprints(app)

    _register_error_handlers(app)
    _register_cli(app)

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.route("/api/health")
    def health():
        from storage import get_storage
        return jsonify({"status": "ok", "storage": get_storage().mode})

    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BackendUnavailable)
    def _unavailable(e: BackendUnavailable):
        logger.warning("Storage unavailable during %s: %s", e.operation, e)
        return jsonify(e.to_dict()), 503

    @app.errorhandler(BackendRejected)
    def _rejected(e: BackendRejected):
        logger.error("Storage rejected %s: %s", e.operation, e)
        return jsonify(e.to_dict()), 502

    @app.errorhandler(InvalidInput)
    def _invalid(e: InvalidInput):
        return jsonify({"error": str(e), "kind": "invalid_input"}), 400

    @app.errorhandler(ChallengeNotFound)
    def _not_found(e: ChallengeNotFound):
        return jsonify({"error": f"Challenge not found: {e}", "kind": "not_found"}), 404

    @app.errorhandler(ClassNotFound)
    def _class_not_found(e: ClassNotFound):
        return jsonify({"error": f"No class with code {e}", "kind": "not_found"}), 404

    @app.errorhandler(AlreadyJoined)
    def _already_joined(e: AlreadyJoined):
        return jsonify({"error": "Already a member of this class", "kind": "conflict"}), 409


def _register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Seed a demo catalog, students and a teacher."""
        from seed_demo_data import seed
        from storage import get_storage
        storage = get_storage()
        if storage.mode == "relational":
            import database
            database.ensure_schema()
        result = seed(storage)
        click.echo(f"[Seed] Done: {result}")


if __name__ == "__main__":
    create_app().run(debug=True, port=5001)
