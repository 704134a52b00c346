"""
Blueprint registration for the learning tracker.

All blueprints are registered without URL prefixes; every route lives under /api.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.courses import bp as courses_bp
    from blueprints.challenges import bp as challenges_bp
    from blueprints.growth import bp as growth_bp
    from blueprints.teacher import bp as teacher_bp
    from blueprints.classes import bp as classes_bp

    app.register_blueprint(courses_bp)
    app.register_blueprint(challenges_bp)
    app.register_blueprint(growth_bp)
    app.register_blueprint(teacher_bp)
    app.register_blueprint(classes_bp)
