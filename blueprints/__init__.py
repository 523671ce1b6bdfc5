"""
Blueprint registration for the student planner.

All blueprints are registered without URL prefixes; each route carries its full path.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.exams import bp as exams_bp
    from blueprints.courses import bp as courses_bp
    from blueprints.settings import bp as settings_bp
    from blueprints.notifications import bp as notifications_bp
    from blueprints.excluded_dates import bp as excluded_dates_bp
    from blueprints.feedback import bp as feedback_bp
    from blueprints.admin import bp as admin_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(exams_bp)
    app.register_blueprint(courses_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(excluded_dates_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(admin_bp)
