"""
Blueprint registration.

Every blueprint is mounted under API_PREFIX (``/api`` by default).
"""

from __future__ import annotations


def register_blueprints(app):
    from auth import auth_bp
    from blueprints.catalog import bp as catalog_bp
    from blueprints.onboarding import bp as onboarding_bp
    from blueprints.progress import bp as progress_bp
    from blueprints.rewards import bp as rewards_bp
    from blueprints.students import bp as students_bp
    from blueprints.teacher import bp as teacher_bp
    from blueprints.users import bp as users_bp

    prefix = app.config.get("API_PREFIX", "/api")
    for bp in (auth_bp, users_bp, students_bp, catalog_bp, progress_bp,
               onboarding_bp, rewards_bp, teacher_bp):
        app.register_blueprint(bp, url_prefix=prefix)
