"""
Blueprint registration for the sponsorship portal.

Blueprints carry their own URL prefixes except core, which owns "/".
"""

from __future__ import annotations

from flask import current_app


def get_students():
    """The StudentDirectory attached by create_app()."""
    return current_app.extensions["students"]


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.students import bp as students_bp
    from blueprints.attachments import bp as attachments_bp
    from blueprints.departments import bp as departments_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(attachments_bp)
    app.register_blueprint(departments_bp)
