"""
Daisy Sponsored Students Portal: Flask Web Application

Student profiles, per-term progress updates, uploaded documents and PDF
reports, backed by MongoDB with automatic CSV fallback.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify

from blueprints import register_blueprints
from extensions import limiter

logger = logging.getLogger(__name__)


def create_app(test_config: dict[str, Any] | None = None, selector=None) -> Flask:
    """Application factory.

    ``selector`` lets tests inject a BackendSelector wrapping a fake
    document store; production builds its own.
    """
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    Path(app.config["DATA_DIR"]).mkdir(parents=True, exist_ok=True)
    if not app.config.get("STUDENTS_CSV"):
        app.config["STUDENTS_CSV"] = str(Path(app.config["DATA_DIR"]) / "students.csv")

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Cache backend (Redis or in-memory fallback)
    from cache_backend import init_cache
    init_cache(app)

    # Background jobs (RQ or synchronous fallback)
    from tasks import init_tasks
    init_tasks(app)

    # Record storage (MongoDB or CSV fallback); never raises
    from storage_backend import init_storage
    init_storage(app, selector=selector)

    from blob_store import init_blob_store
    init_blob_store(app)

    from student_directory import StudentDirectory
    app.extensions["students"] = StudentDirectory(
        app.config["STUDENTS_CSV"], cache_ttl=int(app.config.get("STUDENTS_CACHE_TTL", 60))
    )

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    register_blueprints(app)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({
            "success": False,
            "message": "Sorry, the page you're looking for doesn't exist.",
        }), 404

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"success": False, "message": "Upload too large."}), 413

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"success": False, "message": "Too many requests, slow down."}), 429

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not app.debug and not app.testing:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=int(os.environ.get("PORT", "3000")))
