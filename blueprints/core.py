"""Home page data, storage status, contact form, search and local uploads."""

from __future__ import annotations

import html
import logging
from pathlib import Path

from flask import Blueprint, abort, current_app, jsonify, request, send_from_directory

from blueprints import get_students
from extensions import limiter
from storage_backend import get_repository

logger = logging.getLogger(__name__)

bp = Blueprint("core", __name__)


def _summary(student: dict) -> dict:
    return {
        "adm_no": student.get("Admission Number", ""),
        "name": student.get("Full Name", ""),
        "email": student.get("Email") or "N/A",
        "department": student.get("Department") or "Not Specified",
        "year_of_study": student.get("Class") or "N/A",
        "phone": student.get("Contact") or "N/A",
        "address": student.get("Place of Residence") or "N/A",
        "photo": student.get("Photo") or "/images/placeholder.jpg",
    }


@bp.route("/")
def index():
    directory = get_students()
    students = directory.all()
    return jsonify({
        "title": "Daisy - Student Portfolio",
        "featured_students": [_summary(s) for s in students[:6]],
        "total_students": len(students),
        "departments": directory.departments(),
    })


@bp.route("/db-status")
def db_status():
    repo = get_repository()
    return jsonify(repo.selector.status())


@bp.route("/contact", methods=["POST"])
@limiter.limit("5 per minute")
def contact():
    from email_service import EmailService

    data = request.get_json(silent=True) or request.form
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip()
    message = (data.get("message") or "").strip()
    if not name or not email or not message:
        return jsonify({"success": False, "message": "Name, email and message are required"}), 400

    sent = EmailService.send(
        to=current_app.config.get("CONTACT_EMAIL", ""),
        subject=f"Contact form: {name}",
        body_html=f"<p>From {html.escape(name)} &lt;{html.escape(email)}&gt;</p><p>{html.escape(message)}</p>",
        body_text=f"From {name} <{email}>:\n\n{message}",
    )
    if not sent:
        return jsonify({"success": False, "message": "Could not send your message"}), 502
    return jsonify({"success": True, "message": "Thanks, your message was sent"})


@bp.route("/search")
def search():
    adm_no = (request.args.get("adm_no") or "").strip()
    if not adm_no:
        return jsonify({"searched": False})

    student = get_students().find_case_insensitive(adm_no)
    if not student:
        return jsonify({
            "searched": True,
            "adm_no": adm_no,
            "error": f"No student found with admission number {adm_no}",
        }), 404

    repo = get_repository()
    key = student["Admission Number"]
    return jsonify({
        "searched": True,
        "student": _summary(student),
        "terms": repo.terms.list_for(key),
        "reports": repo.reports.list_for(key),
        "results": repo.attachments.list_for(key, "results"),
        "gallery": repo.attachments.list_for(key, "gallery"),
    })


@bp.route("/uploads/<path:reference_id>")
def uploaded_file(reference_id: str):
    """Serve files kept by the local blob store."""
    root = Path(current_app.config["DATA_DIR"]) / "uploads"
    if not root.exists():
        abort(404)
    return send_from_directory(root, reference_id)
