"""Gallery photos, result slips and sponsor letters uploaded per student."""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, jsonify, request

from blob_store import get_blob_store
from blueprints import get_students
from extensions import limiter
from repository import ATTACHMENT_CATEGORIES
from storage_backend import get_repository

logger = logging.getLogger(__name__)

bp = Blueprint("attachments", __name__)

# Magic byte signatures for file header validation
_MAGIC_BYTES = {
    ".pdf": (b"%PDF",),
    ".png": (b"\x89PNG",),
    ".jpg": (b"\xff\xd8\xff",),
    ".jpeg": (b"\xff\xd8\xff",),
    ".webp": (b"RIFF",),
    ".docx": (b"PK\x03\x04",),
}

_IMAGE_EXT = {".png", ".jpg", ".jpeg", ".webp"}
_ALLOWED_EXT = {
    "gallery": _IMAGE_EXT,
    "results": _IMAGE_EXT | {".pdf"},
    "letters": _IMAGE_EXT | {".pdf", ".docx"},
}

# Form field names used by the original upload forms
_FILE_FIELDS = {"gallery": "image", "results": "result_files", "letters": "letter_files"}
_NOTE_FIELDS = {"gallery": "note", "results": "result_note", "letters": "letter_note"}


def _validate_file_header(file_storage, ext: str) -> bool:
    """Check file header magic bytes match the claimed extension."""
    signatures = _MAGIC_BYTES.get(ext)
    if not signatures:
        return False
    header = file_storage.read(max(len(s) for s in signatures))
    file_storage.seek(0)
    return any(header.startswith(s) for s in signatures)


def _check_category(category: str):
    if category not in ATTACHMENT_CATEGORIES:
        return jsonify({"success": False, "message": f"Unknown category: {category}"}), 404
    return None


@bp.route("/<category>/<adm_no>")
def list_attachments(category: str, adm_no: str):
    error = _check_category(category)
    if error:
        return error
    student = get_students().get(adm_no)
    if student is None:
        return jsonify({"success": False, "message": "Student not found"}), 404

    items = get_repository().attachments.list_for(adm_no, category)
    return jsonify({
        "title": f"{category.title()} - {student.get('Full Name', adm_no)}",
        "student": student,
        category: items,
    })


@bp.route("/<category>/upload/<adm_no>", methods=["POST"])
@limiter.limit("30 per hour")
def upload_attachments(category: str, adm_no: str):
    error = _check_category(category)
    if error:
        return error
    if get_students().get(adm_no) is None:
        return jsonify({"success": False, "message": "Student not found"}), 404

    files = request.files.getlist("files") or request.files.getlist(_FILE_FIELDS[category])
    files = [f for f in files if f and f.filename]
    if not files:
        return jsonify({"success": False, "message": "No files uploaded"}), 400

    for f in files:
        ext = Path(f.filename).suffix.lower()
        if ext not in _ALLOWED_EXT[category]:
            allowed = ", ".join(sorted(e.lstrip(".").upper() for e in _ALLOWED_EXT[category]))
            return jsonify({"success": False, "message": f"Supported formats: {allowed}"}), 400
        if not _validate_file_header(f, ext):
            return jsonify({"success": False, "message": "File content does not match its extension."}), 400

    note = request.form.get("note") or request.form.get(_NOTE_FIELDS[category]) or ""
    store = get_blob_store()
    repo = get_repository()
    saved = []
    for f in files:
        try:
            blob = store.upload_stream(f"{category}/{adm_no}", f.read(), filename=f.filename, content_type=f.mimetype)
        except Exception:
            logger.exception("Upload of %s failed for %s", f.filename, adm_no)
            return jsonify({"success": False, "message": "Upload failed", "saved": saved}), 500

        result = repo.attachments.add(adm_no, category, f.filename, blob.reference_id, blob.url, note)
        if not result:
            store.delete(blob.reference_id)
            return jsonify({"success": False, "message": result.message, "saved": saved}), 500
        saved.append({"public_id": blob.reference_id, "url": blob.url, "filename": f.filename, "note": note})

    return jsonify({"success": True, "uploaded": saved}), 201


@bp.route("/<category>/delete/<adm_no>", methods=["POST"])
def delete_attachment(category: str, adm_no: str):
    error = _check_category(category)
    if error:
        return error
    data = request.get_json(silent=True) or request.form
    public_id = data.get("public_id")
    if not public_id:
        return jsonify({"success": False, "message": "Missing public_id"}), 400

    repo = get_repository()
    record = repo.attachments.find(adm_no, public_id)
    if record is None or record["Category"] != category:
        return jsonify({"success": False, "message": "Attachment not found"}), 404

    get_blob_store().delete(record["PublicId"])
    result = repo.attachments.remove(adm_no, record["id"])
    if not result:
        return jsonify({"success": False, "message": "Deletion failed"}), 500
    return jsonify({"success": True, "message": "Deleted"})
