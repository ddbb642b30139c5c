"""Student list, profile, biography, term updates and PDF reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, redirect, request

from blob_store import get_blob_store
from blueprints import get_students
from repository import REQUIRED_TERM_FORM_FIELDS, Status
from storage_backend import get_repository

logger = logging.getLogger(__name__)

bp = Blueprint("students", __name__, url_prefix="/students")

_STATUS_CODES = {
    Status.OK: 200,
    Status.NOT_FOUND: 404,
    Status.UNSUPPORTED: 409,
    Status.FAILED: 500,
}


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _student_or_404(adm_no: str):
    student = get_students().get(adm_no)
    if student is None:
        return None, (jsonify({
            "success": False,
            "message": f"No student found with admission number: {adm_no}",
        }), 404)
    return student, None


@bp.route("")
def list_students():
    q = (request.args.get("q") or "").strip()
    dept = (request.args.get("department") or "").strip()
    students = get_students().search(q, dept)
    return jsonify({
        "students": students,
        "q": q,
        "dept": dept,
        "totalStudents": len(students),
    })


@bp.route("/<adm_no>")
def profile(adm_no: str):
    student, error = _student_or_404(adm_no)
    if error:
        return error

    repo = get_repository()
    stored_bio = repo.biographies.get(adm_no)
    biography = stored_bio or student.get("Small Biography") or "No biography available."
    return jsonify({
        "student": {**student, "Small Biography": biography},
        "terms": repo.terms.list_for(adm_no),
        "reports": repo.reports.list_for(adm_no),
        "storage": repo.mode,
    })


@bp.route("/<adm_no>/update-bio", methods=["POST"])
def update_bio(adm_no: str):
    biography = (_payload().get("biography") or "").strip()
    result = get_repository().biographies.update(adm_no, biography)
    return jsonify({
        "success": result.success,
        "message": "Biography updated successfully" if result else "Failed to update biography",
        "biography": biography,
    }), _STATUS_CODES[result.status]


@bp.route("/<adm_no>/update-terms", methods=["POST"])
def add_term(adm_no: str):
    data = _payload()
    missing = [f for f in REQUIRED_TERM_FORM_FIELDS if not str(data.get(f) or "").strip()]
    if missing:
        return jsonify({
            "success": False,
            "message": "Report period, executive summary, academic overview, "
                       "next term date, and concluding remark are required",
            "missing": missing,
        }), 400

    repo = get_repository()
    result = repo.terms.add(adm_no, data)
    if not result:
        return jsonify({"success": False, "message": "Failed to save term update"}), 500

    latest = repo.terms.latest_for(adm_no)
    return jsonify({
        "success": True,
        "message": "Term update submitted successfully!",
        "term": latest,
    })


@bp.route("/<adm_no>/terms/<key>/update", methods=["POST"])
def update_term(adm_no: str, key: str):
    result = get_repository().terms.update(adm_no, key, _payload())
    return jsonify(result.to_dict()), _STATUS_CODES[result.status]


@bp.route("/<adm_no>/terms/<key>/delete", methods=["POST"])
def delete_term(adm_no: str, key: str):
    result = get_repository().terms.remove(adm_no, key)
    return jsonify(result.to_dict()), _STATUS_CODES[result.status]


@bp.route("/<adm_no>/generate-report")
def generate_report(adm_no: str):
    from report_pdf import generate_term_report, report_filename

    student, error = _student_or_404(adm_no)
    if error:
        return error

    repo = get_repository()
    term = repo.terms.latest_for(adm_no)
    if term is None:
        return jsonify({
            "success": False,
            "message": "No academic terms found. Please add at least one term before generating a report.",
        }), 400

    try:
        pdf_bytes = generate_term_report(student, term)
        filename = report_filename(student, term)
        blob = get_blob_store().upload_stream(
            "student_reports", pdf_bytes, filename=filename, content_type="application/pdf"
        )
    except Exception:
        logger.exception("Report generation failed for %s", adm_no)
        return jsonify({"success": False, "message": "Failed to generate report"}), 500

    if not repo.reports.add(adm_no, filename, blob.reference_id):
        return jsonify({
            "success": False,
            "message": "Report generated but failed to save its record",
        }), 500

    return jsonify({
        "success": True,
        "message": "Progress report generated successfully!",
        "report": {
            "filename": filename,
            "url": blob.url,
            "public_id": blob.reference_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "term": term["TermName"],
        },
        "downloadUrl": blob.url,
    })


@bp.route("/<adm_no>/generate-biography-pdf", methods=["POST"])
def generate_biography(adm_no: str):
    from report_pdf import biography_filename, generate_biography_pdf

    student, error = _student_or_404(adm_no)
    if error:
        return error

    biography = (
        (_payload().get("biography") or "").strip()
        or get_repository().biographies.get(adm_no)
        or student.get("Small Biography")
        or "No biography available."
    )
    try:
        pdf_bytes = generate_biography_pdf(student, biography)
        filename = biography_filename(student)
        blob = get_blob_store().upload_stream(
            "student_biographies", pdf_bytes, filename=filename, content_type="application/pdf"
        )
    except Exception:
        logger.exception("Biography PDF failed for %s", adm_no)
        return jsonify({"success": False, "message": "Failed to generate biography PDF"}), 500

    return jsonify({
        "success": True,
        "message": "Biography PDF generated successfully!",
        "downloadUrl": blob.url,
        "filename": filename,
    })


@bp.route("/<adm_no>/download-report/<path:public_id>")
def download_report(adm_no: str, public_id: str):
    report = get_repository().reports.find(adm_no, public_id)
    if report is None:
        return jsonify({"success": False, "message": "Report not found"}), 404
    return redirect(get_blob_store().url_for(report["PublicId"]))


@bp.route("/<adm_no>/reports/<path:public_id>/delete", methods=["POST"])
def delete_report(adm_no: str, public_id: str):
    repo = get_repository()
    report = repo.reports.find(adm_no, public_id)
    if report is None:
        return jsonify({"success": False, "status": Status.NOT_FOUND.value, "message": "Report not found"}), 404

    result = repo.reports.remove(adm_no, report["id"])
    if result:
        get_blob_store().delete(report["PublicId"])
    return jsonify(result.to_dict()), _STATUS_CODES[result.status]
