"""Department listings grouped by academic level."""

from __future__ import annotations

from flask import Blueprint, jsonify, redirect, request, url_for

from blueprints import get_students
from student_directory import LEVELS, group_by_level, resolve_department

bp = Blueprint("departments", __name__, url_prefix="/departments")


def _department_payload(dept: str, students: list[dict], **extra) -> dict:
    levels = group_by_level(students)
    return {
        "dept": dept,
        "students": students,
        "levels": levels,
        "totalStudents": len(students),
        **extra,
    }


@bp.route("")
def list_departments():
    return jsonify({"departments": get_students().departments()})


@bp.route("/<dept_name>")
def department(dept_name: str):
    directory = get_students()
    dept = resolve_department(dept_name)
    students = directory.in_department(dept)
    if not students:
        available = ", ".join(directory.departments())
        return jsonify({
            "success": False,
            "message": f"No students found in department: {dept}. Available departments: {available}",
        }), 404
    return jsonify(_department_payload(dept, students))


@bp.route("/<dept_name>/<level>")
def department_level(dept_name: str, level: str):
    dept = resolve_department(dept_name)
    students = get_students().in_department(dept)
    if not students:
        return jsonify({"success": False, "message": f"No students found in department: {dept}"}), 404

    match = next((lv for lv in LEVELS if lv.lower() == level.lower()), None)
    if match is None:
        return jsonify({
            "success": False,
            "message": f"Unknown level: {level}. Use one of {', '.join(lv.lower() for lv in LEVELS)}",
        }), 404
    in_level = group_by_level(students)[match]
    return jsonify({
        "dept": dept,
        "level": match,
        "students": in_level,
        "totalStudents": len(in_level),
    })


@bp.route("/search", methods=["POST"])
def search_department():
    data = request.get_json(silent=True) or request.form
    adm_no = (data.get("adm_no") or "").strip()
    department = (data.get("department") or "").strip()

    if not adm_no:
        return redirect(url_for("departments.department", dept_name=department.lower().replace(" ", "-")))

    directory = get_students()
    student = directory.find_case_insensitive(adm_no)
    if student is None or student.get("Department", "").lower() != department.lower():
        error = (
            f"No student found with admission number: {adm_no}"
            if student is None
            else f"Student {adm_no} does not belong to {department} department"
        )
        payload = _department_payload(department, directory.in_department(department), error=error)
        return jsonify(payload), 404

    return redirect(url_for("students.profile", adm_no=student["Admission Number"]))
