from flask import request
from flask_login import login_required, current_user

from . import gpa_bp
from .services import GpaService
from .. import db
from ..api_utils import api_success, json_body
from ..decorators import role_required, is_hod
from ..errors import ValidationError
from ..students.services import get_department_for, get_student_for
from ..validators import as_academic_year, as_int, as_level, as_semester, require_fields


def _key_from(source):
    require_fields(source, "level", "semester", "academic_year")
    return (
        as_level(source.get("level")),
        as_semester(source.get("semester")),
        as_academic_year(source.get("academic_year")),
    )


@gpa_bp.route("/calculate", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def calculate():
    payload = json_body()
    require_fields(payload, "student_id")
    level, semester, academic_year = _key_from(payload)
    student = get_student_for(db.session, current_user, as_int(payload.get("student_id"), "student_id"))
    data = GpaService(db.session).recalculate(student.student_id, level, semester, academic_year)
    return api_success(data, message="GPA calculated successfully")


@gpa_bp.route("/calculate-department", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def calculate_department():
    payload = json_body()
    level, semester, academic_year = _key_from(payload)
    department_id = payload.get("department_id") or (current_user.department_id_fk if is_hod(current_user) else None)
    if not department_id:
        raise ValidationError("Validation failed", ["department_id: is required"])
    department = get_department_for(db.session, current_user, as_int(department_id, "department_id"))
    data = GpaService(db.session).calculate_department_gpas(department.department_id, level, semester, academic_year)
    return api_success(data, message=f"GPA calculated for {data['calculated']} students")


@gpa_bp.route("/student/<int:student_id>", methods=["GET"])
@login_required
def student_history(student_id):
    get_student_for(db.session, current_user, student_id)
    return api_success(GpaService(db.session).get_student_gpa_history(student_id))


@gpa_bp.route("/student/<int:student_id>/semester", methods=["GET"])
@login_required
def student_semester(student_id):
    level, semester, academic_year = _key_from(request.args)
    get_student_for(db.session, current_user, student_id)
    return api_success(GpaService(db.session).get_semester_gpa(student_id, level, semester, academic_year))


@gpa_bp.route("/department/<int:department_id>/stats", methods=["GET"])
@login_required
def department_stats(department_id):
    get_department_for(db.session, current_user, department_id)
    level = request.args.get("level")
    semester = request.args.get("semester")
    academic_year = request.args.get("academic_year")
    data = GpaService(db.session).get_department_gpa_stats(
        department_id,
        level=as_level(level) if level else None,
        semester=as_semester(semester) if semester else None,
        academic_year=as_academic_year(academic_year) if academic_year else None,
    )
    return api_success(data)
