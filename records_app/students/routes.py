from flask import request
from flask_login import login_required, current_user

from . import students_bp
from .services import StudentService
from .. import db
from ..api_utils import api_success, json_body
from ..decorators import role_required
from ..validators import as_level


@students_bp.route("", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def create_student():
    student = StudentService(db.session).create(current_user, json_body())
    return api_success(student, status=201, message="Student created successfully")


@students_bp.route("", methods=["GET"])
@login_required
def list_students():
    level = request.args.get("level")
    students, meta = StudentService(db.session).list(
        current_user,
        department_id=request.args.get("department_id", type=int),
        level=as_level(level) if level else None,
        search=request.args.get("search"),
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", 50, type=int),
    )
    return api_success(students, meta=meta)


@students_bp.route("/<int:student_id>", methods=["GET"])
@login_required
def get_student(student_id):
    return api_success(StudentService(db.session).get(current_user, student_id))


@students_bp.route("/<int:student_id>", methods=["PUT"])
@login_required
@role_required("HOD", "DEAN")
def update_student(student_id):
    student = StudentService(db.session).update(current_user, student_id, json_body())
    return api_success(student, message="Student updated successfully")


@students_bp.route("/<int:student_id>", methods=["DELETE"])
@login_required
@role_required("HOD", "DEAN")
def delete_student(student_id):
    StudentService(db.session).delete(current_user, student_id)
    return api_success(None, message="Student deleted successfully")


@students_bp.route("/department/<int:department_id>/level/<level>", methods=["GET"])
@login_required
def students_by_department_level(department_id, level):
    students = StudentService(db.session).by_department_level(current_user, department_id, as_level(level))
    return api_success(students, meta={"total": len(students)})
