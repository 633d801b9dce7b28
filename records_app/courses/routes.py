from flask import request
from flask_login import login_required, current_user

from . import courses_bp
from .services import CourseService
from .. import db
from ..api_utils import api_success, json_body
from ..decorators import role_required
from ..gpa.services import GpaService
from ..validators import as_level, as_semester


def _service():
    return CourseService(db.session, GpaService(db.session))


@courses_bp.route("", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def create_course():
    course = _service().create(current_user, json_body())
    return api_success(course, status=201, message="Course created successfully")


@courses_bp.route("", methods=["GET"])
@login_required
def list_courses():
    level = request.args.get("level")
    semester = request.args.get("semester")
    courses = _service().list(
        current_user,
        department_id=request.args.get("department_id", type=int),
        level=as_level(level) if level else None,
        semester=as_semester(semester) if semester else None,
        search=request.args.get("search"),
    )
    return api_success(courses, meta={"total": len(courses)})


@courses_bp.route("/<int:course_id>", methods=["GET"])
@login_required
def get_course(course_id):
    return api_success(_service().get(current_user, course_id))


@courses_bp.route("/<int:course_id>", methods=["PUT"])
@login_required
@role_required("HOD", "DEAN")
def update_course(course_id):
    course = _service().update(current_user, course_id, json_body())
    return api_success(course, message="Course updated successfully")


@courses_bp.route("/<int:course_id>", methods=["DELETE"])
@login_required
@role_required("HOD", "DEAN")
def delete_course(course_id):
    _service().delete(current_user, course_id)
    return api_success(None, message="Course deleted successfully")


@courses_bp.route("/department/<int:department_id>/level/<level>/semester/<semester>", methods=["GET"])
@login_required
def courses_by_department(department_id, level, semester):
    courses = _service().by_department_level_semester(
        current_user, department_id, as_level(level), as_semester(semester)
    )
    return api_success(courses, meta={"total": len(courses)})
