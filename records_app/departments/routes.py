from flask import request
from flask_login import login_required, current_user

from . import departments_bp
from .services import DepartmentService, FacultyService
from .. import db, cache
from ..api_utils import api_success


@cache.memoize(timeout=120)
def _public_departments():
    return DepartmentService(db.session).public_list()


@departments_bp.route("/departments/public", methods=["GET"])
def public_departments():
    return api_success(_public_departments())


@departments_bp.route("/departments", methods=["GET"])
@login_required
def list_departments():
    departments = DepartmentService(db.session).list(
        current_user, faculty_id=request.args.get("faculty_id", type=int)
    )
    return api_success(departments, meta={"total": len(departments)})


@departments_bp.route("/departments/my-department", methods=["GET"])
@login_required
def my_department():
    return api_success(DepartmentService(db.session).my_department(current_user))


@departments_bp.route("/departments/<int:department_id>", methods=["GET"])
@login_required
def get_department(department_id):
    return api_success(DepartmentService(db.session).get(current_user, department_id))


@departments_bp.route("/faculties", methods=["GET"])
@login_required
def list_faculties():
    faculties = FacultyService(db.session).list()
    return api_success(faculties, meta={"total": len(faculties)})


@departments_bp.route("/faculties/my-faculty", methods=["GET"])
@login_required
def my_faculty():
    return api_success(FacultyService(db.session).my_faculty(current_user))


@departments_bp.route("/faculties/<int:faculty_id>", methods=["GET"])
@login_required
def get_faculty(faculty_id):
    return api_success(FacultyService(db.session).get(current_user, faculty_id))
