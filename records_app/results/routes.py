from flask import request
from flask_login import login_required, current_user

from . import results_bp
from .services import ResultService
from .. import db
from ..api_utils import api_success, json_body
from ..decorators import role_required
from ..gpa.services import GpaService
from ..validators import as_academic_year, as_level, as_semester


def _service():
    return ResultService(db.session, GpaService(db.session))


def _optional_filters():
    level = request.args.get("level")
    semester = request.args.get("semester")
    academic_year = request.args.get("academic_year")
    return (
        as_level(level) if level else None,
        as_semester(semester) if semester else None,
        as_academic_year(academic_year) if academic_year else None,
    )


@results_bp.route("/add", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def add_score():
    data = _service().add_single_score(current_user, json_body())
    return api_success(data, status=201, message="Score added successfully")


@results_bp.route("/delete/<int:result_id>", methods=["DELETE"])
@login_required
@role_required("HOD", "DEAN")
def delete_score(result_id):
    data = _service().delete_single_score(current_user, result_id)
    return api_success(data, message="Score deleted successfully")


@results_bp.route("/scores", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
def enter_scores():
    data = _service().enter_scores(current_user, json_body())
    return api_success(data, message=f"{data['success_count']} scores saved")


@results_bp.route("/student/<int:student_id>", methods=["GET"])
@login_required
def student_results(student_id):
    level, semester, academic_year = _optional_filters()
    results = _service().get_student_results(current_user, student_id, level, semester, academic_year)
    return api_success(results, meta={"total": len(results)})


@results_bp.route("/student/<int:student_id>/with-gpa", methods=["GET"])
@login_required
def student_results_with_gpa(student_id):
    return api_success(_service().get_student_results_with_gpa(current_user, student_id))


@results_bp.route("/department/<int:department_id>", methods=["GET"])
@login_required
def department_results(department_id):
    args = request.args
    results = _service().get_department_results(
        current_user,
        department_id,
        as_level(args.get("level")),
        as_semester(args.get("semester")),
        as_academic_year(args.get("academic_year")),
    )
    return api_success(results, meta={"total": len(results)})


@results_bp.route("/<int:result_id>", methods=["PUT"])
@login_required
@role_required("HOD", "DEAN")
def update_result(result_id):
    data = _service().update_result(current_user, result_id, json_body().get("score"))
    return api_success(data, message="Result updated successfully")


@results_bp.route("/<int:result_id>", methods=["DELETE"])
@login_required
@role_required("HOD", "DEAN")
def delete_result(result_id):
    data = _service().delete_single_score(current_user, result_id)
    return api_success(data, message="Result deleted successfully")


@results_bp.route("/carryovers/<int:student_id>", methods=["GET"])
@login_required
def carry_overs(student_id):
    results = _service().get_carry_over_courses(current_user, student_id)
    return api_success(results, meta={"total": len(results)})
