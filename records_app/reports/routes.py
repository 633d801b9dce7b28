from flask import request
from flask_login import login_required, current_user

from . import reports_bp
from .services import ReportService
from .. import db
from ..api_utils import api_success
from ..decorators import role_required
from ..errors import ValidationError
from ..validators import as_academic_year, as_level, as_semester, require_fields


@reports_bp.route("/department/<int:department_id>", methods=["GET"])
@login_required
def department_report(department_id):
    args = request.args
    require_fields(args, "level", "semester", "academic_year")
    data = ReportService(db.session).department_report(
        current_user,
        department_id,
        as_level(args.get("level")),
        as_semester(args.get("semester")),
        as_academic_year(args.get("academic_year")),
    )
    return api_success(data)


@reports_bp.route("/faculty", methods=["GET"])
@login_required
@role_required("DEAN")
def faculty_report():
    faculty_id = request.args.get("faculty_id", type=int) or current_user.faculty_id_fk
    if not faculty_id:
        raise ValidationError("Validation failed", ["faculty_id: is required"])
    academic_year = request.args.get("academic_year")
    data = ReportService(db.session).faculty_stats(
        current_user,
        faculty_id,
        academic_year=as_academic_year(academic_year) if academic_year else None,
    )
    return api_success(data)


@reports_bp.route("/transcript/<int:student_id>", methods=["GET"])
@login_required
def transcript(student_id):
    return api_success(ReportService(db.session).transcript(current_user, student_id))
