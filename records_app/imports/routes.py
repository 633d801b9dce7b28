from flask import Response, current_app, request
from flask_login import login_required, current_user
from werkzeug.utils import secure_filename

from . import imports_bp
from .parsing import STUDENT_HEADER_MAP, SCORE_HEADER_MAP, check_upload, parse_rows
from .scores import ScoreImportService
from .students import StudentImportService
from .workbooks import (
    SCORE_ERROR_COLUMNS,
    SCORE_TEMPLATE,
    STUDENT_ERROR_COLUMNS,
    STUDENT_TEMPLATE,
    XLSX_MIMETYPE,
    build_rejection_report,
    build_template,
)
from .. import db, limiter, cache
from ..api_utils import api_success
from ..decorators import role_required
from ..errors import ValidationError
from ..gpa.services import GpaService
from ..models import ImportLog


def _read_upload():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded. Please upload an Excel file.", ["file: is required"])
    filename = secure_filename(upload.filename) or upload.filename
    data = upload.read()
    ext = check_upload(filename, len(data), current_app.config.get("IMPORT_MAX_BYTES", 10 * 1024 * 1024))
    return filename, data, ext


def _log_import(kind, filename, outcome):
    try:
        lg = ImportLog(
            user_id_fk=getattr(current_user, "user_id", None),
            kind=kind,
            filename=filename,
            success=outcome["success"],
            total_rows=outcome["total_rows"],
            created_count=outcome["success_count"],
            updated_count=outcome.get("updated_count") or 0,
            skipped_count=outcome.get("skipped_count") or 0,
            errors_count=outcome["error_count"],
        )
        db.session.add(lg)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.warning("Failed to write import log for %s upload %s", kind, filename)


def _rejection_response(outcome, columns, download_name):
    body = build_rejection_report(outcome["rejected"], columns)
    return Response(body, status=200, mimetype=XLSX_MIMETYPE, headers={
        "Content-Disposition": f"attachment; filename={download_name}",
        "X-Import-Success": "false",
        "X-Total-Rows": str(outcome["total_rows"]),
        "X-Error-Count": str(outcome["error_count"]),
    })


def _template_response(body, download_name):
    return Response(body, mimetype=XLSX_MIMETYPE, headers={
        "Content-Disposition": f"attachment; filename={download_name}"
    })


@cache.memoize(timeout=3600)
def _template_bytes(kind):
    return build_template(STUDENT_TEMPLATE if kind == "students" else SCORE_TEMPLATE)


@imports_bp.route("/students/bulk-upload", methods=["POST"])
@imports_bp.route("/bulk/students", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
@limiter.limit("10 per minute")
def import_students():
    filename, data, ext = _read_upload()
    rows = parse_rows(data, ext, STUDENT_HEADER_MAP)
    service = StudentImportService(db.session, current_app.config.get("IMPORT_CHUNK_SIZE"))
    outcome = service.run(current_user, rows)
    _log_import("students", filename, outcome)
    current_app.logger.info("Student upload %s by %s: %d rows, %d rejected",
                            filename, current_user.email, outcome["total_rows"], outcome["error_count"])

    if not outcome["success"]:
        return _rejection_response(outcome, STUDENT_ERROR_COLUMNS, "student_import_errors.xlsx")

    return api_success({
        "total_rows": outcome["total_rows"],
        "success_count": outcome["success_count"],
        "skipped_count": outcome["skipped_count"],
        "error_count": outcome["error_count"],
    }, message=f"Successfully imported {outcome['success_count']} students.")


@imports_bp.route("/results/bulk-upload", methods=["POST"])
@imports_bp.route("/bulk/scores", methods=["POST"])
@login_required
@role_required("HOD", "DEAN")
@limiter.limit("10 per minute")
def import_scores():
    filename, data, ext = _read_upload()
    rows = parse_rows(data, ext, SCORE_HEADER_MAP)
    service = ScoreImportService(db.session, GpaService(db.session), current_app.config.get("IMPORT_CHUNK_SIZE"))
    outcome = service.run(current_user, rows)
    _log_import("scores", filename, outcome)
    current_app.logger.info("Score upload %s by %s: %d rows, %d rejected",
                            filename, current_user.email, outcome["total_rows"], outcome["error_count"])

    if not outcome["success"]:
        return _rejection_response(outcome, SCORE_ERROR_COLUMNS, "score_import_errors.xlsx")

    return api_success({
        "total_rows": outcome["total_rows"],
        "success_count": outcome["success_count"],
        "updated_count": outcome["updated_count"],
        "error_count": outcome["error_count"],
        "affected_students": outcome["affected_students"],
    }, message=(
        f"Successfully processed {outcome['success_count']} new scores and updated "
        f"{outcome['updated_count']} existing scores. GPA recalculated for "
        f"{outcome['affected_students']} students."
    ))


@imports_bp.route("/students/bulk-upload/template", methods=["GET"])
@imports_bp.route("/bulk/students/template", methods=["GET"])
@login_required
def student_template():
    return _template_response(_template_bytes("students"), "student_upload_template.xlsx")


@imports_bp.route("/results/bulk-upload/template", methods=["GET"])
@imports_bp.route("/bulk/scores/template", methods=["GET"])
@login_required
def score_template():
    return _template_response(_template_bytes("scores"), "score_upload_template.xlsx")
