import logging

from sqlalchemy import select

from ..decorators import can_access_department
from ..grading import LEVELS
from ..models import Department, Student
from ..validators import (
    current_year,
    is_valid_admission_year,
    is_valid_email,
    matric_matches_department,
    parse_level,
)

logger = logging.getLogger(__name__)

REQUIRED = (
    ("matric_number", "Matric number is required"),
    ("first_name", "First name is required"),
    ("last_name", "Last name is required"),
    ("department_code", "Department code is required"),
    ("admission_year", "Admission year is required"),
    ("level", "Student level is required"),
)


def validate_student_row(row, departments, actor):
    """
    Field-level checks for one uploaded student row.
    Returns ``(errors, department)``; the department is None when it cannot be resolved.
    """
    errors = [message for field, message in REQUIRED if not row.get(field)]

    year_raw = row.get("admission_year")
    if year_raw:
        year = int(year_raw) if year_raw.isdigit() else None
        if year is None or not is_valid_admission_year(year):
            errors.append(f"Admission year must be between 1990 and {current_year() + 1}")

    level_raw = row.get("level")
    if level_raw and parse_level(level_raw) is None:
        errors.append(f"Invalid level: {level_raw}. Valid values: {', '.join(LEVELS)}")

    matric = row.get("matric_number")
    code = row.get("department_code")
    if matric and code and not matric_matches_department(matric, code):
        errors.append(f"Matric number {matric} does not match department code {code}")

    email = row.get("email")
    if email and not is_valid_email(email):
        errors.append("Invalid email format")

    department = departments.get(code) if code else None
    if code and department is None:
        errors.append(f"Department with code '{code}' not found")
    elif department is not None and not can_access_department(actor, department):
        errors.append("You can only import students into departments you manage")

    return errors, department


class StudentImportService:
    def __init__(self, session, chunk_size=500):
        self.session = session
        self.chunk_size = max(1, int(chunk_size or 500))

    def run(self, actor, rows):
        departments = {
            d.code.upper(): d for d in self.session.execute(select(Department)).scalars().all()
        }
        existing = set(self.session.execute(select(Student.matric_number)).scalars().all())

        seen = set()
        accepted = []
        rejected = []
        skipped = 0
        for row in rows:
            row["matric_number"] = row.get("matric_number", "").upper()
            row["department_code"] = row.get("department_code", "").upper()
            errors, department = validate_student_row(row, departments, actor)

            matric = row["matric_number"]
            if matric in existing:
                errors.append(f"Student with matric number '{matric}' already exists")
                skipped += 1
            elif matric and matric in seen:
                errors.append(f"Matric number '{matric}' appears more than once in this file")
            if matric:
                seen.add(matric)

            if errors:
                rejected.append({"row": row, "errors": errors})
            else:
                accepted.append((row, department))

        outcome = {
            "total_rows": len(rows),
            "skipped_count": skipped,
            "error_count": len(rejected),
        }
        if rejected:
            logger.info("Student import rejected: %d of %d rows failed validation", len(rejected), len(rows))
            return dict(outcome, success=False, success_count=0, rejected=rejected)

        try:
            for start in range(0, len(accepted), self.chunk_size):
                chunk = accepted[start:start + self.chunk_size]
                self.session.add_all([
                    Student(
                        matric_number=row["matric_number"],
                        first_name=row["first_name"],
                        last_name=row["last_name"],
                        middle_name=row.get("middle_name") or None,
                        email=row.get("email") or None,
                        phone=row.get("phone") or None,
                        current_level=parse_level(row["level"]),
                        admission_year=int(row["admission_year"]),
                        department_id_fk=department.department_id,
                        is_active=True,
                    )
                    for row, department in chunk
                ])
                self.session.flush()
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception("Student import failed while writing %d rows", len(accepted))
            raise

        logger.info("Student import committed %d rows", len(accepted))
        return dict(outcome, success=True, success_count=len(accepted), rejected=[])
