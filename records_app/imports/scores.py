import logging

from sqlalchemy import select

from ..decorators import can_access_department
from ..grading import LEVELS, SEMESTERS, format_level, format_semester
from ..models import Course, Result, Student
from ..results.services import key_of, upsert_result
from ..validators import is_valid_academic_year, parse_level, parse_semester

logger = logging.getLogger(__name__)

REQUIRED = (
    ("matric_number", "Matric number is required"),
    ("course_code", "Course code is required"),
    ("score", "Score is required"),
    ("level", "Student level is required"),
    ("semester", "Semester is required"),
    ("academic_year", "Academic year is required"),
)


def parse_score(raw):
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value:
        return None
    return value


def validate_score_fields(row):
    """Checks that need nothing but the row itself."""
    errors = [message for field, message in REQUIRED if not row.get(field)]

    if row.get("score"):
        score = parse_score(row["score"])
        if score is None:
            errors.append(f"Score '{row['score']}' is not a number")
        elif score < 0 or score > 100:
            errors.append("Score must be between 0 and 100")

    if row.get("level") and parse_level(row["level"]) is None:
        errors.append(f"Invalid level: {row['level']}. Valid values: {', '.join(LEVELS)}")
    if row.get("semester") and parse_semester(row["semester"]) is None:
        errors.append(f"Invalid semester: {row['semester']}. Valid values: {', '.join(SEMESTERS)}")
    if row.get("academic_year") and not is_valid_academic_year(row["academic_year"]):
        errors.append(
            f"Invalid academic year: {row['academic_year']}. Expected YYYY/YYYY with consecutive years (e.g., 2023/2024)"
        )
    return errors


class ScoreImportService:
    def __init__(self, session, gpa_service, chunk_size=500):
        self.session = session
        self.gpa_service = gpa_service
        self.chunk_size = max(1, int(chunk_size or 500))

    def _lookups(self):
        students = {s.matric_number.upper(): s for s in self.session.execute(select(Student)).scalars().all()}
        courses = {
            (c.department_id_fk, c.code.upper()): c
            for c in self.session.execute(select(Course)).scalars().all()
        }
        return students, courses

    def _resolve(self, row, students, courses, actor):
        """Student and course for a row, with the reasons either of them cannot be used."""
        errors = []
        student = students.get(row["matric_number"]) if row["matric_number"] else None
        if row["matric_number"] and student is None:
            errors.append(f"Student with matric number '{row['matric_number']}' not found")
        if student is None:
            return errors, None, None

        department = student.department
        if not can_access_department(actor, department):
            errors.append("You can only add scores for students in departments you manage")

        declared = row.get("department_code")
        if declared and declared != department.code.upper():
            errors.append(
                f"Department code {declared} does not match the student's department ({department.code})"
            )

        course = None
        if row["course_code"]:
            course = courses.get((department.department_id, row["course_code"]))
            if course is None:
                errors.append(f"Course '{row['course_code']}' not found in student's department ({department.code})")

        level = parse_level(row["level"])
        semester = parse_semester(row["semester"])
        if course is not None and level and course.level != level:
            errors.append(f"Course {course.code} is for {format_level(course.level)}, not {format_level(level)}")
        if course is not None and semester and course.semester != semester:
            errors.append(
                f"Course {course.code} is for {format_semester(course.semester)}, not {format_semester(semester)}"
            )
        return errors, student, course

    def run(self, actor, rows):
        students, courses = self._lookups()

        seen = {}
        accepted = []
        rejected = []
        for row in rows:
            for field in ("matric_number", "course_code", "department_code"):
                row[field] = row.get(field, "").upper()

            errors = validate_score_fields(row)
            resolve_errors, student, course = self._resolve(row, students, courses, actor)
            errors.extend(resolve_errors)

            if student is not None and course is not None and row.get("academic_year"):
                triple = (student.student_id, course.course_id, row["academic_year"])
                if triple in seen:
                    errors.append(
                        f"Duplicate entry: {row['matric_number']} / {course.code} / {row['academic_year']} "
                        f"already appears on row {seen[triple]}"
                    )
                else:
                    seen[triple] = row["row_number"]

            if errors:
                rejected.append({"row": row, "errors": errors})
            else:
                accepted.append((row, student, course))

        outcome = {"total_rows": len(rows), "error_count": len(rejected)}
        if rejected:
            logger.info("Score import rejected: %d of %d rows failed validation", len(rejected), len(rows))
            return dict(outcome, success=False, success_count=0, updated_count=0, affected_students=0,
                        rejected=rejected)

        existing = {}
        student_ids = sorted({student.student_id for _, student, _ in accepted})
        for start in range(0, len(student_ids), self.chunk_size):
            for result in self.session.execute(
                select(Result).where(Result.student_id_fk.in_(student_ids[start:start + self.chunk_size]))
            ).scalars():
                existing[(result.student_id_fk, result.course_id_fk, result.academic_year)] = result

        created_count = 0
        updated_count = 0
        touched = set()
        try:
            for start in range(0, len(accepted), self.chunk_size):
                for row, student, course in accepted[start:start + self.chunk_size]:
                    triple = (student.student_id, course.course_id, row["academic_year"])
                    result, created, moved_from = upsert_result(
                        self.session, student, course, parse_score(row["score"]),
                        course.level, course.semester, row["academic_year"],
                        existing=existing.get(triple), lookup=False,
                    )
                    if created:
                        created_count += 1
                    else:
                        updated_count += 1
                    touched.add(key_of(result))
                    if moved_from is not None:
                        touched.add(moved_from)
                self.session.flush()

            for key in sorted(touched):
                self.gpa_service.on_results_changed(key)
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception("Score import failed while writing %d rows", len(accepted))
            raise

        affected = len({key.student_id for key in touched})
        logger.info("Score import committed %d new and %d updated results; GPA refreshed for %d semesters",
                    created_count, updated_count, len(touched))
        return dict(outcome, success=True, success_count=created_count, updated_count=updated_count,
                    affected_students=affected, rejected=[])
