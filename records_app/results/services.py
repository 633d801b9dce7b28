import logging

from sqlalchemy import select

from ..decorators import ensure_department_access, is_hod
from ..errors import AppError, NotFoundError, ValidationError
from ..grading import compute_result, format_level, format_semester
from ..gpa.services import SemesterKey, semester_sort_key
from ..models import Course, Result, Student
from ..students.services import get_department_for, get_student_for
from ..validators import (
    as_academic_year,
    as_int,
    as_level,
    as_score,
    as_semester,
    require_fields,
)

logger = logging.getLogger(__name__)


def upsert_result(session, student, course, score, level, semester, academic_year, existing=None, lookup=True):
    """
    Grade ``score`` and write it under (student, course, academic_year).
    Returns ``(result, created, moved_from)``; re-submission of a triple updates in place.
    ``moved_from`` is the semester key the result was filed under before, when the
    write moved it to a different level or semester, else None.
    """
    calculated = compute_result(score, course.credit_unit, student.department.pass_mark)
    result = existing
    if result is None and lookup:
        result = session.execute(
            select(Result).filter_by(
                student_id_fk=student.student_id,
                course_id_fk=course.course_id,
                academic_year=academic_year,
            )
        ).scalars().first()

    created = result is None
    moved_from = None
    if not created and (result.level, result.semester) != (level, semester):
        moved_from = key_of(result)
    if created:
        result = Result(
            student_id_fk=student.student_id,
            course_id_fk=course.course_id,
            academic_year=academic_year,
        )
        session.add(result)

    result.score = calculated["score"]
    result.grade = calculated["grade"]
    result.grade_point = calculated["grade_point"]
    result.quality_points = calculated["quality_points"]
    result.is_carry_over = calculated["is_carry_over"]
    result.level = level
    result.semester = semester
    return result, created, moved_from


def key_of(result):
    return SemesterKey(result.student_id_fk, result.level, result.semester, result.academic_year)


class ResultService:
    def __init__(self, session, gpa_service):
        self.session = session
        self.gpa_service = gpa_service

    def _result_for(self, actor, result_id):
        result = self.session.get(Result, result_id)
        if result is None:
            raise NotFoundError("Result not found")
        ensure_department_access(actor, result.student.department)
        return result

    def add_single_score(self, actor, payload):
        require_fields(payload, "student_id", "course_id", "score", "level", "semester", "academic_year")
        student_id = as_int(payload.get("student_id"), "student_id")
        course_id = as_int(payload.get("course_id"), "course_id")
        score = as_score(payload.get("score"))
        level = as_level(payload.get("level"))
        semester = as_semester(payload.get("semester"))
        academic_year = as_academic_year(payload.get("academic_year"))

        student = get_student_for(self.session, actor, student_id)
        course = self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found")
        ensure_department_access(actor, course.department)
        if course.department_id_fk != student.department_id_fk:
            raise ValidationError(f"Course {course.code} does not belong to the student's department")
        if course.level != level:
            raise ValidationError(f"Course {course.code} is for {format_level(course.level)}, not {format_level(level)}")
        if course.semester != semester:
            raise ValidationError(
                f"Course {course.code} is for {format_semester(course.semester)}, not {format_semester(semester)}"
            )

        try:
            result, created, moved_from = upsert_result(
                self.session, student, course, score, level, semester, academic_year
            )
            self.session.flush()
            if moved_from is not None:
                self.gpa_service.on_results_changed(moved_from)
            record, cgpa = self.gpa_service.on_results_changed(key_of(result))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("%s score %s for %s in %s (%s)", "Added" if created else "Updated",
                    score, student.matric_number, course.code, academic_year)
        return {
            "result": result.to_dict(include_student=True),
            "gpa": record.gpa if record else 0,
            "cgpa": cgpa,
        }

    def delete_single_score(self, actor, result_id):
        result = self._result_for(actor, result_id)
        deleted = result.to_dict(include_student=True)
        key = key_of(result)

        try:
            self.session.delete(result)
            self.session.flush()
            record, _ = self.gpa_service.on_results_changed(key)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        return {"deleted_result": deleted, "gpa_recalculated": record is not None}

    def enter_scores(self, actor, payload):
        """
        Manual entry of many scores under one (level, semester, academic_year).
        Entries are judged one at a time; good ones are kept even when others fail.
        """
        require_fields(payload, "level", "semester", "academic_year")
        level = as_level(payload.get("level"))
        semester = as_semester(payload.get("semester"))
        academic_year = as_academic_year(payload.get("academic_year"))
        scores = payload.get("scores")
        if not isinstance(scores, list) or not scores:
            raise ValidationError("Validation failed", ["scores: must be a non-empty list"])

        department_id = actor.department_id_fk if is_hod(actor) else payload.get("department_id")
        if not department_id:
            raise ValidationError("Validation failed", ["department_id: is required"])
        department = get_department_for(self.session, actor, as_int(department_id, "department_id"))

        results = []
        errors = []
        touched = set()
        seen = set()
        for entry in scores:
            entry = entry if isinstance(entry, dict) else {}
            ref = {"student_id": entry.get("student_id"), "course_id": entry.get("course_id")}
            try:
                score = as_score(entry.get("score"))
                student = self.session.get(Student, as_int(entry.get("student_id"), "student_id"))
                if student is None:
                    raise NotFoundError("Student not found")
                if student.department_id_fk != department.department_id:
                    raise ValidationError("Student does not belong to this department")
                course = self.session.get(Course, as_int(entry.get("course_id"), "course_id"))
                if course is None:
                    raise NotFoundError("Course not found")
                if course.department_id_fk != department.department_id:
                    raise ValidationError("Course does not belong to this department")
                if course.level != level or course.semester != semester:
                    raise ValidationError(f"Course {course.code} is not offered in {format_level(level)} "
                                          f"{format_semester(semester)}")

                if (student.student_id, course.course_id) in seen:
                    raise ValidationError(f"{student.matric_number} / {course.code} appears more than once "
                                          f"in this submission")

                result, _, moved_from = upsert_result(
                    self.session, student, course, score, level, semester, academic_year
                )
                self.session.flush()
                seen.add((student.student_id, course.course_id))
                results.append(result)
                touched.add(key_of(result))
                if moved_from is not None:
                    touched.add(moved_from)
            except AppError as e:
                message = e.message
                if e.details:
                    message = f"{message}: {'; '.join(e.details)}"
                errors.append(dict(ref, error=message))

        try:
            for key in sorted(touched):
                self.gpa_service.on_results_changed(key)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Score entry for %s %s %s: %d saved, %d rejected",
                    department.code, level, academic_year, len(results), len(errors))
        return {
            "success_count": len(results),
            "error_count": len(errors),
            "results": [r.to_dict(include_student=True) for r in results],
            "errors": errors,
        }

    def update_result(self, actor, result_id, score):
        result = self._result_for(actor, result_id)
        score = as_score(score)
        try:
            upsert_result(self.session, result.student, result.course, score,
                          result.level, result.semester, result.academic_year, existing=result)
            self.session.flush()
            self.gpa_service.on_results_changed(key_of(result))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result.to_dict(include_student=True)

    def get_student_results(self, actor, student_id, level=None, semester=None, academic_year=None):
        get_student_for(self.session, actor, student_id)
        stmt = select(Result).join(Course, Result.course_id_fk == Course.course_id).where(
            Result.student_id_fk == student_id
        )
        if level:
            stmt = stmt.where(Result.level == level)
        if semester:
            stmt = stmt.where(Result.semester == semester)
        if academic_year:
            stmt = stmt.where(Result.academic_year == academic_year)
        rows = self.session.execute(stmt.order_by(Course.code)).scalars().all()
        return [r.to_dict() for r in sorted(rows, key=semester_sort_key)]

    def get_department_results(self, actor, department_id, level, semester, academic_year):
        get_department_for(self.session, actor, department_id)
        rows = self.session.execute(
            select(Result)
            .join(Student, Result.student_id_fk == Student.student_id)
            .join(Course, Result.course_id_fk == Course.course_id)
            .where(
                Student.department_id_fk == department_id,
                Result.level == level,
                Result.semester == semester,
                Result.academic_year == academic_year,
            )
            .order_by(Student.matric_number, Course.code)
        ).scalars().all()
        return [r.to_dict(include_student=True) for r in rows]

    def get_carry_over_courses(self, actor, student_id):
        get_student_for(self.session, actor, student_id)
        rows = self.session.execute(
            select(Result).filter_by(student_id_fk=student_id, is_carry_over=True)
        ).scalars().all()
        data = []
        for r in sorted(rows, key=semester_sort_key):
            item = r.to_dict()
            item["course"]["level"] = r.course.level
            item["course"]["semester"] = r.course.semester
            data.append(item)
        return data

    def get_student_results_with_gpa(self, actor, student_id):
        student = get_student_for(self.session, actor, student_id)
        data = student.to_dict(include_department=True)
        data["results"] = [r.to_dict() for r in sorted(student.results, key=semester_sort_key)]
        data["semester_gpas"] = [g.to_dict() for g in sorted(student.semester_gpas, key=semester_sort_key)]
        return data
