import logging

from sqlalchemy import select, func, or_

from ..decorators import ensure_department_access, is_hod, is_dean
from ..errors import ConflictError, NotFoundError, ValidationError
from ..grading import compute_result, LEVELS, SEMESTERS
from ..models import Course, Department, Result
from ..students.services import get_department_for
from ..validators import as_int, as_level, as_semester, require_fields

logger = logging.getLogger(__name__)


def get_course_for(session, actor, course_id):
    course = session.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course not found")
    ensure_department_access(actor, course.department)
    return course


class CourseService:
    def __init__(self, session, gpa_service=None):
        self.session = session
        self.gpa_service = gpa_service

    def _clean(self, payload, partial=False):
        data = {}
        errors = []
        if "code" in payload or not partial:
            code = str(payload.get("code") or "").strip().upper()
            if not 3 <= len(code) <= 10:
                errors.append("code: must be between 3 and 10 characters")
            data["code"] = code
        if "title" in payload or not partial:
            title = str(payload.get("title") or "").strip()
            if len(title) < 5:
                errors.append("title: must be at least 5 characters")
            data["title"] = title
        if errors:
            raise ValidationError("Validation failed", errors)

        if "credit_unit" in payload or not partial:
            data["credit_unit"] = as_int(payload.get("credit_unit"), "credit_unit", minimum=1, maximum=6)
        if "level" in payload or not partial:
            data["level"] = as_level(payload.get("level"))
        if "semester" in payload or not partial:
            data["semester"] = as_semester(payload.get("semester"))
        if "is_elective" in payload:
            data["is_elective"] = bool(payload.get("is_elective"))
        if "description" in payload:
            data["description"] = (str(payload.get("description") or "").strip() or None)
        return data

    def _code_taken(self, code, department_id, exclude_id=None):
        stmt = select(Course.course_id).filter_by(code=code, department_id_fk=department_id)
        if exclude_id is not None:
            stmt = stmt.where(Course.course_id != exclude_id)
        return self.session.execute(stmt).first() is not None

    def create(self, actor, payload):
        if is_hod(actor) and not payload.get("department_id"):
            payload = dict(payload, department_id=actor.department_id_fk)
        require_fields(payload, "code", "title", "credit_unit", "level", "semester", "department_id")
        department = get_department_for(self.session, actor, as_int(payload.get("department_id"), "department_id"))

        data = self._clean(payload)
        if self._code_taken(data["code"], department.department_id):
            raise ConflictError("Course code already exists in this department")

        course = Course(department_id_fk=department.department_id, **data)
        self.session.add(course)
        self.session.commit()
        logger.info("Created course %s in %s", course.code, department.code)
        return course.to_dict()

    def list(self, actor, department_id=None, level=None, semester=None, search=None):
        stmt = select(Course)
        if is_hod(actor):
            stmt = stmt.where(Course.department_id_fk == actor.department_id_fk)
        elif is_dean(actor):
            stmt = stmt.join(Department, Course.department_id_fk == Department.department_id).where(
                Department.faculty_id_fk == actor.faculty_id_fk
            )
        if department_id:
            stmt = stmt.where(Course.department_id_fk == department_id)
        if level:
            stmt = stmt.where(Course.level == level)
        if semester:
            stmt = stmt.where(Course.semester == semester)
        if search:
            like = f"%{search.strip()}%"
            stmt = stmt.where(or_(Course.code.ilike(like), Course.title.ilike(like)))

        courses = self.session.execute(stmt).scalars().all()
        courses.sort(key=lambda c: (LEVELS.index(c.level) if c.level in LEVELS else 99,
                                    SEMESTERS.index(c.semester) if c.semester in SEMESTERS else 9,
                                    c.code))
        return [c.to_dict() for c in courses]

    def get(self, actor, course_id):
        course = get_course_for(self.session, actor, course_id)
        data = course.to_dict()
        data["department"] = {
            "department_id": course.department.department_id,
            "name": course.department.name,
            "code": course.department.code,
        }
        data["result_count"] = self.session.execute(
            select(func.count(Result.result_id)).filter_by(course_id_fk=course.course_id)
        ).scalar() or 0
        return data

    def update(self, actor, course_id, payload):
        course = get_course_for(self.session, actor, course_id)
        data = self._clean(payload, partial=True)
        if data.get("code") and data["code"] != course.code and self._code_taken(
            data["code"], course.department_id_fk, exclude_id=course.course_id
        ):
            raise ConflictError("Course code already exists in this department")
        if any(field in data and data[field] != getattr(course, field) for field in ("level", "semester")):
            has_results = self.session.execute(
                select(Result.result_id).filter_by(course_id_fk=course.course_id).limit(1)
            ).first()
            if has_results:
                raise ValidationError("Cannot change the level or semester of a course that already has results")

        regrade = "credit_unit" in data and data["credit_unit"] != course.credit_unit
        for field, value in data.items():
            setattr(course, field, value)

        if regrade:
            self._regrade(course)
        self.session.commit()
        return course.to_dict()

    def _regrade(self, course):
        """Quality points depend on the credit unit; refresh them and the affected GPAs."""
        touched = set()
        pass_mark = course.department.pass_mark
        for result in course.results:
            calculated = compute_result(result.score, course.credit_unit, pass_mark)
            result.quality_points = calculated["quality_points"]
            touched.add((result.student_id_fk, result.level, result.semester, result.academic_year))
        self.session.flush()
        if self.gpa_service is not None:
            for key in sorted(touched):
                self.gpa_service.on_results_changed(key)
        logger.info("Re-graded %d results after credit unit change on %s", len(course.results), course.code)

    def delete(self, actor, course_id):
        course = get_course_for(self.session, actor, course_id)
        count = self.session.execute(
            select(func.count(Result.result_id)).filter_by(course_id_fk=course.course_id)
        ).scalar() or 0
        if count:
            raise ValidationError("Cannot delete course with existing results. Delete results first.")
        self.session.delete(course)
        self.session.commit()

    def by_department_level_semester(self, actor, department_id, level, semester):
        get_department_for(self.session, actor, department_id)
        courses = self.session.execute(
            select(Course)
            .filter_by(department_id_fk=department_id, level=level, semester=semester)
            .order_by(Course.code)
        ).scalars().all()
        return [c.to_dict() for c in courses]
