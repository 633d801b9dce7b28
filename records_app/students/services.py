import logging

from sqlalchemy import select, func, or_

from ..decorators import ensure_department_access, is_hod, is_dean
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Department, Student
from ..validators import (
    MATRIC_RE,
    as_int,
    as_level,
    current_year,
    is_valid_email,
    require_fields,
    MIN_YEAR,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("first_name", "last_name", "middle_name", "email", "phone", "current_level", "admission_year", "is_active")


def get_student_for(session, actor, student_id):
    """Fetch a student the actor is allowed to see; 404 before 403."""
    student = session.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student not found")
    ensure_department_access(actor, student.department)
    return student


def get_department_for(session, actor, department_id):
    department = session.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department not found")
    ensure_department_access(actor, department)
    return department


class StudentService:
    def __init__(self, session):
        self.session = session

    def _clean(self, payload, partial=False):
        data = {}
        errors = []

        if "matric_number" in payload or not partial:
            matric = str(payload.get("matric_number") or "").strip().upper()
            if not MATRIC_RE.match(matric):
                errors.append("matric_number: expected format like CSC/2023/001")
            data["matric_number"] = matric

        for field in ("first_name", "last_name"):
            if field in payload or not partial:
                value = str(payload.get(field) or "").strip()
                if len(value) < 2:
                    errors.append(f"{field}: must be at least 2 characters")
                data[field] = value

        for field in ("middle_name", "phone"):
            if field in payload:
                data[field] = (str(payload.get(field) or "").strip() or None)

        if "email" in payload:
            email = str(payload.get("email") or "").strip()
            if email and not is_valid_email(email):
                errors.append("email: invalid email format")
            data["email"] = email or None

        if errors:
            raise ValidationError("Validation failed", errors)

        if "current_level" in payload or not partial:
            data["current_level"] = as_level(payload.get("current_level"), "current_level")
        if "admission_year" in payload or not partial:
            data["admission_year"] = as_int(payload.get("admission_year"), "admission_year",
                                            minimum=MIN_YEAR, maximum=current_year())
        if "is_active" in payload:
            data["is_active"] = bool(payload.get("is_active"))
        return data

    def _by_matric(self, matric_number):
        return self.session.execute(
            select(Student).filter_by(matric_number=matric_number)
        ).scalars().first()

    def create(self, actor, payload):
        require_fields(payload, "matric_number", "first_name", "last_name", "current_level", "admission_year")
        if is_hod(actor) and not payload.get("department_id"):
            payload = dict(payload, department_id=actor.department_id_fk)
        require_fields(payload, "department_id")
        department = get_department_for(self.session, actor, as_int(payload.get("department_id"), "department_id"))

        data = self._clean(payload)
        if self._by_matric(data["matric_number"]) is not None:
            raise ConflictError("Matriculation number already exists")

        student = Student(department_id_fk=department.department_id, **data)
        self.session.add(student)
        self.session.commit()
        logger.info("Created student %s in %s", student.matric_number, department.code)
        return student.to_dict(include_department=True)

    def list(self, actor, department_id=None, level=None, search=None, page=1, limit=50):
        stmt = select(Student)
        if is_hod(actor):
            stmt = stmt.where(Student.department_id_fk == actor.department_id_fk)
        elif is_dean(actor):
            stmt = stmt.join(Department, Student.department_id_fk == Department.department_id).where(
                Department.faculty_id_fk == actor.faculty_id_fk
            )
        if department_id:
            stmt = stmt.where(Student.department_id_fk == department_id)
        if level:
            stmt = stmt.where(Student.current_level == level)
        if search:
            like = f"%{search.strip()}%"
            stmt = stmt.where(or_(
                Student.matric_number.ilike(like),
                Student.first_name.ilike(like),
                Student.last_name.ilike(like),
            ))

        total = self.session.execute(select(func.count()).select_from(stmt.subquery())).scalar() or 0
        page = max(1, page)
        limit = max(1, min(limit, 500))
        students = self.session.execute(
            stmt.order_by(Student.matric_number).offset((page - 1) * limit).limit(limit)
        ).scalars().all()
        return [s.to_dict(include_department=True) for s in students], {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        }

    def get(self, actor, student_id):
        from ..gpa.services import semester_sort_key

        student = get_student_for(self.session, actor, student_id)
        data = student.to_dict(include_department=True)
        data["department"]["faculty_id"] = student.department.faculty_id_fk
        data["results"] = [r.to_dict() for r in sorted(student.results, key=semester_sort_key)]
        data["semester_gpas"] = [g.to_dict() for g in sorted(student.semester_gpas, key=semester_sort_key)]
        return data

    def update(self, actor, student_id, payload):
        student = get_student_for(self.session, actor, student_id)
        data = self._clean(payload, partial=True)

        new_matric = data.get("matric_number")
        if new_matric and new_matric != student.matric_number and self._by_matric(new_matric) is not None:
            raise ConflictError("Matriculation number already exists")

        if payload.get("department_id") not in (None, "", student.department_id_fk):
            department = get_department_for(self.session, actor, as_int(payload.get("department_id"), "department_id"))
            student.department_id_fk = department.department_id

        for field, value in data.items():
            setattr(student, field, value)
        self.session.commit()
        return student.to_dict(include_department=True)

    def delete(self, actor, student_id):
        student = get_student_for(self.session, actor, student_id)
        matric = student.matric_number
        self.session.delete(student)
        self.session.commit()
        logger.info("Deleted student %s with results and GPA records", matric)

    def by_department_level(self, actor, department_id, level):
        get_department_for(self.session, actor, department_id)
        students = self.session.execute(
            select(Student)
            .filter_by(department_id_fk=department_id, current_level=level, is_active=True)
            .order_by(Student.matric_number)
        ).scalars().all()
        return [s.to_dict() for s in students]
