from sqlalchemy import select, func

from ..decorators import ensure_faculty_access, is_dean, is_hod
from ..errors import NotFoundError
from ..models import Course, Department, Faculty, Student
from ..students.services import get_department_for


class DepartmentService:
    def __init__(self, session):
        self.session = session

    def _counts(self, department_id):
        students = self.session.execute(
            select(func.count(Student.student_id)).filter_by(department_id_fk=department_id)
        ).scalar() or 0
        courses = self.session.execute(
            select(func.count(Course.course_id)).filter_by(department_id_fk=department_id)
        ).scalar() or 0
        return {"students": students, "courses": courses}

    def _with_faculty(self, department, counts=True):
        data = department.to_dict()
        data["faculty"] = {
            "faculty_id": department.faculty.faculty_id,
            "name": department.faculty.name,
            "code": department.faculty.code,
        }
        if counts:
            data["counts"] = self._counts(department.department_id)
        return data

    def public_list(self):
        """Minimal listing used by the sign-up form."""
        departments = self.session.execute(select(Department).order_by(Department.name)).scalars().all()
        return [
            {
                "department_id": d.department_id,
                "name": d.name,
                "code": d.code,
                "faculty_id": d.faculty_id_fk,
                "faculty_name": d.faculty.name,
            }
            for d in departments
        ]

    def list(self, actor, faculty_id=None):
        stmt = select(Department)
        if is_dean(actor):
            stmt = stmt.where(Department.faculty_id_fk == actor.faculty_id_fk)
        elif is_hod(actor):
            stmt = stmt.where(Department.department_id == actor.department_id_fk)
        if faculty_id:
            stmt = stmt.where(Department.faculty_id_fk == faculty_id)
        departments = self.session.execute(stmt.order_by(Department.name)).scalars().all()
        return [self._with_faculty(d) for d in departments]

    def my_department(self, actor):
        if actor.department_id_fk is None:
            raise NotFoundError("No department assigned to this account")
        return self.get(actor, actor.department_id_fk)

    def get(self, actor, department_id):
        department = get_department_for(self.session, actor, department_id)
        return self._with_faculty(department)


class FacultyService:
    def __init__(self, session):
        self.session = session

    def _to_dict(self, faculty):
        data = faculty.to_dict()
        data["departments"] = [
            {"department_id": d.department_id, "name": d.name, "code": d.code}
            for d in sorted(faculty.departments, key=lambda d: d.name)
        ]
        return data

    def list(self):
        faculties = self.session.execute(select(Faculty).order_by(Faculty.name)).scalars().all()
        return [self._to_dict(f) for f in faculties]

    def my_faculty(self, actor):
        if is_dean(actor):
            faculty_id = actor.faculty_id_fk
        elif actor.department is not None:
            faculty_id = actor.department.faculty_id_fk
        else:
            faculty_id = None
        if faculty_id is None:
            raise NotFoundError("No faculty assigned to this account")
        return self.get(actor, faculty_id)

    def get(self, actor, faculty_id):
        faculty = self.session.get(Faculty, faculty_id)
        if faculty is None:
            raise NotFoundError("Faculty not found")
        ensure_faculty_access(actor, faculty.faculty_id)
        return self._to_dict(faculty)
