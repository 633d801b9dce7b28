from collections import OrderedDict

from sqlalchemy import select, func

from ..decorators import ensure_faculty_access
from ..errors import NotFoundError
from ..grading import class_of_degree, compute_cgpa, format_level, format_semester, round_half_up
from ..gpa.services import semester_sort_key
from ..models import Course, Faculty, Result, SemesterGPA, Student
from ..students.services import get_department_for, get_student_for


def _result_line(result):
    return {
        "course_code": result.course.code,
        "course_title": result.course.title,
        "credit_unit": result.course.credit_unit,
        "score": result.score,
        "grade": result.grade,
        "grade_point": result.grade_point,
        "quality_points": result.quality_points,
        "is_carry_over": bool(result.is_carry_over),
    }


def _gpa_summary(values):
    if not values:
        return {"highest_gpa": None, "lowest_gpa": None, "average_gpa": None}
    return {
        "highest_gpa": max(values),
        "lowest_gpa": min(values),
        "average_gpa": round_half_up(sum(values) / len(values)),
    }


class ReportService:
    def __init__(self, session):
        self.session = session

    def department_report(self, actor, department_id, level, semester, academic_year):
        department = get_department_for(self.session, actor, department_id)

        results = self.session.execute(
            select(Result)
            .join(Student, Result.student_id_fk == Student.student_id)
            .join(Course, Result.course_id_fk == Course.course_id)
            .where(
                Student.department_id_fk == department.department_id,
                Result.level == level,
                Result.semester == semester,
                Result.academic_year == academic_year,
            )
            .order_by(Student.matric_number, Course.code)
        ).scalars().all()
        by_student = {}
        for r in results:
            by_student.setdefault(r.student_id_fk, []).append(r)

        gpas = self.session.execute(
            select(SemesterGPA)
            .join(Student, SemesterGPA.student_id_fk == Student.student_id)
            .where(
                Student.department_id_fk == department.department_id,
                SemesterGPA.level == level,
                SemesterGPA.semester == semester,
                SemesterGPA.academic_year == academic_year,
            )
            .order_by(SemesterGPA.gpa.desc(), Student.matric_number)
        ).scalars().all()

        students = []
        carry_overs = 0
        for record in gpas:
            student = record.student
            lines = by_student.get(student.student_id, [])
            carry_overs += sum(1 for r in lines if r.is_carry_over)
            students.append({
                "student_id": student.student_id,
                "matric_number": student.matric_number,
                "student_name": student.full_name,
                "results": [_result_line(r) for r in lines],
                "gpa": record.gpa,
                "cgpa": compute_cgpa(student.semester_gpas)["cgpa"],
            })

        values = [g.gpa for g in gpas]
        stats = {
            "total_students": len(gpas),
            "carry_over_count": carry_overs,
            "pass_rate": round_half_up(100.0 * sum(1 for v in values if v >= 1.0) / len(values)) if values else 0,
        }
        stats.update(_gpa_summary(values))

        return {
            "department": {
                "department_id": department.department_id,
                "name": department.name,
                "code": department.code,
                "faculty_name": department.faculty.name,
            },
            "level": level,
            "level_label": format_level(level),
            "semester": semester,
            "semester_label": format_semester(semester),
            "academic_year": academic_year,
            "stats": stats,
            "students": students,
        }

    def faculty_stats(self, actor, faculty_id, academic_year=None):
        faculty = self.session.get(Faculty, faculty_id)
        if faculty is None:
            raise NotFoundError("Faculty not found")
        ensure_faculty_access(actor, faculty.faculty_id)

        departments = []
        for dept in sorted(faculty.departments, key=lambda d: d.name):
            gpa_stmt = (
                select(SemesterGPA.gpa)
                .join(Student, SemesterGPA.student_id_fk == Student.student_id)
                .where(Student.department_id_fk == dept.department_id)
            )
            carry_stmt = (
                select(func.count(Result.result_id))
                .join(Student, Result.student_id_fk == Student.student_id)
                .where(Student.department_id_fk == dept.department_id, Result.is_carry_over.is_(True))
            )
            if academic_year:
                gpa_stmt = gpa_stmt.where(SemesterGPA.academic_year == academic_year)
                carry_stmt = carry_stmt.where(Result.academic_year == academic_year)

            values = self.session.execute(gpa_stmt).scalars().all()
            entry = {
                "department_id": dept.department_id,
                "name": dept.name,
                "code": dept.code,
                "student_count": len(dept.students),
                "course_count": len(dept.courses),
                "carry_over_count": self.session.execute(carry_stmt).scalar() or 0,
            }
            entry.update(_gpa_summary(values))
            departments.append(entry)

        return {
            "faculty": {"faculty_id": faculty.faculty_id, "name": faculty.name, "code": faculty.code},
            "academic_year": academic_year,
            "department_count": len(departments),
            "total_students": sum(d["student_count"] for d in departments),
            "departments": departments,
        }

    def transcript(self, actor, student_id):
        student = get_student_for(self.session, actor, student_id)
        gpa_rows = {(g.level, g.semester, g.academic_year): g for g in student.semester_gpas}

        groups = OrderedDict()
        for result in sorted(student.results, key=lambda r: (semester_sort_key(r), r.course.code)):
            key = (result.level, result.semester, result.academic_year)
            if key not in groups:
                record = gpa_rows.get(key)
                groups[key] = {
                    "level": result.level,
                    "level_label": format_level(result.level),
                    "semester": result.semester,
                    "semester_label": format_semester(result.semester),
                    "academic_year": result.academic_year,
                    "gpa": record.gpa if record else 0,
                    "total_units": record.total_units if record else 0,
                    "results": [],
                }
            groups[key]["results"].append(_result_line(result))

        cumulative = compute_cgpa(student.semester_gpas)
        return {
            "student": {
                "student_id": student.student_id,
                "matric_number": student.matric_number,
                "name": student.full_name,
                "middle_name": student.middle_name,
                "current_level": student.current_level,
                "admission_year": student.admission_year,
                "department": student.department.name,
                "faculty": student.department.faculty.name,
            },
            "semesters": list(groups.values()),
            "cgpa": cumulative["cgpa"],
            "total_units": cumulative["cumulative_units"],
            "total_points": cumulative["cumulative_points"],
            "class_of_degree": class_of_degree(cumulative["cgpa"]),
        }
