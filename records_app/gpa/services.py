import logging
from collections import namedtuple

from sqlalchemy import select

from ..errors import NotFoundError
from ..grading import (
    LEVELS,
    SEMESTERS,
    class_of_degree,
    compute_cgpa,
    compute_semester_gpa,
    round_half_up,
)
from ..models import Course, Result, SemesterGPA, Student

logger = logging.getLogger(__name__)

# Identifies one semester of one student; every Result row belongs to exactly one key.
SemesterKey = namedtuple("SemesterKey", ["student_id", "level", "semester", "academic_year"])


def semester_sort_key(record):
    level_rank = LEVELS.index(record.level) if record.level in LEVELS else len(LEVELS)
    semester_rank = SEMESTERS.index(record.semester) if record.semester in SEMESTERS else len(SEMESTERS)
    return (level_rank, semester_rank, record.academic_year)


class GpaService:
    """
    Persists SemesterGPA rows derived from Result rows.

    Nothing here commits except the explicit entry points (``recalculate`` and
    ``calculate_department_gpas``); writers that call ``on_results_changed``
    own the surrounding transaction.
    """

    def __init__(self, session):
        self.session = session

    def _results_for(self, key):
        stmt = (
            select(Result, Course.credit_unit)
            .join(Course, Result.course_id_fk == Course.course_id)
            .where(
                Result.student_id_fk == key.student_id,
                Result.level == key.level,
                Result.semester == key.semester,
                Result.academic_year == key.academic_year,
            )
        )
        return self.session.execute(stmt).all()

    def _gpa_row(self, key):
        return self.session.execute(
            select(SemesterGPA).filter_by(
                student_id_fk=key.student_id,
                level=key.level,
                semester=key.semester,
                academic_year=key.academic_year,
            )
        ).scalars().first()

    def _all_rows(self, student_id):
        return self.session.execute(
            select(SemesterGPA).filter_by(student_id_fk=student_id)
        ).scalars().all()

    def _semester_totals(self, key, rows):
        student = self.session.get(Student, key.student_id)
        if student is None:
            raise NotFoundError("Student not found")
        pass_mark = student.department.pass_mark
        return compute_semester_gpa(
            [{"score": r.score, "credit_unit": units, "pass_mark": pass_mark} for r, units in rows]
        )

    def calculate_semester_gpa(self, student_id, level, semester, academic_year):
        """
        Recompute the SemesterGPA row for one key.

        Returns ``(row, cgpa)``; ``row`` is None when the key has no results left,
        in which case any stored row is removed rather than zeroed.
        """
        key = SemesterKey(student_id, level, semester, academic_year)
        rows = self._results_for(key)
        existing = self._gpa_row(key)

        if not rows:
            if existing is not None:
                self.session.delete(existing)
                self.session.flush()
            return None, compute_cgpa(self._all_rows(student_id))["cgpa"]

        totals = self._semester_totals(key, rows)
        record = existing
        if record is None:
            record = SemesterGPA(
                student_id_fk=student_id,
                level=level,
                semester=semester,
                academic_year=academic_year,
            )
            self.session.add(record)
        record.gpa = totals["gpa"]
        record.total_units = totals["total_units"]
        record.total_points = totals["total_points"]
        self.session.flush()

        # Re-sum every semester of the student, this one included
        cumulative = compute_cgpa(self._all_rows(student_id))
        record.cumulative_gpa = cumulative["cgpa"]
        record.cumulative_units = cumulative["cumulative_units"]
        self.session.flush()
        return record, cumulative["cgpa"]

    def on_results_changed(self, key):
        """Hook every Result writer calls for each (student, level, semester, year) it touched."""
        return self.calculate_semester_gpa(*key)

    def recalculate(self, student_id, level, semester, academic_year):
        if self.session.get(Student, student_id) is None:
            raise NotFoundError("Student not found")
        record, cgpa = self.calculate_semester_gpa(student_id, level, semester, academic_year)
        self.session.commit()
        return {
            "student_id": student_id,
            "level": level,
            "semester": semester,
            "academic_year": academic_year,
            "gpa": record.gpa if record else 0,
            "cgpa": cgpa,
            "total_units": record.total_units if record else 0,
            "total_points": record.total_points if record else 0,
        }

    def get_semester_gpa(self, student_id, level, semester, academic_year):
        key = SemesterKey(student_id, level, semester, academic_year)
        record = self._gpa_row(key)
        if record is not None:
            return record.to_dict()

        rows = self._results_for(key)
        if not rows:
            raise NotFoundError("No results found for this semester")
        totals = self._semester_totals(key, rows)
        return {
            "student_id": student_id,
            "level": level,
            "semester": semester,
            "academic_year": academic_year,
            "gpa": totals["gpa"],
            "total_units": totals["total_units"],
            "total_points": totals["total_points"],
            "calculated": True,
        }

    def get_student_gpa_history(self, student_id):
        student = self.session.get(Student, student_id)
        if student is None:
            raise NotFoundError("Student not found")

        records = sorted(self._all_rows(student_id), key=semester_sort_key)
        cumulative = compute_cgpa(records)
        return {
            "student": {
                "student_id": student.student_id,
                "matric_number": student.matric_number,
                "name": student.full_name,
                "current_level": student.current_level,
            },
            "semester_gpas": [r.to_dict() for r in records],
            "cgpa": cumulative["cgpa"],
            "total_units": cumulative["cumulative_units"],
            "total_points": cumulative["cumulative_points"],
            "class_of_degree": class_of_degree(cumulative["cgpa"]),
        }

    def calculate_department_gpas(self, department_id, level, semester, academic_year):
        student_ids = self.session.execute(
            select(Student.student_id)
            .join(Result, Result.student_id_fk == Student.student_id)
            .where(
                Student.department_id_fk == department_id,
                Result.level == level,
                Result.semester == semester,
                Result.academic_year == academic_year,
            )
            .distinct()
            .order_by(Student.student_id)
        ).scalars().all()

        results = []
        errors = []
        for student_id in student_ids:
            try:
                # One savepoint per student; a failed flush only undoes that student
                with self.session.begin_nested():
                    record, cgpa = self.calculate_semester_gpa(student_id, level, semester, academic_year)
                    entry = {
                        "student_id": student_id,
                        "gpa": record.gpa if record else 0,
                        "cgpa": cgpa,
                    }
                results.append(entry)
            except Exception as e:
                logger.warning("GPA recalculation failed for student %s: %s", student_id, e)
                errors.append({"student_id": student_id, "error": str(e)})

        self.session.commit()
        logger.info(
            "Department %s GPA run for %s %s %s: %d calculated, %d failed",
            department_id, level, semester, academic_year, len(results), len(errors),
        )
        return {
            "calculated": len(results),
            "errors": len(errors),
            "results": results,
            "error_details": errors,
        }

    def get_department_gpa_stats(self, department_id, level=None, semester=None, academic_year=None):
        stmt = (
            select(SemesterGPA, Student)
            .join(Student, SemesterGPA.student_id_fk == Student.student_id)
            .where(Student.department_id_fk == department_id)
        )
        if level:
            stmt = stmt.where(SemesterGPA.level == level)
        if semester:
            stmt = stmt.where(SemesterGPA.semester == semester)
        if academic_year:
            stmt = stmt.where(SemesterGPA.academic_year == academic_year)
        rows = self.session.execute(stmt.order_by(SemesterGPA.gpa.desc())).all()

        if not rows:
            return {"count": 0, "highest_gpa": None, "lowest_gpa": None, "average_gpa": None, "distribution": {}}

        def _entry(record, student):
            return {
                "value": record.gpa,
                "student": {
                    "student_id": student.student_id,
                    "matric_number": student.matric_number,
                    "name": student.full_name,
                },
            }

        values = [record.gpa for record, _ in rows]
        distribution = {}
        for value in values:
            label = class_of_degree(value)
            distribution[label] = distribution.get(label, 0) + 1

        return {
            "count": len(rows),
            "highest_gpa": _entry(*rows[0]),
            "lowest_gpa": _entry(*rows[-1]),
            "average_gpa": round_half_up(sum(values) / len(values)),
            "distribution": distribution,
        }
