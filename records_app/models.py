from datetime import datetime, timezone
from flask_login import UserMixin
from . import db


def utc_now():
    return datetime.now(timezone.utc)


# ==========================================
# ORGANIZATION
# ==========================================

class Faculty(db.Model):
    __tablename__ = "faculties"
    faculty_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(16), unique=True, nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    departments = db.relationship("Department", backref="faculty", lazy=True)

    def to_dict(self):
        return {
            "faculty_id": self.faculty_id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
        }


class Department(db.Model):
    __tablename__ = "departments"
    department_id = db.Column(db.Integer, primary_key=True)
    faculty_id_fk = db.Column(db.Integer, db.ForeignKey("faculties.faculty_id"), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(16), unique=True, nullable=False)  # e.g. CSC, MTH
    description = db.Column(db.Text)
    # Minimum score for a non-failing grade; overrides the generic bands
    pass_mark = db.Column(db.Integer, nullable=False, default=40)
    created_at = db.Column(db.DateTime, default=utc_now)

    students = db.relationship("Student", backref="department", lazy=True)
    courses = db.relationship("Course", backref="department", lazy=True)

    __table_args__ = (
        db.CheckConstraint("pass_mark >= 0 AND pass_mark <= 100", name="ck_department_pass_mark"),
    )

    def to_dict(self):
        return {
            "department_id": self.department_id,
            "faculty_id": self.faculty_id_fk,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "pass_mark": self.pass_mark,
        }


class User(UserMixin, db.Model):
    __tablename__ = "users"
    user_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(128), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(64))
    last_name = db.Column(db.String(64))
    role = db.Column(db.String(16), nullable=False, default="HOD")  # HOD, DEAN
    # HODs are scoped to a department, DEANs to a faculty
    department_id_fk = db.Column(db.Integer, db.ForeignKey("departments.department_id"))
    faculty_id_fk = db.Column(db.Integer, db.ForeignKey("faculties.faculty_id"))
    is_active = db.Column(db.Boolean, default=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)

    department = db.relationship("Department", lazy=True)
    faculty = db.relationship("Faculty", lazy=True)

    def get_id(self):
        return str(self.user_id)

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "department_id": self.department_id_fk,
            "faculty_id": self.faculty_id_fk,
            "is_active": bool(self.is_active),
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }


# ==========================================
# STUDENTS & COURSES
# ==========================================

class Student(db.Model):
    __tablename__ = "students"
    student_id = db.Column(db.Integer, primary_key=True)
    matric_number = db.Column(db.String(32), unique=True, nullable=False)  # e.g. CSC/2023/001
    department_id_fk = db.Column(db.Integer, db.ForeignKey("departments.department_id"), nullable=False)
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    middle_name = db.Column(db.String(64))
    email = db.Column(db.String(128))
    phone = db.Column(db.String(20))
    current_level = db.Column(db.String(16), nullable=False)
    admission_year = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    results = db.relationship("Result", backref="student", lazy=True, cascade="all, delete")
    semester_gpas = db.relationship("SemesterGPA", backref="student", lazy=True, cascade="all, delete")

    __table_args__ = (
        db.Index("ix_students_department_level", "department_id_fk", "current_level"),
    )

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_dict(self, include_department=False):
        data = {
            "student_id": self.student_id,
            "matric_number": self.matric_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "middle_name": self.middle_name,
            "email": self.email,
            "phone": self.phone,
            "current_level": self.current_level,
            "admission_year": self.admission_year,
            "department_id": self.department_id_fk,
            "is_active": bool(self.is_active),
        }
        if include_department and self.department is not None:
            data["department"] = {
                "department_id": self.department.department_id,
                "name": self.department.name,
                "code": self.department.code,
            }
        return data


class Course(db.Model):
    __tablename__ = "courses"
    course_id = db.Column(db.Integer, primary_key=True)
    department_id_fk = db.Column(db.Integer, db.ForeignKey("departments.department_id"), nullable=False)
    code = db.Column(db.String(16), nullable=False)  # e.g. CSC101
    title = db.Column(db.String(200), nullable=False)
    credit_unit = db.Column(db.Integer, nullable=False)
    level = db.Column(db.String(16), nullable=False)
    semester = db.Column(db.String(8), nullable=False)
    is_elective = db.Column(db.Boolean, default=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    results = db.relationship("Result", backref="course", lazy=True)

    __table_args__ = (
        db.UniqueConstraint("code", "department_id_fk", name="uq_course_code_department"),
        db.CheckConstraint("credit_unit > 0", name="ck_course_credit_unit"),
    )

    def to_dict(self):
        return {
            "course_id": self.course_id,
            "code": self.code,
            "title": self.title,
            "credit_unit": self.credit_unit,
            "level": self.level,
            "semester": self.semester,
            "is_elective": bool(self.is_elective),
            "description": self.description,
            "department_id": self.department_id_fk,
        }


# ==========================================
# RESULTS & GPA
# ==========================================

class Result(db.Model):
    __tablename__ = "results"
    result_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("students.student_id"), nullable=False)
    course_id_fk = db.Column(db.Integer, db.ForeignKey("courses.course_id"), nullable=False)
    score = db.Column(db.Float, nullable=False)
    grade = db.Column(db.String(2), nullable=False)
    grade_point = db.Column(db.Integer, nullable=False)
    quality_points = db.Column(db.Float, nullable=False)  # grade_point x credit_unit
    is_carry_over = db.Column(db.Boolean, default=False)
    level = db.Column(db.String(16), nullable=False)
    semester = db.Column(db.String(8), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)  # 2023/2024
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "course_id_fk", "academic_year", name="uq_result_student_course_year"),
        db.Index("ix_results_semester_key", "student_id_fk", "level", "semester", "academic_year"),
    )

    def to_dict(self, include_course=True, include_student=False):
        data = {
            "result_id": self.result_id,
            "student_id": self.student_id_fk,
            "course_id": self.course_id_fk,
            "score": self.score,
            "grade": self.grade,
            "grade_point": self.grade_point,
            "quality_points": self.quality_points,
            "is_carry_over": bool(self.is_carry_over),
            "level": self.level,
            "semester": self.semester,
            "academic_year": self.academic_year,
        }
        if include_course and self.course is not None:
            data["course"] = {
                "code": self.course.code,
                "title": self.course.title,
                "credit_unit": self.course.credit_unit,
            }
        if include_student and self.student is not None:
            data["student"] = {
                "matric_number": self.student.matric_number,
                "first_name": self.student.first_name,
                "last_name": self.student.last_name,
            }
        return data


class SemesterGPA(db.Model):
    __tablename__ = "semester_gpas"
    gpa_id = db.Column(db.Integer, primary_key=True)
    student_id_fk = db.Column(db.Integer, db.ForeignKey("students.student_id"), nullable=False)
    level = db.Column(db.String(16), nullable=False)
    semester = db.Column(db.String(8), nullable=False)
    academic_year = db.Column(db.String(9), nullable=False)
    gpa = db.Column(db.Float, nullable=False, default=0)
    total_units = db.Column(db.Integer, nullable=False, default=0)
    total_points = db.Column(db.Float, nullable=False, default=0)
    cumulative_gpa = db.Column(db.Float, nullable=False, default=0)
    cumulative_units = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint("student_id_fk", "level", "semester", "academic_year", name="uq_semester_gpa_key"),
    )

    def to_dict(self):
        return {
            "gpa_id": self.gpa_id,
            "student_id": self.student_id_fk,
            "level": self.level,
            "semester": self.semester,
            "academic_year": self.academic_year,
            "gpa": self.gpa,
            "total_units": self.total_units,
            "total_points": self.total_points,
            "cumulative_gpa": self.cumulative_gpa,
            "cumulative_units": self.cumulative_units,
        }


# ==========================================
# SYSTEM
# ==========================================

class ImportLog(db.Model):
    __tablename__ = "import_logs"
    log_id = db.Column(db.Integer, primary_key=True)
    user_id_fk = db.Column(db.Integer, db.ForeignKey("users.user_id"))
    kind = db.Column(db.String(16), nullable=False)  # students | scores
    filename = db.Column(db.String(255))
    success = db.Column(db.Boolean, default=False)
    total_rows = db.Column(db.Integer, default=0)
    created_count = db.Column(db.Integer, default=0)
    updated_count = db.Column(db.Integer, default=0)
    skipped_count = db.Column(db.Integer, default=0)
    errors_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utc_now)
