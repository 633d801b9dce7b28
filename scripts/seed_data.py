import os
import sys
from werkzeug.security import generate_password_hash

# Ensure project root is on sys.path when running from scripts/
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from records_app import create_app, db
from records_app.models import Course, Department, Faculty, User
from sqlalchemy import select


DEPARTMENTS = [
    ("Health Information Management", "HIM", 40),
    ("Information Technology and Health Informatics", "ITH", 40),
    ("Optometry", "OPT", 50),
    ("Anatomy", "ANA", 40),
    ("Physiology", "PHY", 40),
    ("Physiotherapy", "PHT", 50),
    ("Dental Therapy", "DEN", 40),
    ("Dental Technology", "DET", 40),
    ("Radiography", "RAD", 40),
    ("Nutrition and Dietary", "NUD", 40),
]

# (department code, course code, title, credit unit, level, semester)
COURSES = [
    ("HIM", "HIM101", "Introduction to Health Records", 3, "ND1", "FIRST"),
    ("HIM", "HIM103", "Medical Terminology I", 2, "ND1", "FIRST"),
    ("HIM", "HIM102", "Health Statistics I", 3, "ND1", "SECOND"),
    ("OPT", "OPT101", "Introduction to Optometry", 3, "LEVEL_100", "FIRST"),
    ("OPT", "OPT102", "Geometric Optics", 4, "LEVEL_100", "SECOND"),
]


def ensure_faculty(name: str, code: str):
    faculty = db.session.execute(select(Faculty).filter_by(code=code)).scalars().first()
    if faculty is None:
        faculty = Faculty(name=name, code=code, description=f"Faculty of {name}")
        db.session.add(faculty)
        db.session.commit()
    return faculty


def ensure_department(faculty, name: str, code: str, pass_mark: int):
    dept = db.session.execute(select(Department).filter_by(code=code)).scalars().first()
    if dept is None:
        dept = Department(
            faculty_id_fk=faculty.faculty_id,
            name=name,
            code=code,
            description=f"Department of {name}",
            pass_mark=pass_mark,
        )
        db.session.add(dept)
    else:
        dept.pass_mark = pass_mark
    db.session.commit()
    return dept


def ensure_course(dept, code: str, title: str, credit_unit: int, level: str, semester: str):
    course = db.session.execute(
        select(Course).filter_by(code=code, department_id_fk=dept.department_id)
    ).scalars().first()
    if course is None:
        course = Course(
            department_id_fk=dept.department_id,
            code=code,
            title=title,
            credit_unit=credit_unit,
            level=level,
            semester=semester,
        )
        db.session.add(course)
        db.session.commit()
    return course


def ensure_user(email: str, password: str, role: str, first_name: str, last_name: str,
                department_id: int = None, faculty_id: int = None):
    user = db.session.execute(
        select(User).filter_by(email=email)
    ).scalars().first()
    if user is None:
        user = User(
            email=email,
            password_hash=generate_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            department_id_fk=department_id,
            faculty_id_fk=faculty_id,
        )
        db.session.add(user)
        db.session.commit()
        return user, True, False
    # Reset password and scope so the seeded credentials are always known
    user.password_hash = generate_password_hash(password)
    user.role = role
    user.department_id_fk = department_id
    user.faculty_id_fk = faculty_id
    db.session.commit()
    return user, False, True


def main():
    app = create_app()
    with app.app_context():
        bms = ensure_faculty("Basic Medical Sciences", "BMS")
        departments = {
            code: ensure_department(bms, name, code, pass_mark)
            for name, code, pass_mark in DEPARTMENTS
        }
        print(f"Faculty {bms.code}: {len(departments)} departments")

        for dept_code, code, title, units, level, semester in COURSES:
            ensure_course(departments[dept_code], code, title, units, level, semester)
        print(f"Courses ensured: {len(COURSES)}")

        dean, dean_created, dean_updated = ensure_user(
            email="dean.bms@university.edu.ng",
            password="password123",
            role="DEAN",
            first_name="Adebayo",
            last_name="Ogundimu",
            faculty_id=bms.faculty_id,
        )
        hod, hod_created, hod_updated = ensure_user(
            email="hod.him@university.edu.ng",
            password="password123",
            role="HOD",
            first_name="Ngozi",
            last_name="Okafor",
            department_id=departments["HIM"].department_id,
        )

        print(
            f"Dean -> email: {dean.email}, password: password123, created={dean_created}, updated={dean_updated}"
        )
        print(
            f"HOD (HIM) -> email: {hod.email}, password: password123, created={hod_created}, updated={hod_updated}"
        )


if __name__ == "__main__":
    main()
