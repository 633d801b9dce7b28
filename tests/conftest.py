from io import BytesIO

import pytest
from openpyxl import Workbook
from werkzeug.security import generate_password_hash

from records_app import create_app, db
from records_app.models import Course, Department, Faculty, Student, User

PASSWORD = "secret123"


@pytest.fixture()
def app(tmp_path):
    db_path = (tmp_path / "test.db").as_posix()
    app = create_app(config_overrides={
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "RATELIMIT_ENABLED": False,
        "CACHE_TYPE": "NullCache",
        "APP_ENV": "testing",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def seed(app):
    """Two faculties; CSC (pass mark 40) and MTH (pass mark 50) share a faculty, EEE sits in the other."""
    with app.app_context():
        sci = Faculty(name="Science", code="SCI")
        eng = Faculty(name="Engineering", code="ENG")
        db.session.add_all([sci, eng])
        db.session.flush()

        csc = Department(faculty_id_fk=sci.faculty_id, name="Computer Science", code="CSC", pass_mark=40)
        mth = Department(faculty_id_fk=sci.faculty_id, name="Mathematics", code="MTH", pass_mark=50)
        eee = Department(faculty_id_fk=eng.faculty_id, name="Electrical Engineering", code="EEE", pass_mark=45)
        db.session.add_all([csc, mth, eee])
        db.session.flush()

        courses = {
            "CSC101": Course(department_id_fk=csc.department_id, code="CSC101", title="Introduction to Computing",
                             credit_unit=3, level="LEVEL_100", semester="FIRST"),
            "CSC103": Course(department_id_fk=csc.department_id, code="CSC103", title="Discrete Structures",
                             credit_unit=2, level="LEVEL_100", semester="FIRST"),
            "CSC102": Course(department_id_fk=csc.department_id, code="CSC102", title="Programming in Python",
                             credit_unit=3, level="LEVEL_100", semester="SECOND"),
            "MTH101": Course(department_id_fk=mth.department_id, code="MTH101", title="Elementary Mathematics",
                             credit_unit=3, level="LEVEL_100", semester="FIRST"),
        }
        db.session.add_all(courses.values())

        students = {
            "CSC/2023/001": Student(matric_number="CSC/2023/001", department_id_fk=csc.department_id,
                                    first_name="Ada", last_name="Obi", current_level="LEVEL_100",
                                    admission_year=2023),
            "CSC/2023/002": Student(matric_number="CSC/2023/002", department_id_fk=csc.department_id,
                                    first_name="Bola", last_name="Ade", current_level="LEVEL_100",
                                    admission_year=2023),
            "MTH/2023/001": Student(matric_number="MTH/2023/001", department_id_fk=mth.department_id,
                                    first_name="Chidi", last_name="Eze", current_level="LEVEL_100",
                                    admission_year=2023),
        }
        db.session.add_all(students.values())

        pw = generate_password_hash(PASSWORD)
        db.session.add_all([
            User(email="hod.csc@uni.edu", password_hash=pw, first_name="Grace", last_name="Hopper",
                 role="HOD", department_id_fk=csc.department_id),
            User(email="hod.mth@uni.edu", password_hash=pw, first_name="Emmy", last_name="Noether",
                 role="HOD", department_id_fk=mth.department_id),
            User(email="dean.sci@uni.edu", password_hash=pw, first_name="Alan", last_name="Turing",
                 role="DEAN", faculty_id_fk=sci.faculty_id),
            User(email="dean.eng@uni.edu", password_hash=pw, first_name="Nikola", last_name="Tesla",
                 role="DEAN", faculty_id_fk=eng.faculty_id),
        ])
        db.session.commit()

        return {
            "faculties": {"SCI": sci.faculty_id, "ENG": eng.faculty_id},
            "departments": {"CSC": csc.department_id, "MTH": mth.department_id, "EEE": eee.department_id},
            "courses": {code: c.course_id for code, c in courses.items()},
            "students": {matric: s.student_id for matric, s in students.items()},
        }


@pytest.fixture()
def login(client):
    def _login(email, password=PASSWORD):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['data']['token']}"}
    return _login


@pytest.fixture()
def make_xlsx():
    def _make(headers, rows):
        wb = Workbook()
        ws = wb.active
        ws.append(headers)
        for row in rows:
            ws.append(row)
        bio = BytesIO()
        wb.save(bio)
        bio.seek(0)
        return bio
    return _make
