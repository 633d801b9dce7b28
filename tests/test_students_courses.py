from sqlalchemy import select

from records_app import db
from records_app.models import Result, SemesterGPA, Student


def test_hod_creates_student_in_own_department(client, seed, login):
    headers = login("hod.csc@uni.edu")
    resp = client.post("/students", headers=headers, json={
        "matric_number": "csc/2024/005",
        "first_name": "Zainab",
        "last_name": "Musa",
        "current_level": "LEVEL_100",
        "admission_year": 2024,
    })
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["matric_number"] == "CSC/2024/005"
    assert data["department"]["code"] == "CSC"


def test_duplicate_matric_rejected(client, seed, login):
    headers = login("hod.csc@uni.edu")
    resp = client.post("/students", headers=headers, json={
        "matric_number": "CSC/2023/001",
        "first_name": "Ada",
        "last_name": "Obi",
        "current_level": "LEVEL_100",
        "admission_year": 2023,
    })
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "conflict"


def test_student_list_is_scoped(client, seed, login):
    resp = client.get("/students", headers=login("hod.csc@uni.edu"))
    body = resp.get_json()
    assert body["meta"]["total"] == 2
    assert {s["matric_number"] for s in body["data"]} == {"CSC/2023/001", "CSC/2023/002"}

    resp = client.get("/students", headers=login("dean.sci@uni.edu"), query_string={"search": "chidi"})
    assert [s["matric_number"] for s in resp.get_json()["data"]] == ["MTH/2023/001"]

    resp = client.get("/students", headers=login("dean.eng@uni.edu"))
    assert resp.get_json()["meta"]["total"] == 0


def test_deleting_student_removes_results_and_gpas(app, client, seed, login):
    headers = login("hod.csc@uni.edu")
    sid = seed["students"]["CSC/2023/001"]
    client.post("/results/add", headers=headers, json={
        "student_id": sid, "course_id": seed["courses"]["CSC101"], "score": 66,
        "level": "LEVEL_100", "semester": "FIRST", "academic_year": "2023/2024",
    })
    assert client.delete(f"/students/{sid}", headers=headers).status_code == 200

    with app.app_context():
        assert db.session.get(Student, sid) is None
        assert db.session.execute(select(Result)).first() is None
        assert db.session.execute(select(SemesterGPA)).first() is None


def test_students_by_department_level(client, seed, login):
    resp = client.get(
        f"/students/department/{seed['departments']['CSC']}/level/LEVEL_100",
        headers=login("hod.csc@uni.edu"),
    )
    assert resp.get_json()["meta"]["total"] == 2


def test_course_crud(client, seed, login):
    headers = login("hod.csc@uni.edu")
    resp = client.post("/courses", headers=headers, json={
        "code": "csc201", "title": "Data Structures", "credit_unit": 3,
        "level": "LEVEL_200", "semester": "FIRST",
    })
    assert resp.status_code == 201
    course_id = resp.get_json()["data"]["course_id"]
    assert resp.get_json()["data"]["code"] == "CSC201"

    dup = client.post("/courses", headers=headers, json={
        "code": "CSC201", "title": "Data Structures", "credit_unit": 3,
        "level": "LEVEL_200", "semester": "FIRST",
    })
    assert dup.status_code == 400

    bad = client.post("/courses", headers=headers, json={
        "code": "CSC202", "title": "Algorithms", "credit_unit": 9,
        "level": "LEVEL_200", "semester": "FIRST",
    })
    assert bad.status_code == 400

    assert client.delete(f"/courses/{course_id}", headers=headers).status_code == 200


def test_course_with_results_cannot_be_deleted(client, seed, login):
    headers = login("hod.csc@uni.edu")
    client.post("/results/add", headers=headers, json={
        "student_id": seed["students"]["CSC/2023/001"], "course_id": seed["courses"]["CSC101"], "score": 66,
        "level": "LEVEL_100", "semester": "FIRST", "academic_year": "2023/2024",
    })
    resp = client.delete(f"/courses/{seed['courses']['CSC101']}", headers=headers)
    assert resp.status_code == 400


def test_credit_unit_change_regrades(app, client, seed, login):
    headers = login("hod.csc@uni.edu")
    sid = seed["students"]["CSC/2023/001"]
    for course, score in (("CSC101", 70), ("CSC103", 40)):
        client.post("/results/add", headers=headers, json={
            "student_id": sid, "course_id": seed["courses"][course], "score": score,
            "level": "LEVEL_100", "semester": "FIRST", "academic_year": "2023/2024",
        })

    resp = client.put(f"/courses/{seed['courses']['CSC103']}", headers=headers, json={"credit_unit": 3})
    assert resp.status_code == 200

    with app.app_context():
        gpa = db.session.execute(select(SemesterGPA).filter_by(student_id_fk=sid)).scalars().one()
        # (5 x 3 + 1 x 3) / 6
        assert gpa.gpa == 3.0
        assert gpa.total_units == 6


def test_course_level_locked_once_results_exist(client, seed, login):
    headers = login("hod.csc@uni.edu")
    course_id = seed["courses"]["CSC101"]
    client.post("/results/add", headers=headers, json={
        "student_id": seed["students"]["CSC/2023/001"], "course_id": course_id, "score": 66,
        "level": "LEVEL_100", "semester": "FIRST", "academic_year": "2023/2024",
    })

    resp = client.put(f"/courses/{course_id}", headers=headers, json={"level": "LEVEL_200"})
    assert resp.status_code == 400
    resp = client.put(f"/courses/{course_id}", headers=headers, json={"semester": "SECOND"})
    assert resp.status_code == 400

    resp = client.put(f"/courses/{seed['courses']['CSC103']}", headers=headers, json={"level": "LEVEL_200"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["level"] == "LEVEL_200"


def test_departments_and_faculties(client, seed, login):
    public = client.get("/departments/public")
    assert public.status_code == 200
    assert {d["code"] for d in public.get_json()["data"]} == {"CSC", "MTH", "EEE"}

    dean = login("dean.sci@uni.edu")
    listed = client.get("/departments", headers=dean).get_json()["data"]
    assert {d["code"] for d in listed} == {"CSC", "MTH"}

    mine = client.get("/departments/my-department", headers=login("hod.mth@uni.edu")).get_json()["data"]
    assert mine["code"] == "MTH"
    assert mine["pass_mark"] == 50
    assert mine["counts"] == {"students": 1, "courses": 1}

    faculty = client.get("/faculties/my-faculty", headers=dean).get_json()["data"]
    assert [d["code"] for d in faculty["departments"]] == ["CSC", "MTH"]

    other = client.get(f"/departments/{seed['departments']['EEE']}", headers=dean)
    assert other.status_code == 403
