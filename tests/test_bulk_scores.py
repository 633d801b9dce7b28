from io import BytesIO

from openpyxl import load_workbook
from sqlalchemy import func, select

from records_app import db
from records_app.models import Result, SemesterGPA

HEADERS = ["MatricNumber", "CourseCode", "Score", "StudentLevel", "Semester", "AcademicYear"]
YEAR = "2023/2024"


def _upload(client, headers, bio):
    return client.post(
        "/results/bulk-upload",
        data={"file": (bio, "scores.xlsx")},
        headers=headers,
        content_type="multipart/form-data",
    )


def _result_count(app):
    with app.app_context():
        return db.session.execute(select(func.count(Result.result_id))).scalar()


def test_new_then_updated_scores(app, client, seed, login, make_xlsx):
    headers = login("hod.csc@uni.edu")
    rows = [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/001", "CSC103", 40, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/002", "CSC101", 55, "LEVEL_100", "FIRST", YEAR],
    ]
    resp = _upload(client, headers, make_xlsx(HEADERS, rows))
    data = resp.get_json()["data"]
    assert data["success_count"] == 3
    assert data["updated_count"] == 0
    assert data["affected_students"] == 2

    with app.app_context():
        gpa = db.session.execute(
            select(SemesterGPA).filter_by(student_id_fk=seed["students"]["CSC/2023/001"])
        ).scalars().one()
        assert gpa.gpa == 3.40

    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC103", 65, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/002", "CSC103", 50, "LEVEL_100", "FIRST", YEAR],
    ]))
    data = resp.get_json()["data"]
    assert data["success_count"] == 1
    assert data["updated_count"] == 1
    assert _result_count(app) == 4

    with app.app_context():
        updated = db.session.execute(
            select(Result).filter_by(student_id_fk=seed["students"]["CSC/2023/001"],
                                     course_id_fk=seed["courses"]["CSC103"])
        ).scalars().one()
        assert updated.score == 65
        assert updated.grade == "B"
        gpa = db.session.execute(
            select(SemesterGPA).filter_by(student_id_fk=seed["students"]["CSC/2023/001"])
        ).scalars().one()
        # (5 x 3 + 4 x 2) / 5
        assert gpa.gpa == 4.60


def test_one_bad_row_persists_nothing(app, client, seed, login, make_xlsx):
    headers = login("hod.csc@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/002", "CSC999", 55, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/002", "CSC101", 120, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/001", "CSC103", 60, "LEVEL_100", "FIRST", YEAR],
    ]))
    assert resp.status_code == 200
    assert resp.headers["X-Import-Success"] == "false"
    assert resp.headers["X-Total-Rows"] == "4"
    assert resp.headers["X-Error-Count"] == "2"
    assert _result_count(app) == 0

    ws = load_workbook(BytesIO(resp.data)).active
    rejected = list(ws.iter_rows(min_row=2, values_only=True))
    assert [r[0] for r in rejected] == [3, 4]
    assert "not found" in rejected[0][-1]
    assert "between 0 and 100" in rejected[1][-1]


def test_duplicate_triple_in_file_rejected(app, client, seed, login, make_xlsx):
    headers = login("hod.csc@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR],
        ["CSC/2023/001", "csc101", 71, "100", "1", YEAR],
    ]))
    assert resp.headers["X-Error-Count"] == "1"
    assert _result_count(app) == 0


def test_course_resolved_from_student_department(app, client, seed, login, make_xlsx):
    headers = login("dean.sci@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["MTH/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR],
    ]))
    assert resp.headers["X-Import-Success"] == "false"

    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["MTH/2023/001", "MTH101", 48, "LEVEL_100", "FIRST", YEAR],
    ]))
    assert resp.get_json()["data"]["success_count"] == 1
    with app.app_context():
        result = db.session.execute(select(Result)).scalars().one()
        # MTH pass mark is 50
        assert result.grade == "F"
        assert result.is_carry_over is True


def test_declared_department_code_cross_checked(client, seed, login, make_xlsx):
    headers = login("dean.sci@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS + ["DepartmentCode"], [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR, "MTH"],
    ]))
    assert resp.headers["X-Import-Success"] == "false"
    ws = load_workbook(BytesIO(resp.data)).active
    assert "does not match" in ws.cell(row=2, column=ws.max_column).value


def test_level_must_match_course(client, seed, login, make_xlsx):
    headers = login("hod.csc@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_200", "FIRST", YEAR],
    ]))
    assert resp.headers["X-Import-Success"] == "false"


def test_hod_scoped_to_own_department(client, seed, login, make_xlsx):
    headers = login("hod.mth@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", YEAR],
    ]))
    assert resp.headers["X-Import-Success"] == "false"


def test_bad_academic_year(client, seed, login, make_xlsx):
    headers = login("hod.csc@uni.edu")
    resp = _upload(client, headers, make_xlsx(HEADERS, [
        ["CSC/2023/001", "CSC101", 70, "LEVEL_100", "FIRST", "2023/2025"],
    ]))
    ws = load_workbook(BytesIO(resp.data)).active
    assert "Invalid academic year" in ws.cell(row=2, column=ws.max_column).value


def test_score_template(client, seed, login):
    headers = login("hod.csc@uni.edu")
    resp = client.get("/bulk/scores/template", headers=headers)
    assert resp.status_code == 200
    wb = load_workbook(BytesIO(resp.data))
    assert wb.sheetnames == ["Scores", "Instructions"]
