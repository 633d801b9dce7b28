YEAR = "2023/2024"


def _add(client, headers, seed, matric, course, score, semester="FIRST"):
    resp = client.post("/results/add", headers=headers, json={
        "student_id": seed["students"][matric],
        "course_id": seed["courses"][course],
        "score": score,
        "level": "LEVEL_100",
        "semester": semester,
        "academic_year": YEAR,
    })
    assert resp.status_code == 201, resp.get_json()


def test_department_report(client, seed, login):
    headers = login("hod.csc@uni.edu")
    _add(client, headers, seed, "CSC/2023/001", "CSC101", 70)
    _add(client, headers, seed, "CSC/2023/001", "CSC103", 40)
    _add(client, headers, seed, "CSC/2023/002", "CSC101", 30)

    resp = client.get(
        f"/reports/department/{seed['departments']['CSC']}",
        query_string={"level": "LEVEL_100", "semester": "FIRST", "academic_year": YEAR},
        headers=headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["level_label"] == "100 Level"
    assert data["semester_label"] == "First Semester"
    assert data["stats"]["total_students"] == 2
    assert data["stats"]["carry_over_count"] == 1
    assert data["stats"]["pass_rate"] == 50.0
    assert data["stats"]["highest_gpa"] == 3.4
    assert data["stats"]["lowest_gpa"] == 0.0
    assert [s["matric_number"] for s in data["students"]] == ["CSC/2023/001", "CSC/2023/002"]
    assert len(data["students"][0]["results"]) == 2


def test_transcript_groups_semesters(client, seed, login):
    headers = login("hod.csc@uni.edu")
    _add(client, headers, seed, "CSC/2023/001", "CSC102", 60, semester="SECOND")
    _add(client, headers, seed, "CSC/2023/001", "CSC101", 75)

    resp = client.get(f"/reports/transcript/{seed['students']['CSC/2023/001']}", headers=headers)
    data = resp.get_json()["data"]
    assert [s["semester"] for s in data["semesters"]] == ["FIRST", "SECOND"]
    assert data["semesters"][0]["gpa"] == 5.0
    assert data["semesters"][1]["gpa"] == 4.0
    assert data["cgpa"] == 4.5
    assert data["class_of_degree"] == "First Class Honours"
    assert data["student"]["faculty"] == "Science"


def test_faculty_report_for_dean(client, seed, login):
    _add(client, login("hod.csc@uni.edu"), seed, "CSC/2023/001", "CSC101", 35)

    headers = login("dean.sci@uni.edu")
    resp = client.get("/reports/faculty", headers=headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["faculty"]["code"] == "SCI"
    assert data["department_count"] == 2
    assert data["total_students"] == 3
    csc = next(d for d in data["departments"] if d["code"] == "CSC")
    assert csc["carry_over_count"] == 1


def test_faculty_report_is_dean_only(client, seed, login):
    resp = client.get("/reports/faculty", headers=login("hod.csc@uni.edu"))
    assert resp.status_code == 403


def test_dean_cannot_read_other_faculty(client, seed, login):
    resp = client.get(
        "/reports/faculty",
        query_string={"faculty_id": seed["faculties"]["SCI"]},
        headers=login("dean.eng@uni.edu"),
    )
    assert resp.status_code == 403
