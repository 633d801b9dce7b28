import pytest
from sqlalchemy import select, text

from records_app import db
from records_app.errors import NotFoundError
from records_app.gpa.services import GpaService
from records_app.models import Course, Result, SemesterGPA, Student, User
from records_app.results.services import ResultService, key_of, upsert_result

YEAR = "2023/2024"


def _score(student_id, course_code, score, year=YEAR):
    student = db.session.get(Student, student_id)
    course = db.session.execute(select(Course).filter_by(code=course_code)).scalars().first()
    result, _, _ = upsert_result(db.session, student, course, score, course.level, course.semester, year)
    db.session.flush()
    return result


def test_semester_gpa_row_follows_results(app, seed):
    sid = seed["students"]["CSC/2023/001"]
    with app.app_context():
        service = GpaService(db.session)
        first = _score(sid, "CSC101", 70)
        _score(sid, "CSC103", 40)
        record, cgpa = service.on_results_changed(key_of(first))
        db.session.commit()

        assert record.gpa == 3.40
        assert record.total_units == 5
        assert record.total_points == 17
        assert record.cumulative_gpa == 3.40
        assert cgpa == 3.40


def test_cgpa_spans_semesters(app, seed):
    sid = seed["students"]["CSC/2023/001"]
    with app.app_context():
        service = GpaService(db.session)
        service.on_results_changed(key_of(_score(sid, "CSC101", 75)))   # A x 3 = 15
        record, cgpa = service.on_results_changed(key_of(_score(sid, "CSC102", 55)))  # C x 3 = 9
        db.session.commit()

        assert record.semester == "SECOND"
        assert record.gpa == 3.0
        assert record.cumulative_units == 6
        assert cgpa == 4.0

        history = service.get_student_gpa_history(sid)
        assert [g["semester"] for g in history["semester_gpas"]] == ["FIRST", "SECOND"]
        assert history["cgpa"] == 4.0
        assert history["class_of_degree"] == "Second Class Upper Division"


def test_removing_last_result_drops_semester_row(app, seed):
    sid = seed["students"]["CSC/2023/002"]
    with app.app_context():
        service = GpaService(db.session)
        result = _score(sid, "CSC101", 65)
        key = key_of(result)
        service.on_results_changed(key)
        db.session.commit()

        db.session.delete(result)
        db.session.flush()
        record, cgpa = service.on_results_changed(key)
        db.session.commit()

        assert record is None
        assert cgpa == 0.0
        assert db.session.execute(select(SemesterGPA).filter_by(student_id_fk=sid)).first() is None


def test_department_pass_mark_feeds_gpa(app, seed):
    sid = seed["students"]["MTH/2023/001"]
    with app.app_context():
        service = GpaService(db.session)
        record, _ = service.on_results_changed(key_of(_score(sid, "MTH101", 48)))
        db.session.commit()
        assert record.gpa == 0.0
        result = db.session.execute(select(Result).filter_by(student_id_fk=sid)).scalars().one()
        assert result.grade == "F"
        assert result.is_carry_over is True


def test_get_semester_gpa_without_results(app, seed):
    sid = seed["students"]["CSC/2023/001"]
    with app.app_context():
        with pytest.raises(NotFoundError):
            GpaService(db.session).get_semester_gpa(sid, "LEVEL_100", "FIRST", YEAR)


def test_department_run_and_stats(app, seed):
    csc = seed["departments"]["CSC"]
    with app.app_context():
        _score(seed["students"]["CSC/2023/001"], "CSC101", 80)
        _score(seed["students"]["CSC/2023/002"], "CSC101", 30)
        db.session.commit()

        service = GpaService(db.session)
        outcome = service.calculate_department_gpas(csc, "LEVEL_100", "FIRST", YEAR)
        assert outcome["calculated"] == 2
        assert outcome["errors"] == 0

        stats = service.get_department_gpa_stats(csc, academic_year=YEAR)
        assert stats["count"] == 2
        assert stats["highest_gpa"]["value"] == 5.0
        assert stats["highest_gpa"]["student"]["matric_number"] == "CSC/2023/001"
        assert stats["lowest_gpa"]["value"] == 0.0
        assert stats["average_gpa"] == 2.5
        assert stats["distribution"] == {"First Class Honours": 1, "Fail": 1}


def test_recalculate_unknown_student(app, seed):
    with app.app_context():
        with pytest.raises(NotFoundError):
            GpaService(db.session).recalculate(9999, "LEVEL_100", "FIRST", YEAR)


def test_department_run_keeps_other_students_when_one_fails(app, seed):
    csc = seed["departments"]["CSC"]
    blocked = seed["students"]["CSC/2023/001"]
    other = seed["students"]["CSC/2023/002"]
    with app.app_context():
        _score(blocked, "CSC101", 80)
        _score(other, "CSC101", 60)
        db.session.commit()
        db.session.execute(text(
            "CREATE TRIGGER block_gpa BEFORE INSERT ON semester_gpas "
            f"WHEN NEW.student_id_fk = {int(blocked)} BEGIN SELECT RAISE(ABORT, 'blocked'); END"
        ))
        db.session.commit()

        outcome = GpaService(db.session).calculate_department_gpas(csc, "LEVEL_100", "FIRST", YEAR)
        assert outcome["calculated"] == 1
        assert outcome["errors"] == 1
        assert outcome["error_details"][0]["student_id"] == blocked

        db.session.expire_all()
        saved = db.session.execute(select(SemesterGPA)).scalars().all()
        assert [r.student_id_fk for r in saved] == [other]
        assert saved[0].gpa == 4.0


def test_moving_a_result_refreshes_the_semester_it_left(app, seed):
    sid = seed["students"]["CSC/2023/001"]
    with app.app_context():
        gpa_service = GpaService(db.session)
        gpa_service.on_results_changed(key_of(_score(sid, "CSC101", 70)))
        db.session.commit()

        course = db.session.get(Course, seed["courses"]["CSC101"])
        course.level = "LEVEL_200"
        db.session.commit()

        hod = db.session.execute(select(User).filter_by(email="hod.csc@uni.edu")).scalars().one()
        outcome = ResultService(db.session, gpa_service).add_single_score(hod, {
            "student_id": sid,
            "course_id": course.course_id,
            "score": 50,
            "level": "LEVEL_200",
            "semester": "FIRST",
            "academic_year": YEAR,
        })
        assert outcome["gpa"] == 3.0
        assert outcome["cgpa"] == 3.0

        rows = db.session.execute(select(SemesterGPA).filter_by(student_id_fk=sid)).scalars().all()
        assert [(r.level, r.gpa) for r in rows] == [("LEVEL_200", 3.0)]
        assert db.session.execute(select(Result).filter_by(student_id_fk=sid)).scalars().one().level == "LEVEL_200"
