"""
Grading engine and GPA arithmetic.

Five-point scale:
    A: 70-100 -> 5
    B: 60-69  -> 4
    C: 50-59  -> 3
    D: 45-49  -> 2
    E: 40-44  -> 1
    F: below the department pass mark (or below 40) -> 0

Everything here is pure; persistence lives in ``records_app.gpa.services``.
"""
from decimal import Decimal, ROUND_HALF_UP

from .errors import ValidationError

LEVELS = ("ND1", "ND2", "HND1", "HND2", "LEVEL_100", "LEVEL_200", "LEVEL_300", "LEVEL_400", "LEVEL_500")
SEMESTERS = ("FIRST", "SECOND")

GRADE_BANDS = (
    (70, "A", 5),
    (60, "B", 4),
    (50, "C", 3),
    (45, "D", 2),
    (40, "E", 1),
)

DEGREE_CLASSES = (
    (Decimal("4.50"), "First Class Honours"),
    (Decimal("3.50"), "Second Class Upper Division"),
    (Decimal("2.40"), "Second Class Lower Division"),
    (Decimal("1.50"), "Third Class"),
    (Decimal("1.00"), "Pass"),
)

LEVEL_LABELS = {
    "ND1": "ND 1",
    "ND2": "ND 2",
    "HND1": "HND 1",
    "HND2": "HND 2",
    "LEVEL_100": "100 Level",
    "LEVEL_200": "200 Level",
    "LEVEL_300": "300 Level",
    "LEVEL_400": "400 Level",
    "LEVEL_500": "500 Level",
}


def round_half_up(value, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _ratio(points, units) -> float:
    if not units:
        return 0.0
    quotient = Decimal(str(points)) / Decimal(str(units))
    return float(quotient.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def grade_of(score, pass_mark):
    """
    Letter grade and grade point for a score.
    The department pass mark is checked before the numeric bands.
    """
    if score is None or score != score or score < 0 or score > 100:
        raise ValidationError("Score must be between 0 and 100", [f"score: {score!r} is out of range"])

    if score < pass_mark:
        return "F", 0

    for floor, letter, point in GRADE_BANDS:
        if score >= floor:
            return letter, point
    return "F", 0


def compute_result(score, credit_unit, pass_mark):
    letter, point = grade_of(score, pass_mark)
    return {
        "score": score,
        "grade": letter,
        "grade_point": point,
        "quality_points": point * credit_unit,
        "is_carry_over": score < pass_mark,
    }


def compute_semester_gpa(results):
    """
    Credit-weighted GPA over ``results``: dicts with score, credit_unit and pass_mark.
    Empty input gives zeros.
    """
    total_units = 0
    total_points = 0
    for row in results:
        calculated = compute_result(row["score"], row["credit_unit"], row["pass_mark"])
        total_units += row["credit_unit"]
        total_points += calculated["quality_points"]

    return {
        "gpa": _ratio(total_points, total_units),
        "total_units": total_units,
        "total_points": total_points,
    }


def compute_cgpa(semester_records):
    """
    Re-sum every semester record (dicts or objects with total_units/total_points).
    """
    cumulative_units = 0
    cumulative_points = 0
    for rec in semester_records:
        if isinstance(rec, dict):
            units, points = rec["total_units"], rec["total_points"]
        else:
            units, points = rec.total_units, rec.total_points
        cumulative_units += units or 0
        cumulative_points += points or 0

    return {
        "cgpa": _ratio(cumulative_points, cumulative_units),
        "cumulative_units": cumulative_units,
        "cumulative_points": cumulative_points,
    }


def class_of_degree(cgpa) -> str:
    value = Decimal(str(cgpa or 0))
    for floor, label in DEGREE_CLASSES:
        if value >= floor:
            return label
    return "Fail"


def format_level(level: str) -> str:
    return LEVEL_LABELS.get(level, level or "")


def format_semester(semester: str) -> str:
    return "First Semester" if semester == "FIRST" else "Second Semester"
