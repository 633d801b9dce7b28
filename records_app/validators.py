import re
from datetime import datetime

from .errors import ValidationError
from .grading import LEVELS, SEMESTERS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ACADEMIC_YEAR_RE = re.compile(r"^(\d{4})/(\d{4})$")
MATRIC_RE = re.compile(r"^[A-Z]{2,5}/\d{4}/\d{3,4}$")
MIN_YEAR = 1990

# Accepted spellings per level, compared after upper-casing and turning
# spaces/hyphens into underscores.
LEVEL_ALIASES = {
    "ND1": ["ND1", "ND_1"],
    "ND2": ["ND2", "ND_2"],
    "HND1": ["HND1", "HND_1"],
    "HND2": ["HND2", "HND_2"],
    "LEVEL_100": ["100", "LEVEL_100", "LEVEL100", "100_LEVEL", "100L"],
    "LEVEL_200": ["200", "LEVEL_200", "LEVEL200", "200_LEVEL", "200L"],
    "LEVEL_300": ["300", "LEVEL_300", "LEVEL300", "300_LEVEL", "300L"],
    "LEVEL_400": ["400", "LEVEL_400", "LEVEL400", "400_LEVEL", "400L"],
    "LEVEL_500": ["500", "LEVEL_500", "LEVEL500", "500_LEVEL", "500L"],
}

SEMESTER_ALIASES = {
    "FIRST": ["FIRST", "1", "1ST", "FIRST_SEMESTER"],
    "SECOND": ["SECOND", "2", "2ND", "SECOND_SEMESTER"],
}

_LEVEL_LOOKUP = {alias: level for level, aliases in LEVEL_ALIASES.items() for alias in aliases}
_SEMESTER_LOOKUP = {alias: sem for sem, aliases in SEMESTER_ALIASES.items() for alias in aliases}


def _token(value) -> str:
    s = str(value or "").strip().upper()
    return re.sub(r"[\s\-]+", "_", s)


def parse_level(value):
    """Canonical level for any accepted spelling, else None."""
    return _LEVEL_LOOKUP.get(_token(value))


def parse_semester(value):
    return _SEMESTER_LOOKUP.get(_token(value))


def current_year() -> int:
    return datetime.now().year


def is_valid_academic_year(value) -> bool:
    m = ACADEMIC_YEAR_RE.match(str(value or "").strip())
    if not m:
        return False
    start, end = int(m.group(1)), int(m.group(2))
    return end == start + 1 and MIN_YEAR <= start <= current_year()


def is_valid_admission_year(value) -> bool:
    return isinstance(value, int) and MIN_YEAR <= value <= current_year() + 1


def matric_matches_department(matric_number: str, department_code: str) -> bool:
    # CSC/2023/001 -> CSC
    parts = (matric_number or "").split("/")
    if len(parts) < 2:
        return False
    return parts[0].strip().upper() == (department_code or "").strip().upper()


def is_valid_email(value) -> bool:
    return bool(EMAIL_RE.match(value or ""))


# ==========================================
# JSON payload helpers
# ==========================================

def require_fields(payload: dict, *fields):
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields", [f"{f}: is required" for f in missing])


def as_int(value, field: str, minimum=None, maximum=None):
    try:
        if isinstance(value, bool):
            raise ValueError
        number = int(value)
        if isinstance(value, float) and not value.is_integer():
            raise ValueError
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", [f"{field}: must be an integer"])
    if minimum is not None and number < minimum:
        raise ValidationError(f"Invalid {field}", [f"{field}: must be at least {minimum}"])
    if maximum is not None and number > maximum:
        raise ValidationError(f"Invalid {field}", [f"{field}: must be at most {maximum}"])
    return number


def as_score(value, field: str = "score") -> float:
    try:
        if isinstance(value, bool):
            raise ValueError
        score = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid score", [f"{field}: must be a number"])
    if score != score or score < 0 or score > 100:
        raise ValidationError("Invalid score", [f"{field}: must be between 0 and 100"])
    return score


def as_level(value, field: str = "level") -> str:
    level = value if value in LEVELS else None
    if level is None:
        raise ValidationError("Invalid level", [f"{field}: must be one of {', '.join(LEVELS)}"])
    return level


def as_semester(value, field: str = "semester") -> str:
    if value not in SEMESTERS:
        raise ValidationError("Invalid semester", [f"{field}: must be one of {', '.join(SEMESTERS)}"])
    return value


def as_academic_year(value, field: str = "academic_year") -> str:
    s = str(value or "").strip()
    if not is_valid_academic_year(s):
        raise ValidationError(
            "Invalid academic year",
            [f"{field}: expected YYYY/YYYY with consecutive years from {MIN_YEAR} (e.g. 2023/2024)"],
        )
    return s
