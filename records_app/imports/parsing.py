"""
Spreadsheet parsing for bulk uploads.

Uploads are read with pandas (first sheet only); header cells are matched
against the alias tables below after trimming and lower-casing, nothing more.
Each parsed row keeps its spreadsheet row number (the header is row 1).
"""
import os
from io import BytesIO
from typing import Dict, List

import pandas as pd

from ..errors import ValidationError

ALLOWED_EXTENSIONS = {".xlsx", ".xls", ".csv"}

STUDENT_HEADER_MAP: Dict[str, List[str]] = {
    "matric_number": [
        "matricnumber",
        "matric number",
        "matric_number",
        "matric no",
        "matric no.",
        "matric_no",
        "matricno",
        "matric",
        "matriculation number",
    ],
    "first_name": ["firstname", "first name", "first_name", "fname"],
    "last_name": ["lastname", "last name", "last_name", "lname", "surname"],
    "middle_name": ["middlename", "middle name", "middle_name", "mname"],
    "department_code": [
        "departmentcode",
        "department code",
        "department_code",
        "deptcode",
        "dept code",
        "department",
        "dept",
    ],
    "admission_year": ["admissionyear", "admission year", "admission_year", "year of admission"],
    "level": ["studentlevel", "student level", "student_level", "level", "currentlevel", "current level", "current_level"],
    "email": ["email", "email address", "email_address", "emailaddress"],
    "phone": ["phone", "phone number", "phone_number", "phonenumber", "mobile"],
}

SCORE_HEADER_MAP: Dict[str, List[str]] = {
    "matric_number": STUDENT_HEADER_MAP["matric_number"],
    "department_code": STUDENT_HEADER_MAP["department_code"],
    "course_code": ["coursecode", "course code", "course_code", "course"],
    "score": ["score", "mark", "marks", "total score"],
    "level": STUDENT_HEADER_MAP["level"],
    "semester": ["semester", "sem"],
    "academic_year": ["academicyear", "academic year", "academic_year", "session"],
}


def check_upload(filename: str, size: int, max_bytes: int):
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("Only Excel files (.xlsx, .xls) and CSV files are allowed",
                              [f"file: unsupported extension '{ext or filename}'"])
    if size > max_bytes:
        limit_mb = max(1, int(max_bytes / (1024 * 1024)))
        raise ValidationError(f"File too large. Maximum size is {limit_mb}MB")
    return ext


def normalize_headers(headers: List[str], header_map: Dict[str, List[str]]) -> Dict[int, str]:
    mapping: Dict[int, str] = {}
    taken = set()
    for idx, h in enumerate(headers):
        h_low = str(h or "").strip().lower()
        for key, synonyms in header_map.items():
            if key in taken:
                continue
            if h_low in synonyms:
                mapping[idx] = key
                taken.add(key)
                break
    return mapping


def cell_to_str(val) -> str:
    if val is None:
        return ""
    if isinstance(val, str):
        return val.strip()
    if isinstance(val, bool):
        return str(val)
    if isinstance(val, int):
        return str(val)
    if isinstance(val, float):
        if pd.isna(val):
            return ""
        # Excel stores whole numbers (years, IDs) as floats; drop .0 when applicable
        if val.is_integer():
            return str(int(val))
        return str(val)
    if pd.isna(val):
        return ""
    return str(val).strip()


def read_frame(data: bytes, ext: str) -> pd.DataFrame:
    buf = BytesIO(data)
    try:
        if ext == ".csv":
            return pd.read_csv(buf, dtype=str, keep_default_na=False, skip_blank_lines=False)
        engine = "xlrd" if ext == ".xls" else "openpyxl"
        return pd.read_excel(buf, sheet_name=0, engine=engine)
    except Exception as e:
        raise ValidationError(
            "Failed to parse the uploaded file. Please ensure it is a valid .xlsx, .xls or .csv file.",
            [str(e)],
        )


def parse_rows(data: bytes, ext: str, header_map: Dict[str, List[str]]) -> List[dict]:
    """
    Rows as dicts keyed by canonical field name (missing columns read as "").
    Fully blank rows are skipped but still advance the row numbering.
    """
    frame = read_frame(data, ext)
    mapping = normalize_headers(list(frame.columns), header_map)

    rows = []
    for position, values in enumerate(frame.itertuples(index=False, name=None)):
        row = {key: "" for key in header_map}
        for idx, key in mapping.items():
            row[key] = cell_to_str(values[idx])
        if not any(row.values()):
            continue
        row["row_number"] = position + 2
        rows.append(row)

    if not rows:
        raise ValidationError("File is empty or has no valid data rows")
    return rows
