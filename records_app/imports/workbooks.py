from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ..grading import LEVELS

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, row field, column width)
STUDENT_ERROR_COLUMNS = [
    ("Matric Number", "matric_number", 18),
    ("First Name", "first_name", 15),
    ("Last Name", "last_name", 15),
    ("Department Code", "department_code", 15),
    ("Admission Year", "admission_year", 15),
    ("Student Level", "level", 15),
    ("Email", "email", 25),
]

SCORE_ERROR_COLUMNS = [
    ("Matric Number", "matric_number", 18),
    ("Department Code", "department_code", 15),
    ("Course Code", "course_code", 12),
    ("Score", "score", 8),
    ("Level", "level", 12),
    ("Semester", "semester", 10),
    ("Academic Year", "academic_year", 12),
]

STUDENT_TEMPLATE = {
    "sheet": "Students",
    "columns": [
        ("MatricNumber", 18), ("FirstName", 15), ("LastName", 15), ("MiddleName", 15),
        ("DepartmentCode", 15), ("AdmissionYear", 15), ("StudentLevel", 15), ("Email", 25), ("Phone", 15),
    ],
    "samples": [
        ["CSC/2023/001", "John", "Doe", "Michael", "CSC", 2023, "LEVEL_100", "john.doe@university.edu.ng", "08012345678"],
        ["CSC/2023/002", "Jane", "Smith", "", "CSC", 2023, "LEVEL_100", "", ""],
    ],
    "instructions": [
        ("MatricNumber", "Student matriculation number (e.g., CSC/2023/001); the prefix must be the department code", "Yes"),
        ("FirstName", "Student first name", "Yes"),
        ("LastName", "Student last name/surname", "Yes"),
        ("MiddleName", "Student middle name", "No"),
        ("DepartmentCode", "Department code (e.g., CSC, MTH, PHY)", "Yes"),
        ("AdmissionYear", "Year of admission (e.g., 2023)", "Yes"),
        ("StudentLevel", "Level: " + ", ".join(LEVELS) + " (100, 100 LEVEL, ND 1 are also accepted)", "Yes"),
        ("Email", "Student email address", "No"),
        ("Phone", "Student phone number", "No"),
    ],
}

SCORE_TEMPLATE = {
    "sheet": "Scores",
    "columns": [
        ("MatricNumber", 18), ("CourseCode", 12), ("Score", 8),
        ("StudentLevel", 15), ("Semester", 10), ("AcademicYear", 12), ("DepartmentCode", 15),
    ],
    "samples": [
        ["CSC/2023/001", "CSC101", 75, "LEVEL_100", "FIRST", "2023/2024", "CSC"],
        ["CSC/2023/001", "CSC103", 68, "LEVEL_100", "FIRST", "2023/2024", "CSC"],
        ["CSC/2023/002", "CSC101", 82, "LEVEL_100", "FIRST", "2023/2024", "CSC"],
    ],
    "instructions": [
        ("MatricNumber", "Student matriculation number", "Yes"),
        ("CourseCode", "Course code in the student's department (e.g., CSC101)", "Yes"),
        ("Score", "Score (0-100)", "Yes"),
        ("StudentLevel", "Level: " + ", ".join(LEVELS) + "; must match the course", "Yes"),
        ("Semester", "Semester: FIRST or SECOND; must match the course", "Yes"),
        ("AcademicYear", "Academic year (e.g., 2023/2024)", "Yes"),
        ("DepartmentCode", "Department code; when given it must match the student's department", "No"),
    ],
}


def _bold_header(ws, headers, widths):
    ws.append(headers)
    for idx, width in enumerate(widths, start=1):
        ws.cell(row=1, column=idx).font = Font(bold=True)
        ws.column_dimensions[get_column_letter(idx)].width = width


def _to_bytes(wb) -> bytes:
    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio.read()


def build_rejection_report(rejected, columns) -> bytes:
    """
    One line per rejected input row: its row number, the values as uploaded,
    and every failed check joined with '; '.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Import Errors"
    headers = ["Row Number"] + [c[0] for c in columns] + ["Errors"]
    widths = [12] + [c[2] for c in columns] + [60]
    _bold_header(ws, headers, widths)
    for item in rejected:
        row = item["row"]
        ws.append([row.get("row_number")] + [row.get(c[1], "") for c in columns] + ["; ".join(item["errors"])])
    return _to_bytes(wb)


def build_template(layout) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = layout["sheet"]
    _bold_header(ws, [c[0] for c in layout["columns"]], [c[1] for c in layout["columns"]])
    for sample in layout["samples"]:
        ws.append(sample)

    guide = wb.create_sheet("Instructions")
    _bold_header(guide, ["Field", "Description", "Required"], [18, 80, 10])
    for line in layout["instructions"]:
        guide.append(list(line))
    return _to_bytes(wb)
