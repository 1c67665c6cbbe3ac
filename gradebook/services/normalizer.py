"""Row normalization for roster/curriculum workbook sheets.

Turns the raw 2-D cell arrays of a sheet into typed import rows. Three sheet
layouts are supported:

* instructors: one instructor per row (username, password, display name)
* students: repeated (code, name, filler) column groups, several per row
* subjects: a header row located by a marker token, an academic year read
  from a fixed header cell, and carry-forward of blank cells in six columns

Problems are reported per row as ``RowReject`` entries, never raised.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from gradebook.models.subject import SubjectCategory, SubjectForm
from gradebook.schemas.importer import InstructorRow, RowReject, StudentRow, SubjectRow

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"(\d{4})")
NAME_SEPARATORS = re.compile(r"[、,，;；/／\n]+")

# Columns that inherit the last non-blank value seen above them
CARRY_FORWARD_FIELDS = ("group_label", "category", "form", "credits", "registrar_name", "access_pin")

FIELD_LABELS = {
    "group_label": "group",
    "category": "category",
    "form": "form",
    "credits": "credits",
    "registrar_name": "registrar",
    "access_pin": "access PIN",
}


@dataclass(frozen=True)
class SubjectColumns:
    """Zero-based column positions of the subjects sheet."""

    group_label: int = 1
    name: int = 4
    category: int = 5
    form: int = 6
    credits: int = 7
    registrar_name: int = 8
    co_instructor_names: int | None = 9
    access_pin: int = 10


@dataclass(frozen=True)
class ColumnMap:
    """Locale-specific workbook layout."""

    instructor_sheet: str
    student_sheet: str
    subject_sheet: str
    subject_header_token: str
    specialized_marker: str
    other_marker: str
    lecture_marker: str
    exercise_marker: str
    instructor_header_labels: tuple[str, ...] = ()
    student_header_labels: tuple[str, ...] = ()
    instructor_columns: tuple[int, int, int] = (0, 1, 2)
    student_group_width: int = 3
    subject_header_scan_rows: int = 5
    subject_year_cell: tuple[int, int] = (0, 0)
    subject_columns: SubjectColumns = field(default_factory=SubjectColumns)


COLUMN_MAPS: dict[str, ColumnMap] = {
    "ja": ColumnMap(
        instructor_sheet="教員",
        student_sheet="学生",
        subject_sheet="科目",
        subject_header_token="科目名",
        specialized_marker="専",
        other_marker="他",
        lecture_marker="講",
        exercise_marker="演",
        instructor_header_labels=("ユーザー名", "パスワード", "氏名"),
        student_header_labels=("番号", "学籍番号", "氏名"),
    ),
    "en": ColumnMap(
        instructor_sheet="Instructors",
        student_sheet="Students",
        subject_sheet="Subjects",
        subject_header_token="subject name",
        specialized_marker="special",
        other_marker="other",
        lecture_marker="lecture",
        exercise_marker="exercise",
        instructor_header_labels=("username", "password", "name", "display name"),
        student_header_labels=("code", "student code", "name"),
    ),
}


def get_column_map(locale: str) -> ColumnMap:
    """Return the column map for a locale, falling back to Japanese."""
    return COLUMN_MAPS.get(locale, COLUMN_MAPS["ja"])


@dataclass
class NormalizedSheet:
    """Typed candidates of one sheet plus its structural rejects."""

    candidates: list[Any] = field(default_factory=list)
    rejects: list[RowReject] = field(default_factory=list)


@dataclass(frozen=True)
class CarryForward:
    """Last non-blank value per column, threaded through the row loop."""

    values: Mapping[str, str] = field(default_factory=dict)

    def fold(self, row: Mapping[str, str]) -> tuple[dict[str, str], "CarryForward"]:
        """Fill blanks in ``row`` and return the filled row and the next state."""
        filled = {key: value or self.values.get(key, "") for key, value in row.items()}
        updated = {**self.values, **{key: value for key, value in row.items() if value}}
        return filled, CarryForward(updated)


def cell_text(value: Any) -> str:
    """Convert a raw cell value to stripped text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _cell(row: Sequence[Any], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return cell_text(row[index])


def is_header_row(row: Sequence[Any], labels: Sequence[str]) -> bool:
    """Return True when any cell of ``row`` is exactly one of the header labels."""
    wanted = {label.lower() for label in labels}
    return any(cell_text(value).lower() in wanted for value in row)


def _validation_reason(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def normalize_instructor_rows(rows: Sequence[Sequence[Any]], column_map: ColumnMap) -> NormalizedSheet:
    """Normalize the instructors sheet; incomplete rows are dropped silently."""
    sheet = NormalizedSheet()
    username_col, password_col, name_col = column_map.instructor_columns

    for row_number, row in enumerate(rows, start=1):
        if row_number == 1 and is_header_row(row, column_map.instructor_header_labels):
            continue
        username = _cell(row, username_col)
        password = _cell(row, password_col)
        display_name = _cell(row, name_col)
        if not (username and password and display_name):
            continue
        try:
            sheet.candidates.append(
                InstructorRow(
                    username=username,
                    password=password,
                    display_name=display_name,
                    row_number=row_number,
                )
            )
        except PydanticValidationError as e:
            sheet.rejects.append(RowReject(row_number=row_number, key=username, reason=_validation_reason(e)))

    logger.debug(f"[NORMALIZE] Instructors: {len(sheet.candidates)} candidates, {len(sheet.rejects)} rejects")
    return sheet


def normalize_student_rows(
    rows: Sequence[Sequence[Any]],
    column_map: ColumnMap,
    year: int | None = None,
    group_label: str | None = None,
) -> NormalizedSheet:
    """Normalize the students sheet, reading several (code, name, filler) groups per row."""
    sheet = NormalizedSheet()
    width = column_map.student_group_width

    for row_number, row in enumerate(rows, start=1):
        if row_number == 1 and is_header_row(row, column_map.student_header_labels):
            continue
        for offset in range(0, len(row), width):
            code = _cell(row, offset)
            name = _cell(row, offset + 1)
            if not (code and name):
                continue
            try:
                sheet.candidates.append(
                    StudentRow(
                        student_code=code,
                        display_name=name,
                        year=year,
                        group_label=group_label,
                        row_number=row_number,
                    )
                )
            except PydanticValidationError as e:
                sheet.rejects.append(RowReject(row_number=row_number, key=code, reason=_validation_reason(e)))

    logger.debug(f"[NORMALIZE] Students: {len(sheet.candidates)} candidates, {len(sheet.rejects)} rejects")
    return sheet


def find_subject_header(rows: Sequence[Sequence[Any]], column_map: ColumnMap) -> int | None:
    """Return the zero-based index of the subjects header row, if any.

    The token must fill a whole cell; a title cell that only mentions it
    does not count.
    """
    for index, row in enumerate(rows[: column_map.subject_header_scan_rows]):
        if is_header_row(row, (column_map.subject_header_token,)):
            return index
    return None


def read_academic_year(rows: Sequence[Sequence[Any]], column_map: ColumnMap, today: date | None = None) -> int:
    """Read the academic year from the header cell, defaulting to the current year."""
    row_index, col_index = column_map.subject_year_cell
    text = _cell(rows[row_index], col_index) if row_index < len(rows) else ""
    match = YEAR_PATTERN.search(text)
    if match:
        return int(match.group(1))
    return (today or date.today()).year


def map_category(text: str, column_map: ColumnMap) -> SubjectCategory | None:
    lowered = text.lower()
    if column_map.specialized_marker.lower() in lowered:
        return SubjectCategory.SPECIALIZED
    if column_map.other_marker.lower() in lowered:
        return SubjectCategory.OTHER
    return None


def map_form(text: str, column_map: ColumnMap) -> SubjectForm | None:
    lowered = text.lower()
    if column_map.lecture_marker.lower() in lowered:
        return SubjectForm.LECTURE
    if column_map.exercise_marker.lower() in lowered:
        return SubjectForm.EXERCISE
    return None


def _parse_credits(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def _normalize_pin(text: str) -> str:
    # Numeric cells lose leading zeros
    if text.isdigit() and len(text) < 4:
        return text.zfill(4)
    return text


def split_names(text: str) -> list[str]:
    """Split a multi-name cell into individual names."""
    return [name.strip() for name in NAME_SEPARATORS.split(text) if name.strip()]


def normalize_subject_rows(
    rows: Sequence[Sequence[Any]],
    column_map: ColumnMap,
    today: date | None = None,
) -> NormalizedSheet:
    """Normalize the subjects sheet.

    Blank cells in the carry-forward columns inherit the most recent non-blank
    value above them. Rows without a subject name are skipped; rows still
    missing a required value, or whose category/form/credits cannot be mapped,
    are rejected with a reason.
    """
    sheet = NormalizedSheet()
    if not rows:
        return sheet

    header_index = find_subject_header(rows, column_map)
    if header_index is None:
        logger.warning(
            f"[NORMALIZE] Subjects header token '{column_map.subject_header_token}' not found "
            f"in the first {column_map.subject_header_scan_rows} rows; assuming row 1 is the header"
        )
        header_index = 0
    year = read_academic_year(rows, column_map, today)
    logger.debug(f"[NORMALIZE] Subjects header at row {header_index + 1}, academic year {year}")

    columns = column_map.subject_columns
    carry = CarryForward()

    for row_number, row in enumerate(rows[header_index + 1 :], start=header_index + 2):
        raw = {name: _cell(row, getattr(columns, name)) for name in CARRY_FORWARD_FIELDS}
        values, carry = carry.fold(raw)

        name = _cell(row, columns.name)
        if not name:
            continue

        reasons = []
        missing = [FIELD_LABELS[key] for key in CARRY_FORWARD_FIELDS if not values[key]]
        if missing:
            reasons.append(f"Missing required value(s): {', '.join(missing)}")

        category = map_category(values["category"], column_map) if values["category"] else None
        if values["category"] and category is None:
            reasons.append(f"Unrecognized category '{values['category']}'")

        form = map_form(values["form"], column_map) if values["form"] else None
        if values["form"] and form is None:
            reasons.append(f"Unrecognized form '{values['form']}'")

        credits = _parse_credits(values["credits"]) if values["credits"] else None
        if values["credits"] and credits is None:
            reasons.append(f"Credits must be an integer: '{values['credits']}'")

        if reasons:
            sheet.rejects.append(RowReject(row_number=row_number, key=name, reason="; ".join(reasons)))
            continue

        try:
            sheet.candidates.append(
                SubjectRow(
                    year=year,
                    name=name,
                    category=category,
                    form=form,
                    credits=credits,
                    group_year=year,
                    group_label=values["group_label"],
                    registrar_name=values["registrar_name"],
                    access_pin=_normalize_pin(values["access_pin"]),
                    co_instructor_names=split_names(_cell(row, columns.co_instructor_names)),
                    row_number=row_number,
                )
            )
        except PydanticValidationError as e:
            sheet.rejects.append(RowReject(row_number=row_number, key=name, reason=_validation_reason(e)))

    logger.debug(f"[NORMALIZE] Subjects: {len(sheet.candidates)} candidates, {len(sheet.rejects)} rejects")
    return sheet
