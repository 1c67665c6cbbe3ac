"""Bulk import schemas."""

import enum

from pydantic import Field, model_validator

from gradebook.models.subject import SubjectCategory, SubjectForm
from gradebook.schemas.common import BaseSchema


class EntityKind(str, enum.Enum):
    """Entity kinds handled by the bulk importer."""

    INSTRUCTOR = "instructor"
    STUDENT = "student"
    SUBJECT = "subject"


class InstructorRow(BaseSchema):
    """One instructor (plus login credential) to register."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=255)
    row_number: int | None = None


class StudentRow(BaseSchema):
    """One student to register."""

    student_code: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=255)
    year: int | None = None
    group_label: str | None = Field(None, max_length=50)
    row_number: int | None = None


class SubjectRow(BaseSchema):
    """One subject to register."""

    year: int
    name: str = Field(..., min_length=1, max_length=255)
    category: SubjectCategory
    form: SubjectForm
    credits: int
    group_year: int | None = None
    group_label: str = Field(..., min_length=1, max_length=50)
    registrar_name: str = Field(..., min_length=1, max_length=255)
    access_pin: str = Field(..., min_length=1, max_length=4)
    co_instructor_names: list[str] = []
    row_number: int | None = None

    @model_validator(mode="after")
    def default_group_year(self) -> "SubjectRow":
        if self.group_year is None:
            self.group_year = self.year
        return self


class RowReject(BaseSchema):
    """A row that failed normalization and never reached the writer."""

    row_number: int
    key: str
    reason: str


class RowOutcome(BaseSchema):
    """Per-row import result."""

    key: str
    success: bool
    message: str
    row_number: int | None = None


class ImportResult(BaseSchema):
    """Aggregate result for one entity kind."""

    kind: EntityKind
    success: bool = True
    succeeded: int = 0
    failed: int = 0
    results: list[RowOutcome] = []
    message: str = ""


class WorkbookImportResult(BaseSchema):
    """Aggregate result of a workbook import across all sheets."""

    success: bool = True
    instructors: ImportResult | None = None
    students: ImportResult | None = None
    subjects: ImportResult | None = None
    message: str = ""


class InstructorImportRequest(BaseSchema):
    """JSON payload for instructor import."""

    rows: list[InstructorRow]


class StudentImportRequest(BaseSchema):
    """JSON payload for student import."""

    rows: list[StudentRow]


class SubjectImportRequest(BaseSchema):
    """JSON payload for subject import."""

    rows: list[SubjectRow]
