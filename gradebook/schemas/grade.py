"""Grade entry schemas."""

from pydantic import Field

from gradebook.schemas.common import BaseSchema


class GradeEdit(BaseSchema):
    """Score/absence edit for one student in one subject.

    Values arrive as entered in the grade sheet; blank scores mean "no score".
    """

    student_id: int
    enrollment_id: int | None = None
    first_score: str | int | float | None = None
    second_score: str | int | float | None = None
    absences: str | int | float | None = None


class GradeUpsertRequest(BaseSchema):
    """Grade upsert payload."""

    edits: list[GradeEdit] = Field(default_factory=list)


class GradeError(BaseSchema):
    """Per-student error."""

    student_id: int
    message: str


class SavedEnrollment(BaseSchema):
    """Enrollment written by an upsert."""

    student_id: int
    enrollment_id: int
    created: bool


class GradeUpsertResult(BaseSchema):
    """Result of a grade upsert call."""

    success: bool
    saved_count: int
    error_count: int
    errors: list[GradeError] = []
    saved: list[SavedEnrollment] = []
    message: str


class StudentGradeResponse(BaseSchema):
    """One roster line of a subject's grade sheet."""

    student_id: int
    student_code: str
    student_name: str
    enrollment_id: int | None = None
    first_score: int | None = None
    second_score: int | None = None
    absences: int = 0


class SubjectGradesResponse(BaseSchema):
    """Grade sheet for one subject."""

    subject_id: int
    subject_name: str
    year: int
    group_label: str
    students: list[StudentGradeResponse]
