"""Grade entry service: per-subject roster listing and score upsert."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.exceptions import NotFoundError
from gradebook.models.enrollment import Enrollment
from gradebook.models.student import Student
from gradebook.models.subject import Subject
from gradebook.schemas.grade import (
    GradeEdit,
    GradeError,
    GradeUpsertResult,
    SavedEnrollment,
    StudentGradeResponse,
    SubjectGradesResponse,
)
from gradebook.services.writer import describe_storage_error

logger = logging.getLogger(__name__)


class GradeParseError(ValueError):
    """A score or absence value that is not a non-negative integer."""


def parse_optional_int(value: str | int | float | None, field_name: str) -> int | None:
    """Parse an entered value; blank means no value."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise GradeParseError(f"{field_name} must be an integer: '{value}'")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        # 80.0 from a spreadsheet cell is still a whole number
        if not value.is_integer():
            raise GradeParseError(f"{field_name} must be an integer: '{value}'")
        parsed = int(value)
    else:
        text = value.strip()
        if not text:
            return None
        try:
            parsed = int(text)
        except ValueError:
            raise GradeParseError(f"{field_name} must be an integer: '{text}'")
    if parsed < 0:
        raise GradeParseError(f"{field_name} must not be negative: {parsed}")
    return parsed


class GradeService:
    """Grade management for one subject at a time."""

    def __init__(self, db: Session):
        self.db = db

    def get_subject(self, subject_id: int) -> Subject:
        subject = self.db.get(Subject, subject_id)
        if not subject:
            raise NotFoundError("Subject", str(subject_id))
        return subject

    def list_subject_grades(self, subject_id: int) -> SubjectGradesResponse:
        """Return the subject's group roster with any recorded grades."""
        subject = self.get_subject(subject_id)

        students = self.db.execute(
            select(Student)
            .where(Student.group_id == subject.group_id)
            .order_by(Student.student_code)
        ).scalars().all()
        enrollments = {
            enrollment.student_id: enrollment
            for enrollment in self.db.execute(
                select(Enrollment).where(Enrollment.subject_id == subject_id)
            ).scalars()
        }

        roster = []
        for student in students:
            enrollment = enrollments.get(student.id)
            roster.append(
                StudentGradeResponse(
                    student_id=student.id,
                    student_code=student.student_code,
                    student_name=student.name,
                    enrollment_id=enrollment.id if enrollment else None,
                    first_score=enrollment.first_score if enrollment else None,
                    second_score=enrollment.second_score if enrollment else None,
                    absences=enrollment.absences if enrollment else 0,
                )
            )

        logger.debug(f"[GRADES] Subject {subject_id}: {len(roster)} students, {len(enrollments)} enrollments")
        return SubjectGradesResponse(
            subject_id=subject.id,
            subject_name=subject.name,
            year=subject.year,
            group_label=subject.group.label,
            students=roster,
        )

    def upsert_grades(self, subject_id: int, edits: list[GradeEdit]) -> GradeUpsertResult:
        """Merge score/absence edits into the subject's enrollments.

        An edit without an enrollment id creates the enrollment; an edit with
        one updates it in place. Each edit is written in its own SAVEPOINT, so
        a failing student never blocks the others.
        """
        self.get_subject(subject_id)
        logger.info(f"[GRADES] Upserting {len(edits)} edits for subject {subject_id}")

        errors: list[GradeError] = []
        saved: list[SavedEnrollment] = []

        for edit in edits:
            try:
                first_score = parse_optional_int(edit.first_score, "First score")
                second_score = parse_optional_int(edit.second_score, "Second score")
                absences = parse_optional_int(edit.absences, "Absences") or 0
            except GradeParseError as e:
                errors.append(GradeError(student_id=edit.student_id, message=str(e)))
                continue

            try:
                entry = self._apply_edit(subject_id, edit, first_score, second_score, absences)
            except SQLAlchemyError as e:
                logger.warning(f"[GRADES] Student {edit.student_id} failed: {e}")
                errors.append(GradeError(student_id=edit.student_id, message=describe_storage_error(e)))
                continue

            if isinstance(entry, GradeError):
                errors.append(entry)
            else:
                saved.append(entry)

        error_count = len(errors)
        message = f"{len(saved)} saved, {error_count} failed"
        logger.info(f"[GRADES] Subject {subject_id} complete - {message}")
        return GradeUpsertResult(
            success=error_count == 0,
            saved_count=len(saved),
            error_count=error_count,
            errors=errors,
            saved=saved,
            message=message,
        )

    def _apply_edit(
        self,
        subject_id: int,
        edit: GradeEdit,
        first_score: int | None,
        second_score: int | None,
        absences: int,
    ) -> SavedEnrollment | GradeError:
        with self.db.begin_nested():
            if self.db.get(Student, edit.student_id) is None:
                return GradeError(student_id=edit.student_id, message="Student not found")

            if edit.enrollment_id is None:
                existing_id = self.db.execute(
                    select(Enrollment.id).where(
                        Enrollment.subject_id == subject_id,
                        Enrollment.student_id == edit.student_id,
                    )
                ).scalar_one_or_none()
                if existing_id is not None:
                    return GradeError(
                        student_id=edit.student_id,
                        message=f"Enrollment already exists (id={existing_id})",
                    )
                enrollment = Enrollment(
                    student_id=edit.student_id,
                    subject_id=subject_id,
                    first_score=first_score,
                    second_score=second_score,
                    absences=absences,
                )
                self.db.add(enrollment)
                self.db.flush()
                return SavedEnrollment(student_id=edit.student_id, enrollment_id=enrollment.id, created=True)

            enrollment = self.db.get(Enrollment, edit.enrollment_id)
            if (
                enrollment is None
                or enrollment.subject_id != subject_id
                or enrollment.student_id != edit.student_id
            ):
                return GradeError(
                    student_id=edit.student_id,
                    message=f"Enrollment {edit.enrollment_id} not found for this student and subject",
                )
            enrollment.first_score = first_score
            enrollment.second_score = second_score
            enrollment.absences = absences
            self.db.flush()
            return SavedEnrollment(student_id=edit.student_id, enrollment_id=enrollment.id, created=False)
