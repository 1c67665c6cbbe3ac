"""Single-record writes for the bulk importer."""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.security import hash_password
from gradebook.models.instructor import Instructor
from gradebook.models.student import Student
from gradebook.models.subject import Subject, SubjectInstructor
from gradebook.models.user import User, UserRole
from gradebook.schemas.importer import InstructorRow, StudentRow, SubjectRow

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of one write: the new id, or the storage error message."""

    entity_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def describe_storage_error(exc: SQLAlchemyError) -> str:
    """Short human-readable reason for a failed write."""
    if isinstance(exc, IntegrityError):
        return "Registration error: conflicts with an existing record"
    reason = getattr(exc, "orig", None) or exc
    return f"Registration error: {reason}"


class EntityWriter:
    """Creates one record per accepted candidate inside its own SAVEPOINT.

    A storage failure rolls back only that record and is returned as a failed
    ``WriteResult``; the surrounding batch keeps going.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_instructor(self, row: InstructorRow) -> WriteResult:
        """Insert an Instructor and its general-role User as a pair."""
        try:
            with self.db.begin_nested():
                instructor = Instructor(name=row.display_name, email=None)
                self.db.add(instructor)
                self.db.flush()
                self.db.add(
                    User(
                        username=row.username,
                        name=row.display_name,
                        password_hash=hash_password(row.password),
                        role=UserRole.GENERAL,
                        instructor_id=instructor.id,
                    )
                )
                self.db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"[WRITE] Instructor '{row.username}' failed: {e}")
            return WriteResult(error=describe_storage_error(e))
        return WriteResult(entity_id=instructor.id)

    def create_student(self, row: StudentRow, group_id: int | None) -> WriteResult:
        try:
            with self.db.begin_nested():
                student = Student(
                    student_code=row.student_code,
                    name=row.display_name,
                    group_id=group_id,
                )
                self.db.add(student)
                self.db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"[WRITE] Student '{row.student_code}' failed: {e}")
            return WriteResult(error=describe_storage_error(e))
        return WriteResult(entity_id=student.id)

    def create_subject(
        self,
        row: SubjectRow,
        group_id: int,
        registrar_id: int | None,
        co_instructor_ids: list[int],
    ) -> WriteResult:
        try:
            with self.db.begin_nested():
                subject = Subject(
                    year=row.year,
                    name=row.name,
                    category=row.category,
                    form=row.form,
                    credits=row.credits,
                    group_id=group_id,
                    registrar_id=registrar_id,
                    access_pin=row.access_pin,
                )
                subject.co_instructors = [
                    SubjectInstructor(instructor_id=instructor_id) for instructor_id in co_instructor_ids
                ]
                self.db.add(subject)
                self.db.flush()
        except SQLAlchemyError as e:
            logger.warning(f"[WRITE] Subject '{row.name}' failed: {e}")
            return WriteResult(error=describe_storage_error(e))
        return WriteResult(entity_id=subject.id)
