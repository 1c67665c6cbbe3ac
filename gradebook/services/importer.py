"""Bulk import orchestration for instructors, students and subjects."""

import logging
from collections.abc import Hashable, Mapping, Sequence
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.exceptions import InternalError
from gradebook.models.student import Student
from gradebook.models.subject import Subject
from gradebook.models.user import User
from gradebook.schemas.importer import (
    EntityKind,
    ImportResult,
    InstructorRow,
    RowOutcome,
    RowReject,
    StudentRow,
    SubjectRow,
    WorkbookImportResult,
)
from gradebook.services.dedup import DedupGuard, DuplicateKind
from gradebook.services.normalizer import (
    ColumnMap,
    get_column_map,
    normalize_instructor_rows,
    normalize_student_rows,
    normalize_subject_rows,
)
from gradebook.services.resolver import ReferenceResolver
from gradebook.services.writer import EntityWriter, WriteResult

logger = logging.getLogger(__name__)

MSG_REGISTERED = "Registered"
MSG_REGISTERED_WITHOUT_INSTRUCTOR = "Registered without instructor"
MSG_REGISTERED_WITHOUT_GROUP = "Registered without group"
MSG_DUPLICATE_IN_FILE = "Duplicate within file"
MSG_ALREADY_REGISTERED = "Already registered"
MSG_USERNAME_TAKEN = "Username is already in use"

KIND_LABELS = {
    EntityKind.INSTRUCTOR: "Instructors",
    EntityKind.STUDENT: "Students",
    EntityKind.SUBJECT: "Subjects",
}


class ImportService:
    """Runs normalized rows through dedup, resolution and writing.

    Rows are processed strictly in order. Every row ends up as exactly one
    ``RowOutcome``; only failures before any row is processed are raised.
    """

    def __init__(self, db: Session, column_map: ColumnMap | None = None):
        self.db = db
        self.column_map = column_map or get_column_map(settings.IMPORT_LOCALE)

    # ==========================================
    # Workbook
    # ==========================================

    def import_workbook(
        self,
        sheets: Mapping[str, Sequence[Sequence[Any]]],
        student_year: int | None = None,
        student_group: str | None = None,
    ) -> WorkbookImportResult:
        """Import every recognized sheet in dependency order.

        Instructors come first and subjects last, since subjects reference
        instructors and the groups created during the subjects pass.
        """
        column_map = self.column_map
        result = WorkbookImportResult()
        logger.info(f"[WORKBOOK IMPORT] Sheets present: {list(sheets)}")

        if column_map.instructor_sheet in sheets:
            normalized = normalize_instructor_rows(sheets[column_map.instructor_sheet], column_map)
            result.instructors = self.import_instructors(normalized.candidates, rejects=normalized.rejects)

        if column_map.student_sheet in sheets:
            normalized = normalize_student_rows(
                sheets[column_map.student_sheet],
                column_map,
                year=student_year,
                group_label=student_group,
            )
            result.students = self.import_students(normalized.candidates, rejects=normalized.rejects)

        if column_map.subject_sheet in sheets:
            normalized = normalize_subject_rows(sheets[column_map.subject_sheet], column_map)
            result.subjects = self.import_subjects(normalized.candidates, rejects=normalized.rejects)

        parts = [r for r in (result.instructors, result.students, result.subjects) if r is not None]
        if parts:
            result.message = " / ".join(part.message for part in parts)
        else:
            expected = ", ".join(
                [column_map.instructor_sheet, column_map.student_sheet, column_map.subject_sheet]
            )
            result.message = f"No importable sheets found (expected one of: {expected})"
        logger.info(f"[WORKBOOK IMPORT] Complete - {result.message}")
        return result

    # ==========================================
    # Instructors
    # ==========================================

    def import_instructors(
        self,
        rows: Sequence[InstructorRow],
        rejects: Sequence[RowReject] | None = None,
    ) -> ImportResult:
        """Register instructors together with their general-role login."""
        logger.info(f"[INSTRUCTOR IMPORT] Starting import of {len(rows)} rows")
        guard = DedupGuard(self._load_keys(select(User.username)))
        writer = EntityWriter(self.db)
        outcomes = self._reject_outcomes(rejects)

        for row in rows:
            key = row.username
            duplicate = guard.check(key)
            if duplicate:
                outcomes.append(self._duplicate_outcome(key, row.row_number, duplicate, MSG_USERNAME_TAKEN))
                continue

            guard.reserve(key)
            written = writer.create_instructor(row)
            outcomes.append(self._settle(guard, key, key, row.row_number, written, MSG_REGISTERED))

        return self._summarize(EntityKind.INSTRUCTOR, outcomes)

    # ==========================================
    # Students
    # ==========================================

    def import_students(
        self,
        rows: Sequence[StudentRow],
        rejects: Sequence[RowReject] | None = None,
    ) -> ImportResult:
        """Register students; an unresolved group leaves the student ungrouped."""
        logger.info(f"[STUDENT IMPORT] Starting import of {len(rows)} rows")
        guard = DedupGuard(self._load_keys(select(Student.student_code)))
        resolver = ReferenceResolver(self.db)
        writer = EntityWriter(self.db)
        outcomes = self._reject_outcomes(rejects)

        for row in rows:
            key = row.student_code
            duplicate = guard.check(key)
            if duplicate:
                outcomes.append(self._duplicate_outcome(key, row.row_number, duplicate, MSG_ALREADY_REGISTERED))
                continue

            group_id = resolver.find_group(row.year, row.group_label)
            message = MSG_REGISTERED
            if row.group_label and group_id is None:
                logger.debug(f"[STUDENT IMPORT] Group {row.year}-{row.group_label} not found for '{key}'")
                message = MSG_REGISTERED_WITHOUT_GROUP

            guard.reserve(key)
            written = writer.create_student(row, group_id)
            outcomes.append(self._settle(guard, key, key, row.row_number, written, message))

        return self._summarize(EntityKind.STUDENT, outcomes)

    # ==========================================
    # Subjects
    # ==========================================

    def import_subjects(
        self,
        rows: Sequence[SubjectRow],
        rejects: Sequence[RowReject] | None = None,
    ) -> ImportResult:
        """Register subjects.

        All groups referenced by the rows are created before the first subject
        insert. Existing subject keys are loaded afterwards, keyed on the
        resolved group id. A registrar that matches no instructor still lets
        the subject through, with a null registrar and a distinct message.
        """
        logger.info(f"[SUBJECT IMPORT] Starting import of {len(rows)} rows")
        resolver = ReferenceResolver(self.db)
        try:
            groups = resolver.ensure_groups((row.group_year, row.group_label) for row in rows)
        except SQLAlchemyError as e:
            logger.exception("[SUBJECT IMPORT] Failed to prepare groups")
            raise InternalError(f"Failed to prepare groups: {str(e)}")
        logger.debug(f"[SUBJECT IMPORT] Groups resolved: {groups}")

        guard = DedupGuard(self._load_keys(select(Subject.year, Subject.name, Subject.group_id)))
        writer = EntityWriter(self.db)
        outcomes = self._reject_outcomes(rejects)

        for row in rows:
            group_id = groups.get((row.group_year, row.group_label))
            if group_id is None:
                outcomes.append(
                    RowOutcome(
                        key=row.name,
                        success=False,
                        message=f"Group {row.group_year}-{row.group_label} not found",
                        row_number=row.row_number,
                    )
                )
                continue

            key = (row.year, row.name, group_id)
            duplicate = guard.check(key)
            if duplicate:
                outcomes.append(self._duplicate_outcome(row.name, row.row_number, duplicate, MSG_ALREADY_REGISTERED))
                continue

            registrar_id = resolver.find_instructor(row.registrar_name)
            co_instructor_ids: list[int] = []
            unknown: list[str] = []
            for name in row.co_instructor_names:
                instructor_id = resolver.find_instructor(name)
                if instructor_id is None:
                    unknown.append(name)
                elif instructor_id not in co_instructor_ids:
                    co_instructor_ids.append(instructor_id)

            if registrar_id is None:
                logger.info(f"[SUBJECT IMPORT] Registrar '{row.registrar_name}' not found, registering '{row.name}' without instructor")
                message = MSG_REGISTERED_WITHOUT_INSTRUCTOR
            else:
                message = MSG_REGISTERED
            if unknown:
                message = f"{message} (unknown co-instructors: {', '.join(unknown)})"

            guard.reserve(key)
            written = writer.create_subject(row, group_id, registrar_id, co_instructor_ids)
            outcomes.append(self._settle(guard, key, row.name, row.row_number, written, message))

        return self._summarize(EntityKind.SUBJECT, outcomes)

    # ==========================================
    # Helpers
    # ==========================================

    def _load_keys(self, statement: Select) -> list[Hashable]:
        """Load the natural keys already in storage."""
        try:
            rows = self.db.execute(statement).all()
        except SQLAlchemyError as e:
            logger.exception("[IMPORT] Failed to load existing keys")
            raise InternalError(f"Failed to load existing records: {str(e)}")
        return [row[0] if len(row) == 1 else tuple(row) for row in rows]

    def _reject_outcomes(self, rejects: Sequence[RowReject] | None) -> list[RowOutcome]:
        return [
            RowOutcome(key=reject.key, success=False, message=reject.reason, row_number=reject.row_number)
            for reject in rejects or []
        ]

    def _duplicate_outcome(
        self,
        key: str,
        row_number: int | None,
        duplicate: DuplicateKind,
        existing_message: str,
    ) -> RowOutcome:
        message = MSG_DUPLICATE_IN_FILE if duplicate == DuplicateKind.IN_FILE else existing_message
        logger.debug(f"[IMPORT] Row {row_number} '{key}' rejected: {message}")
        return RowOutcome(key=key, success=False, message=message, row_number=row_number)

    def _settle(
        self,
        guard: DedupGuard,
        natural_key: Hashable,
        key: str,
        row_number: int | None,
        written: WriteResult,
        message: str,
    ) -> RowOutcome:
        if written.ok:
            guard.commit(natural_key)
            return RowOutcome(key=key, success=True, message=message, row_number=row_number)
        guard.release(natural_key)
        return RowOutcome(key=key, success=False, message=written.error, row_number=row_number)

    def _summarize(self, kind: EntityKind, outcomes: list[RowOutcome]) -> ImportResult:
        if any(outcome.row_number is not None for outcome in outcomes):
            outcomes.sort(key=lambda outcome: outcome.row_number or 0)
        succeeded = sum(1 for outcome in outcomes if outcome.success)
        failed = len(outcomes) - succeeded
        message = f"{KIND_LABELS[kind]}: {succeeded} registered, {failed} failed"
        logger.info(f"[{kind.value.upper()} IMPORT] Complete - {message}")
        return ImportResult(
            kind=kind,
            succeeded=succeeded,
            failed=failed,
            results=outcomes,
            message=message,
        )
