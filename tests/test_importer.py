"""Tests for the bulk import service."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from gradebook.core.exceptions import InternalError
from gradebook.core.security import verify_password
from gradebook.models.instructor import Instructor
from gradebook.models.student import Group, Student
from gradebook.models.subject import Subject, SubjectCategory, SubjectForm
from gradebook.models.user import User, UserRole
from gradebook.schemas.importer import InstructorRow, StudentRow, SubjectRow
from gradebook.services.importer import ImportService
from gradebook.services.resolver import ReferenceResolver
from gradebook.services.writer import EntityWriter, WriteResult
from tests.conftest import SUBJECT_HEADER, create_instructor, subject_row


def count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def math_row(**overrides) -> SubjectRow:
    values = dict(
        year=2025,
        name="Math",
        category=SubjectCategory.SPECIALIZED,
        form=SubjectForm.LECTURE,
        credits=2,
        group_label="25K",
        registrar_name="Yamada",
        access_pin="1234",
    )
    values.update(overrides)
    return SubjectRow(**values)


class TestInstructorImport:
    def test_creates_instructor_with_general_login(self, db):
        rows = [InstructorRow(username="yamada", password="pw", display_name="Yamada")]

        result = ImportService(db).import_instructors(rows)

        assert (result.succeeded, result.failed) == (1, 0)
        assert result.success is True
        assert result.message == "Instructors: 1 registered, 0 failed"
        user = db.execute(select(User).where(User.username == "yamada")).scalar_one()
        assert user.role == UserRole.GENERAL
        assert user.instructor.name == "Yamada"
        assert verify_password("pw", user.password_hash)

    def test_duplicates_in_file_and_in_storage(self, db, admin_user):
        rows = [
            InstructorRow(username="yamada", password="pw", display_name="Yamada", row_number=2),
            InstructorRow(username="yamada", password="pw2", display_name="Yamada Taro", row_number=3),
            InstructorRow(username="admin", password="pw", display_name="Someone", row_number=4),
        ]

        result = ImportService(db).import_instructors(rows)

        assert [(r.key, r.success, r.message) for r in result.results] == [
            ("yamada", True, "Registered"),
            ("yamada", False, "Duplicate within file"),
            ("admin", False, "Username is already in use"),
        ]
        assert (result.succeeded, result.failed) == (1, 2)
        assert count(db, Instructor) == 1


class TestStudentImport:
    def test_existing_code_is_already_registered(self, db):
        db.add(Student(student_code="25001", name="Aoki"))
        db.flush()

        result = ImportService(db).import_students(
            [
                StudentRow(student_code="25001", display_name="Aoki"),
                StudentRow(student_code="25002", display_name="Baba"),
                StudentRow(student_code="25002", display_name="Baba"),
            ]
        )

        assert [(r.success, r.message) for r in result.results] == [
            (False, "Already registered"),
            (True, "Registered"),
            (False, "Duplicate within file"),
        ]
        assert count(db, Student) == 2

    def test_resolves_existing_group_only(self, db):
        group = Group(year=2025, label="25K")
        db.add(group)
        db.flush()

        result = ImportService(db).import_students(
            [
                StudentRow(student_code="25001", display_name="Aoki", year=2025, group_label="25K"),
                StudentRow(student_code="25002", display_name="Baba", year=2025, group_label="99Z"),
            ]
        )

        assert [r.message for r in result.results] == ["Registered", "Registered without group"]
        students = {s.student_code: s for s in db.execute(select(Student)).scalars()}
        assert students["25001"].group_id == group.id
        assert students["25002"].group_id is None
        assert count(db, Group) == 1

    def test_failed_write_releases_key_for_later_rows(self, db, monkeypatch):
        original = EntityWriter.create_student
        calls = []

        def flaky_create(self, row, group_id):
            calls.append(row.student_code)
            if len(calls) == 1:
                return WriteResult(error="Registration error: connection reset")
            return original(self, row, group_id)

        monkeypatch.setattr(EntityWriter, "create_student", flaky_create)

        result = ImportService(db).import_students(
            [
                StudentRow(student_code="25001", display_name="Aoki"),
                StudentRow(student_code="25001", display_name="Aoki"),
            ]
        )

        assert [(r.success, r.message) for r in result.results] == [
            (False, "Registration error: connection reset"),
            (True, "Registered"),
        ]
        assert count(db, Student) == 1

    def test_storage_unreachable_before_processing_is_raised(self, db, monkeypatch):
        def unreachable(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))

        monkeypatch.setattr(db, "execute", unreachable)

        with pytest.raises(InternalError):
            ImportService(db).import_students([StudentRow(student_code="25001", display_name="Aoki")])


class TestSubjectImport:
    def test_end_to_end_without_registrar(self, db):
        sheets = {
            "科目": [
                ["2025年度 開講科目"],
                SUBJECT_HEADER,
                subject_row("25K", "Math", "専", "講", "2", "Yamada", None, "1234"),
            ]
        }

        result = ImportService(db).import_workbook(sheets)

        assert result.instructors is None and result.students is None
        [outcome] = result.subjects.results
        assert outcome.success is True
        assert outcome.message == "Registered without instructor"
        group = db.execute(select(Group)).scalar_one()
        assert (group.year, group.label) == (2025, "25K")
        subject = db.execute(select(Subject)).scalar_one()
        assert (subject.year, subject.name) == (2025, "Math")
        assert subject.category == SubjectCategory.SPECIALIZED
        assert subject.form == SubjectForm.LECTURE
        assert subject.credits == 2
        assert subject.access_pin == "1234"
        assert subject.registrar_id is None
        assert subject.group_id == group.id

    def test_instructors_are_imported_before_subjects(self, db):
        # Subjects sheet first: processing order must not follow sheet order
        sheets = {
            "科目": [["2025"], SUBJECT_HEADER, subject_row("25K", "Math", "専", "講", 2, "Yamada", None, "1234")],
            "教員": [["ユーザー名", "パスワード", "氏名"], ["yamada", "pw", "Yamada"]],
        }

        result = ImportService(db).import_workbook(sheets)

        assert result.subjects.results[0].message == "Registered"
        instructor = db.execute(select(Instructor)).scalar_one()
        subject = db.execute(select(Subject)).scalar_one()
        assert subject.registrar_id == instructor.id
        assert result.message == "Instructors: 1 registered, 0 failed / Subjects: 1 registered, 0 failed"

    def test_co_instructors_are_linked_and_unknown_names_reported(self, db):
        yamada = create_instructor(db, "Yamada")
        sato = create_instructor(db, "Sato")

        result = ImportService(db).import_subjects(
            [math_row(co_instructor_names=["Sato", "Ghost", "Sato"])]
        )

        assert result.results[0].message == "Registered (unknown co-instructors: Ghost)"
        subject = db.execute(select(Subject)).scalar_one()
        assert subject.registrar_id == yamada.id
        assert [link.instructor_id for link in subject.co_instructors] == [sato.id]
        assert subject.teaches(sato.id) and subject.teaches(yamada.id)

    def test_registrar_lookup_prefers_lowest_id(self, db):
        first = create_instructor(db, "Yamada")
        create_instructor(db, "Yamada")

        ImportService(db).import_subjects([math_row()])

        assert db.execute(select(Subject.registrar_id)).scalar_one() == first.id

    def test_duplicates_within_new_group_and_across_groups(self, db):
        result = ImportService(db).import_subjects(
            [
                math_row(row_number=3),
                math_row(row_number=4),
                math_row(group_label="25L", row_number=5),
            ]
        )

        assert [(r.success, r.message) for r in result.results] == [
            (True, "Registered without instructor"),
            (False, "Duplicate within file"),
            (True, "Registered without instructor"),
        ]
        assert count(db, Group) == 2
        assert count(db, Subject) == 2

    def test_reimport_is_already_registered(self, db):
        service = ImportService(db)
        service.import_subjects([math_row()])

        result = service.import_subjects([math_row()])

        assert [(r.success, r.message) for r in result.results] == [(False, "Already registered")]
        assert count(db, Subject) == 1
        assert count(db, Group) == 1

    def test_structural_rejects_are_reported_in_row_order(self, db):
        sheets = {
            "科目": [
                ["2025"],
                SUBJECT_HEADER,
                subject_row("25K", "Math", "X", "講", 2, "Yamada", None, "1234"),
                subject_row("25K", "Art", "専", "講", 2, "Yamada", None, "1234"),
            ]
        }

        result = ImportService(db).import_workbook(sheets)

        assert [(r.row_number, r.key, r.success) for r in result.subjects.results] == [
            (3, "Math", False),
            (4, "Art", True),
        ]
        assert result.subjects.results[0].message == "Unrecognized category 'X'"
        assert (result.subjects.succeeded, result.subjects.failed) == (1, 1)

    def test_group_that_cannot_be_created_rejects_its_rows(self, db, monkeypatch):
        monkeypatch.setattr(ReferenceResolver, "_create_group", lambda self, year, label: None)

        result = ImportService(db).import_subjects([math_row()])

        assert [(r.success, r.message) for r in result.results] == [(False, "Group 2025-25K not found")]
        assert count(db, Subject) == 0


class TestWorkbookImport:
    def test_students_sheet_uses_requested_group(self, db):
        db.add(Group(year=2025, label="25K"))
        db.flush()
        sheets = {"学生": [["番号", "氏名", ""], ["25001", "Aoki", None, "25002", "Baba", None]]}

        result = ImportService(db).import_workbook(sheets, student_year=2025, student_group="25K")

        assert result.students.succeeded == 2
        assert all(s.group is not None for s in db.execute(select(Student)).scalars())

    def test_no_recognized_sheets(self, db):
        result = ImportService(db).import_workbook({"Sheet1": [["hello"]]})

        assert result.success is True
        assert result.instructors is None and result.students is None and result.subjects is None
        assert result.message.startswith("No importable sheets found")


class TestWriterAndResolver:
    def test_storage_error_rolls_back_only_that_record(self, db):
        writer = EntityWriter(db)
        assert writer.create_student(StudentRow(student_code="25001", display_name="Aoki"), None).ok

        failed = writer.create_student(StudentRow(student_code="25001", display_name="Aoki"), None)
        after = writer.create_student(StudentRow(student_code="25002", display_name="Baba"), None)

        assert failed.error == "Registration error: conflicts with an existing record"
        assert after.ok
        db.commit()
        assert count(db, Student) == 2

    def test_ensure_groups_is_idempotent(self, db):
        resolver = ReferenceResolver(db)
        first = resolver.ensure_groups([(2025, "25K"), (2025, "25K"), (2025, "25L")])
        second = ReferenceResolver(db).ensure_groups([(2025, "25K")])

        assert list(first) == [(2025, "25K"), (2025, "25L")]
        assert second[(2025, "25K")] == first[(2025, "25K")]
        assert count(db, Group) == 2
