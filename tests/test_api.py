"""HTTP API tests."""

from sqlalchemy import select

from gradebook.models.student import Group, Student
from gradebook.models.subject import Subject, SubjectCategory, SubjectForm
from gradebook.models.user import User
from tests.conftest import SUBJECT_HEADER, auth_headers, create_instructor, make_workbook, subject_row

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def general_user(db, name: str, username: str) -> User:
    create_instructor(db, name, username=username)
    return db.execute(select(User).where(User.username == username)).scalar_one()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


class TestAuth:
    def test_login_and_me(self, client, admin_user):
        response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "adminpassword123"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["role"] == "admin"

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "admin"
        assert me.json()["instructor_id"] is None

    def test_bad_password_uses_error_envelope(self, client, admin_user):
        response = client.post("/api/v1/auth/login", json={"username": "admin", "password": "wrong"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"code": "AUTH_FAILED", "message": "Invalid username or password", "details": {}},
        }

    def test_validation_errors_use_error_envelope(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "admin"})

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"][0]["loc"] == ["body", "password"]

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401


class TestWorkbookUpload:
    def test_admin_imports_all_sheets(self, client, admin_headers, db):
        content = make_workbook(
            {
                "教員": [["ユーザー名", "パスワード", "氏名"], ["yamada", "pw", "Yamada"]],
                "学生": [["番号", "氏名", ""], ["25001", "Aoki", None, "25002", "Baba", None]],
                "科目": [
                    ["2025年度 開講科目"],
                    SUBJECT_HEADER,
                    subject_row("25K", "Math", "専", "講", 2, "Yamada", None, 1234),
                    subject_row(None, "Physics", None, "演", None, "Nobody", None, None),
                ],
            }
        )

        response = client.post(
            "/api/v1/imports/workbook",
            headers=admin_headers,
            files={"file": ("roster.xlsx", content, XLSX_TYPE)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["instructors"]["succeeded"] == 1
        assert body["students"]["succeeded"] == 2
        assert [(r["key"], r["message"]) for r in body["subjects"]["results"]] == [
            ("Math", "Registered"),
            ("Physics", "Registered without instructor"),
        ]
        subjects = {s.name: s for s in db.execute(select(Subject)).scalars()}
        assert subjects["Physics"].form == SubjectForm.EXERCISE
        assert subjects["Physics"].access_pin == "1234"

    def test_students_can_be_placed_in_group(self, client, admin_headers, db):
        db.add(Group(year=2025, label="25K"))
        db.flush()
        content = make_workbook({"学生": [["番号", "氏名", ""], ["25001", "Aoki", None]]})

        response = client.post(
            "/api/v1/imports/workbook",
            headers=admin_headers,
            files={"file": ("students.xlsx", content, XLSX_TYPE)},
            data={"student_year": "2025", "student_group": "25K"},
        )

        assert response.status_code == 200
        assert response.json()["students"]["results"][0]["message"] == "Registered"

    def test_general_user_is_forbidden(self, client, db):
        user = general_user(db, "Yamada", "yamada")
        content = make_workbook({"教員": [["u", "p", "n"]]})

        response = client.post(
            "/api/v1/imports/workbook",
            headers=auth_headers(user),
            files={"file": ("roster.xlsx", content, XLSX_TYPE)},
        )

        assert response.status_code == 403
        assert response.json()["error"] == {
            "code": "PERMISSION_DENIED",
            "message": "Admin access required",
            "details": {"required_role": "admin"},
        }

    def test_rejects_non_xlsx(self, client, admin_headers):
        response = client.post(
            "/api/v1/imports/workbook",
            headers=admin_headers,
            files={"file": ("roster.csv", b"a,b,c", "text/csv")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UPLOAD_FAILED"

    def test_unreadable_workbook(self, client, admin_headers):
        response = client.post(
            "/api/v1/imports/workbook",
            headers=admin_headers,
            files={"file": ("roster.xlsx", b"not really a workbook", XLSX_TYPE)},
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"].startswith("Invalid Excel file")


class TestJsonImports:
    def test_import_subjects(self, client, admin_headers, db):
        create_instructor(db, "Yamada")

        response = client.post(
            "/api/v1/imports/subjects",
            headers=admin_headers,
            json={
                "rows": [
                    {
                        "year": 2025,
                        "name": "Math",
                        "category": "S",
                        "form": "Lecture",
                        "credits": 2,
                        "group_label": "25K",
                        "registrar_name": "Yamada",
                        "access_pin": "1234",
                    }
                ]
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "subject"
        assert body["message"] == "Subjects: 1 registered, 0 failed"

    def test_missing_authorization_header_is_rejected(self, client):
        response = client.post("/api/v1/imports/students", json={"rows": []})
        assert response.status_code == 422

    def test_import_instructors(self, client, admin_headers):
        response = client.post(
            "/api/v1/imports/instructors",
            headers=admin_headers,
            json={"rows": [{"username": "sato", "password": "pw", "display_name": "Sato"}]},
        )

        assert response.status_code == 200
        assert response.json()["succeeded"] == 1
        login = client.post("/api/v1/auth/login", json={"username": "sato", "password": "pw"})
        assert login.json()["role"] == "general"


class TestGradeEndpoints:
    def _subject(self, db, registrar_id: int | None) -> Subject:
        group = Group(year=2025, label="25K")
        db.add(group)
        db.flush()
        subject = Subject(
            year=2025,
            name="Math",
            category=SubjectCategory.SPECIALIZED,
            form=SubjectForm.LECTURE,
            credits=2,
            access_pin="1234",
            group_id=group.id,
            registrar_id=registrar_id,
        )
        db.add(subject)
        db.flush()
        return subject

    def test_registrar_can_enter_grades(self, client, db):
        user = general_user(db, "Yamada", "yamada")
        subject = self._subject(db, user.instructor_id)
        student = Student(student_code="25001", name="Aoki", group_id=subject.group_id)
        db.add(student)
        db.flush()

        saved = client.put(
            f"/api/v1/grades/subjects/{subject.id}",
            headers=auth_headers(user),
            json={"edits": [{"student_id": student.id, "first_score": "72", "absences": ""}]},
        )

        assert saved.status_code == 200
        assert saved.json()["success"] is True
        enrollment_id = saved.json()["saved"][0]["enrollment_id"]

        listing = client.get(f"/api/v1/grades/subjects/{subject.id}", headers=auth_headers(user))
        assert listing.status_code == 200
        [line] = listing.json()["students"]
        assert line["enrollment_id"] == enrollment_id
        assert line["first_score"] == 72

    def test_fractional_score_is_reported_per_student(self, client, db):
        user = general_user(db, "Yamada", "yamada")
        subject = self._subject(db, user.instructor_id)
        aoki = Student(student_code="25001", name="Aoki", group_id=subject.group_id)
        baba = Student(student_code="25002", name="Baba", group_id=subject.group_id)
        db.add_all([aoki, baba])
        db.flush()

        response = client.put(
            f"/api/v1/grades/subjects/{subject.id}",
            headers=auth_headers(user),
            json={
                "edits": [
                    {"student_id": aoki.id, "first_score": "72"},
                    {"student_id": baba.id, "first_score": 85.5},
                ]
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert (body["saved_count"], body["error_count"]) == (1, 1)
        assert body["errors"][0]["student_id"] == baba.id

    def test_other_instructor_is_forbidden(self, client, db):
        owner = general_user(db, "Yamada", "yamada")
        other = general_user(db, "Sato", "sato")
        subject = self._subject(db, owner.instructor_id)

        response = client.put(
            f"/api/v1/grades/subjects/{subject.id}",
            headers=auth_headers(other),
            json={"edits": []},
        )

        assert response.status_code == 403

    def test_admin_can_view_any_subject(self, client, admin_headers, db):
        subject = self._subject(db, None)

        response = client.get(f"/api/v1/grades/subjects/{subject.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["subject_name"] == "Math"

    def test_unknown_subject(self, client, admin_headers):
        response = client.get("/api/v1/grades/subjects/9999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"
