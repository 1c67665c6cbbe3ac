"""Shared fixtures: in-memory SQLite database, API client, users and workbooks."""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

from collections.abc import Generator
from io import BytesIO
from typing import Any

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from gradebook import models  # noqa: F401
from gradebook.core.database import Base, get_db
from gradebook.core.security import create_access_token, hash_password
from gradebook.main import app
from gradebook.models.instructor import Instructor
from gradebook.models.user import User, UserRole

SUBJECT_HEADER = ["No", "組", "人数", "試験", "科目名", "分野", "形式", "単位数", "担当", "担当合員", "暗証番号"]


def subject_row(group=None, name=None, category=None, form=None, credits=None, registrar=None, co=None, pin=None):
    """A subjects-sheet row in the default column layout."""
    return [None, group, None, None, name, category, form, credits, registrar, co, pin]


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to work
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Generator[Session, None, None]:
    factory = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_instructor(db: Session, name: str, username: str | None = None, password: str = "secret") -> Instructor:
    """Insert an instructor, with a general-role login when a username is given."""
    instructor = Instructor(name=name)
    db.add(instructor)
    db.flush()
    if username:
        db.add(
            User(
                username=username,
                name=name,
                password_hash=hash_password(password),
                role=UserRole.GENERAL,
                instructor_id=instructor.id,
            )
        )
        db.flush()
    return instructor


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.username, user.role.value)
    return {"Authorization": f"Bearer {token}"}


def make_workbook(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Build an .xlsx file in memory; one worksheet per entry, in order."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


@pytest.fixture
def admin_user(db: Session) -> User:
    user = User(
        username="admin",
        name="System Admin",
        password_hash=hash_password("adminpassword123"),
        role=UserRole.ADMIN,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def admin_headers(admin_user: User) -> dict[str, str]:
    return auth_headers(admin_user)
