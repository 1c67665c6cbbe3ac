"""Bulk import endpoints (admin only)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.database import get_db
from gradebook.core.dependencies import AdminUser
from gradebook.core.exceptions import UploadError
from gradebook.schemas.common import ErrorResponse
from gradebook.schemas.importer import (
    ImportResult,
    InstructorImportRequest,
    StudentImportRequest,
    SubjectImportRequest,
    WorkbookImportResult,
)
from gradebook.services.importer import ImportService
from gradebook.services.workbook import read_workbook

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/workbook", response_model=WorkbookImportResult, responses=ERROR_RESPONSES)
def import_workbook(
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
    file: UploadFile = File(...),
    student_year: int | None = Form(None),
    student_group: str | None = Form(None),
):
    """
    Import instructors, students and subjects from one Excel workbook.

    - Sheets are recognized by name; missing sheets are skipped
    - Allows partial success (every row gets its own outcome)
    - Students can be assigned to a group via `student_year`/`student_group`
    """
    if not file.filename:
        raise UploadError("No file provided")

    if not any(file.filename.lower().endswith(ext) for ext in settings.ALLOWED_EXTENSIONS):
        raise UploadError(f"Only {', '.join(settings.ALLOWED_EXTENSIONS)} files are allowed")

    content = file.file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise UploadError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit")

    logger.info(f"[WORKBOOK IMPORT] '{file.filename}' uploaded by {admin.username}")
    sheets = read_workbook(content)
    return ImportService(db).import_workbook(
        sheets,
        student_year=student_year,
        student_group=student_group,
    )


@router.post("/instructors", response_model=ImportResult, responses=ERROR_RESPONSES)
def import_instructors(
    request: InstructorImportRequest,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
):
    """Register instructors and their login accounts from JSON rows."""
    return ImportService(db).import_instructors(request.rows)


@router.post("/students", response_model=ImportResult, responses=ERROR_RESPONSES)
def import_students(
    request: StudentImportRequest,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
):
    """Register students from JSON rows."""
    return ImportService(db).import_students(request.rows)


@router.post("/subjects", response_model=ImportResult, responses=ERROR_RESPONSES)
def import_subjects(
    request: SubjectImportRequest,
    admin: AdminUser,
    db: Annotated[Session, Depends(get_db)],
):
    """Register subjects from JSON rows, creating any missing groups."""
    return ImportService(db).import_subjects(request.rows)
