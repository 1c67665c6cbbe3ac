"""Grade entry endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import CurrentUser, ensure_can_grade
from gradebook.schemas.common import ErrorResponse
from gradebook.schemas.grade import GradeUpsertRequest, GradeUpsertResult, SubjectGradesResponse
from gradebook.services.grade import GradeService

router = APIRouter()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.get("/subjects/{subject_id}", response_model=SubjectGradesResponse, responses=ERROR_RESPONSES)
def get_subject_grades(
    subject_id: int,
    current_user: CurrentUser,
    db: Annotated[Session, Depends(get_db)],
):
    """Get the subject's roster with recorded scores and enrollment ids."""
    service = GradeService(db)
    ensure_can_grade(current_user, service.get_subject(subject_id))
    return service.list_subject_grades(subject_id)


@router.put("/subjects/{subject_id}", response_model=GradeUpsertResult, responses=ERROR_RESPONSES)
def upsert_subject_grades(
    subject_id: int,
    request: GradeUpsertRequest,
    current_user: CurrentUser,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Save scores and absences for the subject.

    - Edits without `enrollment_id` create the enrollment
    - Edits with `enrollment_id` update it in place
    - Allows partial success; `success` is false when any student failed
    """
    service = GradeService(db)
    ensure_can_grade(current_user, service.get_subject(subject_id))
    return service.upsert_grades(subject_id, request.edits)
