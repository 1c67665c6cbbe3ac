"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.dependencies import CurrentUser
from gradebook.schemas.auth import LoginRequest, TokenResponse, UserResponse
from gradebook.schemas.common import ErrorResponse
from gradebook.services.auth import AuthService

router = APIRouter()


@router.post("/login", response_model=TokenResponse, responses={401: {"model": ErrorResponse}})
def login(
    request: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Authenticate user and return a bearer access token.
    """
    service = AuthService(db)
    return service.login(request)


@router.get("/me", response_model=UserResponse)
def get_me(current_user: CurrentUser):
    """Get the current user's account."""
    return UserResponse.model_validate(current_user)
