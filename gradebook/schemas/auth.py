"""Authentication schemas."""

from datetime import datetime

from pydantic import Field

from gradebook.models.user import UserRole
from gradebook.schemas.common import BaseSchema


class LoginRequest(BaseSchema):
    """Login request schema."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseSchema):
    """Token response schema."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    role: UserRole


class UserResponse(BaseSchema):
    """User response schema."""

    id: int
    username: str
    name: str
    role: UserRole
    instructor_id: int | None
    is_active: bool
    last_login_at: datetime | None
