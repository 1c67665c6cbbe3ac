"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.database import get_db
from gradebook.core.exceptions import AuthenticationError, PermissionDeniedError
from gradebook.core.security import verify_access_token
from gradebook.models.subject import Subject
from gradebook.models.user import User, UserRole


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    authorization: str = Header(..., description="Bearer token"),
) -> User:
    """Extract and validate the current user from JWT token."""
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization[7:]  # Remove "Bearer " prefix
    payload = verify_access_token(token)

    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise AuthenticationError("Invalid token payload")

    try:
        user_id = int(user_id_str)
    except ValueError:
        raise AuthenticationError("Invalid user ID in token")

    result = db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user


def require_admin(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency that requires the admin role."""
    if user.role != UserRole.ADMIN:
        raise PermissionDeniedError("Admin access required", required_role=UserRole.ADMIN.value)
    return user


def ensure_can_grade(user: User, subject: Subject) -> None:
    """Admins grade any subject; general users only subjects their instructor teaches."""
    if user.role == UserRole.ADMIN:
        return
    if not subject.teaches(user.instructor_id):
        raise PermissionDeniedError("You are not an instructor of this subject")


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
