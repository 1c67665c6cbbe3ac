"""Authentication service."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.exceptions import AuthenticationError
from gradebook.core.security import create_access_token, verify_password
from gradebook.models.user import User
from gradebook.schemas.auth import LoginRequest, TokenResponse


class AuthService:
    """Authentication service."""

    def __init__(self, db: Session):
        self.db = db

    def login(self, request: LoginRequest) -> TokenResponse:
        """Authenticate user and return an access token."""
        result = self.db.execute(
            select(User).where(User.username == request.username)
        )
        user = result.scalar_one_or_none()

        if not user:
            raise AuthenticationError("Invalid username or password")

        if not verify_password(request.password, user.password_hash):
            raise AuthenticationError("Invalid username or password")

        if not user.is_active:
            raise AuthenticationError("User account is deactivated")

        # Update last login
        user.last_login_at = datetime.now(timezone.utc)
        self.db.flush()

        access_token = create_access_token(user.id, user.username, user.role.value)

        return TokenResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            role=user.role,
        )
