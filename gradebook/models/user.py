"""User (login credential) model."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class UserRole(str, enum.Enum):
    """User role enumeration."""

    ADMIN = "admin"
    GENERAL = "general"


class User(Base, IDMixin, TimestampMixin):
    """Login credential, optionally bound to an instructor."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.GENERAL,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Null for admin-only accounts
    instructor_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("instructors.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )

    # Relationships
    instructor: Mapped["Instructor"] = relationship(
        "Instructor",
        back_populates="user",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role})>"
