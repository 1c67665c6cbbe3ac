"""Instructor model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class Instructor(Base, IDMixin, TimestampMixin):
    """Teaching staff member."""

    __tablename__ = "instructors"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="instructor",
        uselist=False,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Instructor(id={self.id}, name={self.name})>"
