"""Enrollment (grade record) model."""

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class Enrollment(Base, IDMixin, TimestampMixin):
    """Links one student to one subject and carries the semester grades."""

    __tablename__ = "enrollments"

    student_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    second_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    absences: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    student: Mapped["Student"] = relationship(
        "Student",
        back_populates="enrollments",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", name="uq_enrollment_student_subject"),
    )

    def __repr__(self) -> str:
        return f"<Enrollment(id={self.id}, student_id={self.student_id}, subject_id={self.subject_id})>"
