"""Group (class/cohort) and student models."""

from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class Group(Base, IDMixin, TimestampMixin):
    """Class/cohort identified by (year, label), e.g. (2025, "25K")."""

    __tablename__ = "groups"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(50), nullable=False)

    # Relationships
    students: Mapped[list["Student"]] = relationship(
        "Student",
        back_populates="group",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("year", "label", name="uq_group_year_label"),
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, year={self.year}, label={self.label})>"


class Student(Base, IDMixin, TimestampMixin):
    """Student model for managing student records."""

    __tablename__ = "students"

    student_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    group_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="students",
        lazy="selectin",
    )
    enrollments: Mapped[list["Enrollment"]] = relationship(
        "Enrollment",
        back_populates="student",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, code={self.student_code}, name={self.name})>"
