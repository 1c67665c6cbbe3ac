"""Subject and co-instructor models."""

import enum

from sqlalchemy import BigInteger, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.core.database import Base
from gradebook.models.base import IDMixin, TimestampMixin


class SubjectCategory(str, enum.Enum):
    """Subject field: specialized (S) or other (O)."""

    SPECIALIZED = "S"
    OTHER = "O"


class SubjectForm(str, enum.Enum):
    """Teaching form of a subject."""

    LECTURE = "Lecture"
    EXERCISE = "Exercise"


class Subject(Base, IDMixin, TimestampMixin):
    """Subject taught to one group in one academic year."""

    __tablename__ = "subjects"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[SubjectCategory] = mapped_column(
        Enum(SubjectCategory, name="subject_category", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    form: Mapped[SubjectForm] = mapped_column(
        Enum(SubjectForm, name="class_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    # Not unique across subjects
    access_pin: Mapped[str] = mapped_column(String(4), nullable=False)

    group_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    registrar_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("instructors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    group: Mapped["Group"] = relationship("Group", lazy="selectin")
    registrar: Mapped["Instructor"] = relationship("Instructor", lazy="selectin")
    co_instructors: Mapped[list["SubjectInstructor"]] = relationship(
        "SubjectInstructor",
        back_populates="subject",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("year", "name", "group_id", name="uq_subject_year_name_group"),
    )

    def teaches(self, instructor_id: int | None) -> bool:
        """Whether the instructor is the registrar or a co-instructor."""
        if instructor_id is None:
            return False
        if self.registrar_id == instructor_id:
            return True
        return any(link.instructor_id == instructor_id for link in self.co_instructors)

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, year={self.year}, name={self.name}, group_id={self.group_id})>"


class SubjectInstructor(Base):
    """Co-instructor assignment for a subject."""

    __tablename__ = "subject_instructors"

    subject_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    instructor_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("instructors.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Relationships
    subject: Mapped["Subject"] = relationship("Subject", back_populates="co_instructors")
    instructor: Mapped["Instructor"] = relationship("Instructor", lazy="selectin")

    def __repr__(self) -> str:
        return f"<SubjectInstructor(subject_id={self.subject_id}, instructor_id={self.instructor_id})>"
