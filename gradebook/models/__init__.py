"""Database models package."""

from gradebook.models.enrollment import Enrollment
from gradebook.models.instructor import Instructor
from gradebook.models.student import Group, Student
from gradebook.models.subject import Subject, SubjectCategory, SubjectForm, SubjectInstructor
from gradebook.models.user import User, UserRole

__all__ = [
    # User
    "User",
    "UserRole",
    # Instructor
    "Instructor",
    # Student
    "Group",
    "Student",
    # Subject
    "Subject",
    "SubjectCategory",
    "SubjectForm",
    "SubjectInstructor",
    # Enrollment
    "Enrollment",
]
