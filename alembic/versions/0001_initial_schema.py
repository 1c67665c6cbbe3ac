"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration creates the gradebook schema:
- instructors, users: teaching staff and their login credentials
- groups, students: class cohorts and their members
- subjects, subject_instructors: curriculum per group and year
- enrollments: per-student grade records for a subject
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


user_role = postgresql.ENUM('admin', 'general', name='user_role', create_type=False)
subject_category = postgresql.ENUM('S', 'O', name='subject_category', create_type=False)
class_type = postgresql.ENUM('Lecture', 'Exercise', name='class_type', create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    ]


def upgrade() -> None:
    """Create enum types and tables."""
    bind = op.get_bind()
    user_role.create(bind, checkfirst=True)
    subject_category.create(bind, checkfirst=True)
    class_type.create(bind, checkfirst=True)

    op.create_table(
        'instructors',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_instructors_name', 'instructors', ['name'])

    op.create_table(
        'users',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='general'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('instructor_id', sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['instructor_id'], ['instructors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('instructor_id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'groups',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=50), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'label', name='uq_group_year_label'),
    )

    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('group_id', sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_student_code', 'students', ['student_code'], unique=True)
    op.create_index('ix_students_group_id', 'students', ['group_id'])

    op.create_table(
        'subjects',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', subject_category, nullable=False),
        sa.Column('form', class_type, nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('access_pin', sa.String(length=4), nullable=False),
        sa.Column('group_id', sa.BigInteger(), nullable=False),
        sa.Column('registrar_id', sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['registrar_id'], ['instructors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', 'name', 'group_id', name='uq_subject_year_name_group'),
    )
    op.create_index('ix_subjects_group_id', 'subjects', ['group_id'])
    op.create_index('ix_subjects_registrar_id', 'subjects', ['registrar_id'])

    op.create_table(
        'subject_instructors',
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('instructor_id', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['instructor_id'], ['instructors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('subject_id', 'instructor_id'),
    )

    op.create_table(
        'enrollments',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('subject_id', sa.BigInteger(), nullable=False),
        sa.Column('first_score', sa.Integer(), nullable=True),
        sa.Column('second_score', sa.Integer(), nullable=True),
        sa.Column('absences', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subject_id'], ['subjects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'subject_id', name='uq_enrollment_student_subject'),
    )
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_subject_id', 'enrollments', ['subject_id'])


def downgrade() -> None:
    """Drop tables and enum types in dependency order."""
    op.drop_table('enrollments')
    op.drop_table('subject_instructors')
    op.drop_table('subjects')
    op.drop_table('students')
    op.drop_table('groups')
    op.drop_table('users')
    op.drop_table('instructors')

    bind = op.get_bind()
    class_type.drop(bind, checkfirst=True)
    subject_category.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
