"""Initial schema - progress, submissions, audit log and collaborator tables

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Collaborator tables
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        'classrooms',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        *_timestamps(),
    )

    op.create_table(
        'class_enrollments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('class_id', sa.Uuid(), sa.ForeignKey('classrooms.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint('class_id', 'student_id', name='uq_class_enrollment_class_student'),
    )

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('class_id', sa.Uuid(), sa.ForeignKey('classrooms.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('passing_score', sa.Float(), nullable=True),
        sa.Column('max_attempts', sa.Integer(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'level1_questions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('correct_answer', sa.Boolean(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
    )

    # Progress
    op.create_table(
        'student_quiz_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('current_attempt', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('failed_attempts', sa.Integer(), nullable=False),
        sa.Column('last_attempt_passed', sa.Boolean(), nullable=False),
        sa.Column('assistance_required', sa.String(20), nullable=False),
        sa.Column('level1_completed', sa.Boolean(), nullable=False),
        sa.Column('level2_completed', sa.Boolean(), nullable=False),
        sa.Column('level3_completed', sa.Boolean(), nullable=False),
        sa.Column('level1_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('level2_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('level3_completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('must_retake_main_quiz', sa.Boolean(), nullable=False),
        sa.Column('reset_generation', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('student_id', 'quiz_id', name='uq_student_quiz_progress_student_quiz'),
    )

    # Submissions
    op.create_table(
        'quiz_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('reset_generation', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=True),
        sa.Column('total_questions', sa.Integer(), nullable=True),
        sa.Column('assistance_level', sa.Integer(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            'student_id', 'quiz_id', 'reset_generation', 'attempt_number',
            name='uq_quiz_submissions_attempt',
        ),
    )

    op.create_table(
        'assistance_level1_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('correct_count', sa.Integer(), nullable=False),
        sa.Column('total_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        'ix_assistance_level1_submissions_student_quiz',
        'assistance_level1_submissions',
        ['student_id', 'quiz_id'],
    )

    op.create_table(
        'assistance_level2_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'ix_assistance_level2_submissions_student_quiz',
        'assistance_level2_submissions',
        ['student_id', 'quiz_id'],
    )

    op.create_table(
        'assistance_level3_completions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('granted', sa.Boolean(), nullable=False),
        sa.Column('reading_time_seconds', sa.Integer(), nullable=True),
        sa.Column('actor_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Audit log
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('assistance_level3_completions')
    op.drop_table('assistance_level2_submissions')
    op.drop_table('assistance_level1_submissions')
    op.drop_table('quiz_submissions')
    op.drop_table('student_quiz_progress')
    op.drop_table('level1_questions')
    op.drop_table('quizzes')
    op.drop_table('class_enrollments')
    op.drop_table('classrooms')
    op.drop_table('users')
