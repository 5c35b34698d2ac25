"""create users, exercises, exercise_records, attendance_stats

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision  = "001"
down_revision = None
branch_labels = None
depends_on    = None

user_role = sa.Enum("student", "teacher", name="user_role_enum")
feedback_type = sa.Enum("ai", "teacher", "both", name="feedback_type_enum")
record_status = sa.Enum("submitted", "approved", "rejected", name="record_status_enum")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id",            sa.Integer(),               primary_key=True, autoincrement=True),
        sa.Column("username",      sa.String(80),              nullable=False),
        sa.Column("password_hash", sa.Text(),                  nullable=False),
        sa.Column("role",          user_role,                  nullable=False),
        sa.Column("real_name",     sa.String(120),             nullable=False, server_default=""),
        sa.Column("email",         sa.String(255),             nullable=True),
        sa.Column("student_no",    sa.String(40),              nullable=True),
        sa.Column("class_name",    sa.String(80),              nullable=True),
        sa.Column("created_at",    sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role",     "users", ["role"],     unique=False)

    op.create_table(
        "exercises",
        sa.Column("id",               sa.Integer(),               primary_key=True, autoincrement=True),
        sa.Column("teacher_id",       sa.Integer(),               sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title",            sa.String(200),             nullable=False),
        sa.Column("content",          sa.Text(),                  nullable=False),
        sa.Column("difficulty_level", sa.Integer(),               nullable=False, server_default="1"),
        sa.Column("start_time",       sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time",         sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active",        sa.Boolean(),               nullable=False, server_default=sa.true()),
        sa.Column("created_at",       sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at",       sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("difficulty_level BETWEEN 1 AND 3", name="ck_exercises_difficulty"),
    )
    op.create_index("ix_exercises_teacher_id",      "exercises", ["teacher_id"])
    op.create_index("ix_exercises_teacher_created", "exercises", ["teacher_id", "created_at"])

    op.create_table(
        "exercise_records",
        sa.Column("id",               sa.Integer(),               primary_key=True, autoincrement=True),
        sa.Column("student_id",       sa.Integer(),               sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("exercise_id",      sa.Integer(),               sa.ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False),
        sa.Column("audio_path",       sa.String(500),             nullable=True),
        sa.Column("session_id",       sa.String(64),              nullable=False, unique=True),
        sa.Column("score",            sa.Integer(),               nullable=False, server_default="0"),
        sa.Column("accuracy",         sa.Float(),                 nullable=False, server_default="0"),
        sa.Column("fluency",          sa.Float(),                 nullable=False, server_default="0"),
        sa.Column("integrity",        sa.Float(),                 nullable=False, server_default="0"),
        sa.Column("ai_feedback",      sa.Text(),                  nullable=True),
        sa.Column("teacher_feedback", sa.Text(),                  nullable=True),
        sa.Column("feedback_type",    feedback_type,              nullable=False, server_default="ai"),
        sa.Column("attempt_count",    sa.Integer(),               nullable=False, server_default="1"),
        sa.Column("status",           record_status,              nullable=False, server_default="submitted"),
        sa.Column("submit_time",      sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("reviewer_id",      sa.Integer(),               sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at",      sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_exercise_records_id",             "exercise_records", ["id"])
    op.create_index("ix_exercise_records_student_id",     "exercise_records", ["student_id"])
    op.create_index("ix_exercise_records_exercise_id",    "exercise_records", ["exercise_id"])
    op.create_index("ix_exercise_records_student_submit", "exercise_records", ["student_id", "submit_time"])

    op.create_table(
        "attendance_stats",
        sa.Column("id",                  sa.Integer(),               primary_key=True, autoincrement=True),
        sa.Column("student_id",          sa.Integer(),               sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date",                sa.Date(),                  nullable=False),
        sa.Column("exercises_completed", sa.Integer(),               nullable=False, server_default="0"),
        sa.Column("total_score",         sa.Integer(),               nullable=False, server_default="0"),
        sa.Column("best_score",          sa.Integer(),               nullable=False, server_default="0"),
        sa.Column("updated_at",          sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
    )
    op.create_index("ix_attendance_stats_id",         "attendance_stats", ["id"])
    op.create_index("ix_attendance_stats_student_id", "attendance_stats", ["student_id"])


def downgrade() -> None:
    op.drop_table("attendance_stats")
    op.drop_table("exercise_records")
    op.drop_table("exercises")
    op.drop_index("ix_users_role",     table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    record_status.drop(bind, checkfirst=True)
    feedback_type.drop(bind, checkfirst=True)
    user_role.drop(bind, checkfirst=True)
