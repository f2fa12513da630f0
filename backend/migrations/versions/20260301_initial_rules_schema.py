"""initial academic rules schema

Revision ID: 20260301_initial
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260301_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STUDENT_STATUS = sa.Enum("active", "inactive", name="studentstatusenum")
COURSE_CATEGORY = sa.Enum("regular", "professional_practice", name="coursecategoryenum")
PERIOD_HALF = sa.Enum("first", "second", name="periodhalfenum")
ENROLLMENT_STATE = sa.Enum("enrolled", "withdrawn", name="enrollmentstateenum")
CLASS_TYPE = sa.Enum("theory", "practice", name="classtypeenum")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_role", "user", ["role"])

    op.create_table(
        "teacher",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("first_names", sa.String(), nullable=False),
        sa.Column("last_names", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("specialty", sa.String(), nullable=True),
    )
    op.create_index("ix_teacher_user_id", "teacher", ["user_id"])

    op.create_table(
        "student",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("first_names", sa.String(), nullable=False),
        sa.Column("last_names", sa.String(), nullable=False),
        sa.Column("current_cycle", sa.Integer(), nullable=False),
        sa.Column("accumulated_credits", sa.Integer(), nullable=False),
        sa.Column("cumulative_average", sa.Numeric(6, 2), nullable=True),
        sa.Column("semester_average", sa.Numeric(6, 2), nullable=True),
        sa.Column("status", STUDENT_STATUS, nullable=False),
    )
    op.create_index("ix_student_user_id", "student", ["user_id"])
    op.create_index("ix_student_code", "student", ["code"], unique=True)

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("weekly_hours", sa.Integer(), nullable=False),
        sa.Column("cycle", sa.Integer(), nullable=False),
        sa.Column("teacher_id", sa.Integer(), sa.ForeignKey("teacher.id"), nullable=True),
        sa.Column("category", COURSE_CATEGORY, nullable=False),
    )
    op.create_index("ix_course_code", "course", ["code"], unique=True)
    op.create_index("ix_course_cycle", "course", ["cycle"])
    op.create_index("ix_course_teacher_id", "course", ["teacher_id"])

    op.create_table(
        "courseprerequisite",
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), primary_key=True),
        sa.Column("prerequisite_course_id", sa.Integer(), sa.ForeignKey("course.id"), primary_key=True),
    )

    op.create_table(
        "period",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("half", PERIOD_HALF, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_period_name", "period", ["name"], unique=True)
    op.create_index("ix_period_year", "period", ["year"])
    op.create_index("ix_period_active", "period", ["active"])

    op.create_table(
        "enrollment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("period_id", sa.Integer(), sa.ForeignKey("period.id"), nullable=False),
        sa.Column("state", ENROLLMENT_STATE, nullable=False),
        sa.Column("final_grade", sa.Numeric(9, 6), nullable=True),
        sa.Column("authorized", sa.Boolean(), nullable=False),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("student_id", "course_id", "period_id", name="uq_enrollment_student_course_period"),
    )
    op.create_index("ix_enrollment_student_id", "enrollment", ["student_id"])
    op.create_index("ix_enrollment_course_id", "enrollment", ["course_id"])
    op.create_index("ix_enrollment_period_id", "enrollment", ["period_id"])
    op.create_index("ix_enrollment_state", "enrollment", ["state"])

    op.create_table(
        "evaluationtype",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("weight", sa.Numeric(5, 2), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_evaluationtype_course_id", "evaluationtype", ["course_id"])

    op.create_table(
        "gradeentry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enrollment_id", sa.Integer(), sa.ForeignKey("enrollment.id"), nullable=False),
        sa.Column("evaluation_type", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Numeric(5, 2), nullable=False),
        sa.Column("weight", sa.Numeric(5, 2), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.UniqueConstraint("enrollment_id", "evaluation_type", name="uq_grade_entry_evaluation"),
    )
    op.create_index("ix_gradeentry_enrollment_id", "gradeentry", ["enrollment_id"])

    op.create_table(
        "attendancerecord",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("class_type", CLASS_TYPE, nullable=False),
        sa.Column("present", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("student_id", "course_id", "session_date", "class_type", name="uq_attendance_session"),
    )
    op.create_index("ix_attendancerecord_student_id", "attendancerecord", ["student_id"])
    op.create_index("ix_attendancerecord_course_id", "attendancerecord", ["course_id"])

    op.create_table(
        "scheduleslot",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("room", sa.String(length=50), nullable=True),
        sa.Column("slot_type", CLASS_TYPE, nullable=False),
    )
    op.create_index("ix_scheduleslot_course_id", "scheduleslot", ["course_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("student.id"), nullable=True),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("payload", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])
    op.create_index("ix_notification_student_id", "notification", ["student_id"])
    op.create_index("ix_notification_kind", "notification", ["kind"])


def downgrade() -> None:
    for table in (
        "notification",
        "scheduleslot",
        "attendancerecord",
        "gradeentry",
        "evaluationtype",
        "enrollment",
        "period",
        "courseprerequisite",
        "course",
        "student",
        "teacher",
        "user",
    ):
        op.drop_table(table)
