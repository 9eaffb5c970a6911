"""create schedule events, notifications and activity logs

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


week_day_enum = sa.Enum("LUNI", "MARTI", "MIERCURI", "JOI", "VINERI", name="week_day")
event_type_enum = sa.Enum("C", "S", "L", "P", name="event_type")
event_recurrence_enum = sa.Enum("toate", "para", "impara", name="event_recurrence")
event_status_enum = sa.Enum(
    "DRAFT",
    "PENDING_APPROVAL",
    "APPROVED",
    "REJECTED",
    "PUBLISHED",
    name="event_status",
)
notification_type_enum = sa.Enum("workflow", "system", name="notification_type")


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("day", week_day_enum, nullable=False),
        sa.Column("start_hour", sa.String(length=5), nullable=False),
        sa.Column("end_hour", sa.String(length=5), nullable=False),
        sa.Column("event_type", event_type_enum, nullable=False),
        sa.Column("event_recurrence", event_recurrence_enum, nullable=False, server_default="toate"),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("status", event_status_enum, nullable=False, server_default="DRAFT"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("academic_year_id", sa.String(length=36), nullable=False),
        sa.Column("learning_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("discipline_id", sa.String(length=36), nullable=False),
        sa.Column("classroom_id", sa.String(length=36), nullable=False),
        sa.Column("approved_by_id", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_by_id", sa.String(length=36), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("updated_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    for column in ("status", "academic_year_id", "learning_id", "teacher_id", "discipline_id", "classroom_id"):
        op.create_index(f"ix_events_{column}", "events", [column])

    op.create_table(
        "event_groups",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("event_id", sa.String(length=36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=False),
        sa.UniqueConstraint("event_id", "group_id", name="uq_event_groups_event_group"),
    )
    op.create_index("ix_event_groups_event_id", "event_groups", ["event_id"])
    op.create_index("ix_event_groups_group_id", "event_groups", ["group_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type_enum, nullable=False, server_default="workflow"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_entity", "activity_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_entity", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("event_groups")
    op.drop_table("events")
    bind = op.get_bind()
    for enum in (notification_type_enum, event_status_enum, event_recurrence_enum, event_type_enum, week_day_enum):
        enum.drop(bind, checkfirst=True)
