"""create notification_settings and webhook_logs tables

Revision ID: e9035ab47c18
Revises: c71d05f8a2e6
Create Date: 2026-10-19 09:15:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "e9035ab47c18"
down_revision = "c71d05f8a2e6"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "notification_settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("telegram_chat_id", sa.String(length=64), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_notification_settings_user_id"),
        "notification_settings",
        ["user_id"],
        unique=True,
    )

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=64), nullable=False),
        sa.Column("event", sa.String(length=20), nullable=False),
        sa.Column("provider", sa.String(length=30), nullable=True),
        sa.Column("step", sa.String(length=100), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("processing_time_ms", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_webhook_logs_request_id"), "webhook_logs", ["request_id"])
    op.create_index(op.f("ix_webhook_logs_event"), "webhook_logs", ["event"])
    op.create_index(op.f("ix_webhook_logs_provider"), "webhook_logs", ["provider"])


def downgrade() -> None:
    op.drop_index(op.f("ix_webhook_logs_provider"), table_name="webhook_logs")
    op.drop_index(op.f("ix_webhook_logs_event"), table_name="webhook_logs")
    op.drop_index(op.f("ix_webhook_logs_request_id"), table_name="webhook_logs")
    op.drop_table("webhook_logs")
    op.drop_index(op.f("ix_notification_settings_user_id"), table_name="notification_settings")
    op.drop_table("notification_settings")
