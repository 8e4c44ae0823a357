"""add offer_notification_logs, vendor_metrics and notifications tables

Revision ID: c4d5e6f7a8b9
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op


revision: str = "c4d5e6f7a8b9"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS offer_notification_logs (
            id SERIAL PRIMARY KEY,
            offer_id INTEGER NOT NULL REFERENCES offers(id) ON DELETE CASCADE,
            subscriber_id INTEGER NOT NULL,
            notification_type VARCHAR(50) NOT NULL,
            sent_at TIMESTAMP WITHOUT TIME ZONE NOT NULL DEFAULT (NOW() AT TIME ZONE 'utc'),
            CONSTRAINT uq_offer_subscriber_notification UNIQUE (offer_id, subscriber_id, notification_type)
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_offer_notification_logs_sent_at ON offer_notification_logs (sent_at)"
    )
    op.execute("""
        CREATE TABLE IF NOT EXISTS vendor_metrics (
            vendor_id INTEGER PRIMARY KEY REFERENCES vendors(id) ON DELETE CASCADE,
            total_orders INTEGER NOT NULL DEFAULT 0,
            completed_orders INTEGER NOT NULL DEFAULT 0,
            repeat_customers INTEGER NOT NULL DEFAULT 0,
            unique_customers INTEGER NOT NULL DEFAULT 0,
            avg_rating DOUBLE PRECISION NOT NULL DEFAULT 0,
            quality_score DOUBLE PRECISION NOT NULL DEFAULT 0,
            is_top BOOLEAN NOT NULL DEFAULT FALSE,
            computed_at TIMESTAMP WITHOUT TIME ZONE NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL,
            title VARCHAR(255) NOT NULL,
            body VARCHAR(1000) NOT NULL,
            type VARCHAR(50) NOT NULL DEFAULT 'info',
            data JSON,
            created_at TIMESTAMP WITHOUT TIME ZONE NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_notifications_user_id ON notifications (user_id)")


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_notifications_user_id")
    op.execute("DROP TABLE IF EXISTS notifications")
    op.execute("DROP TABLE IF EXISTS vendor_metrics")
    op.execute("DROP INDEX IF EXISTS ix_offer_notification_logs_sent_at")
    op.execute("DROP TABLE IF EXISTS offer_notification_logs")
