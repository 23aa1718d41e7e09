"""assessment orders table and access-pattern indexes

Revision ID: 001_assessment_orders
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_assessment_orders"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "assessment_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("assessment_id", sa.String(36), nullable=False),
        sa.Column("assessment_title", sa.String(512), nullable=False),
        sa.Column("user_email", sa.String(320), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_assessment_orders_price_non_negative"),
        sa.CheckConstraint("length(currency) = 3", name="ck_assessment_orders_currency_len"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'CANCELLED')",
            name="ck_assessment_orders_status",
        ),
    )
    op.create_index("ix_assessment_orders_user_id", "assessment_orders", ["user_id"])
    op.create_index("ix_assessment_orders_assessment_id", "assessment_orders", ["assessment_id"])
    op.create_index("ix_assessment_orders_user_email", "assessment_orders", ["user_email"])
    op.create_index("ix_assessment_orders_status", "assessment_orders", ["status"])
    op.create_index(
        "ix_assessment_orders_status_created_at", "assessment_orders", ["status", "created_at"]
    )
    op.create_index(
        "ix_assessment_orders_user_status_created_at",
        "assessment_orders",
        ["user_id", "status", sa.text("created_at DESC")],
    )
    op.create_index(
        "ix_assessment_orders_created_at_desc", "assessment_orders", [sa.text("created_at DESC")]
    )
    op.create_index("ix_assessment_orders_completed_at", "assessment_orders", ["completed_at"])

    # Trigram indexes back the case-insensitive title/email search on PostgreSQL
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
        op.execute(
            "CREATE INDEX ix_assessment_orders_title_trgm "
            "ON assessment_orders USING gin (assessment_title gin_trgm_ops)"
        )
        op.execute(
            "CREATE INDEX ix_assessment_orders_email_trgm "
            "ON assessment_orders USING gin (user_email gin_trgm_ops)"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP INDEX IF EXISTS ix_assessment_orders_email_trgm")
        op.execute("DROP INDEX IF EXISTS ix_assessment_orders_title_trgm")
    op.drop_table("assessment_orders")
