"""create promotion and promotion_usage tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "promotion",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("code", sa.String(), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("discount_type", sa.String(), nullable=False),
        sa.Column("discount_value", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("max_discount", sa.DECIMAL(10, 2), nullable=True),
        sa.Column("apply_to", sa.String(), nullable=False),
        sa.Column("product_ids", JSONType, nullable=False),
        sa.Column("category_ids", JSONType, nullable=False),
        sa.Column("customer_ids", JSONType, nullable=False),
        sa.Column("min_purchase", sa.DECIMAL(10, 2), nullable=True),
        sa.Column("min_quantity", sa.Integer(), nullable=True),
        sa.Column("max_quantity", sa.Integer(), nullable=True),
        sa.Column("bogo_config", JSONType, nullable=True),
        sa.Column("free_gift_config", JSONType, nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("per_user_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("can_stack", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stacks_with", JSONType, nullable=False),
        sa.Column("is_ai_generated", sa.Boolean(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=True),
        sa.Column("show_on_website", sa.Boolean(), nullable=True),
        sa.Column("tags", JSONType, nullable=False),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f("ix_promotion_code"), "promotion", ["code"], unique=True)
    op.create_index(op.f("ix_promotion_type"), "promotion", ["type"], unique=False)
    op.create_index(
        "ix_promotion_active_window", "promotion", ["is_active", "start_date", "end_date"]
    )

    op.create_table(
        "promotion_usage",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "promotion_id",
            sa.String(length=36),
            sa.ForeignKey("promotion.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("discount_amount", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("subtotal_before", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("total_after", sa.DECIMAL(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint("promotion_id", "order_id", name="uq_promotion_usage_order"),
    )
    op.create_index(op.f("ix_promotion_usage_id"), "promotion_usage", ["id"], unique=False)
    op.create_index(op.f("ix_promotion_usage_user_id"), "promotion_usage", ["user_id"], unique=False)
    op.create_index(op.f("ix_promotion_usage_order_id"), "promotion_usage", ["order_id"], unique=False)
    op.create_index(op.f("ix_promotion_usage_created_at"), "promotion_usage", ["created_at"], unique=False)
    op.create_index(
        "ix_promotion_usage_promotion_user", "promotion_usage", ["promotion_id", "user_id"]
    )


def downgrade() -> None:
    op.drop_table("promotion_usage")
    op.drop_table("promotion")
