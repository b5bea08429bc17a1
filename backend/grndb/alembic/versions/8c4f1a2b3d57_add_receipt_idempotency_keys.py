"""Add receipt idempotency keys table.

Revision ID: 8c4f1a2b3d57
Revises: 5b1e2c7d9a40
Create Date: 2026-10-19 12:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8c4f1a2b3d57"
down_revision = "5b1e2c7d9a40"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "receipt_idempotency_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column(
            "goods_receipt_id",
            sa.Integer(),
            sa.ForeignKey("goods_receipts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("scope", "key", name="uq_receipt_idempotency_scope_key"),
    )
    op.create_index("ix_receipt_idempotency_keys_id", "receipt_idempotency_keys", ["id"])
    op.create_index("ix_receipt_idempotency_keys_scope", "receipt_idempotency_keys", ["scope"])


def downgrade() -> None:
    op.drop_index("ix_receipt_idempotency_keys_scope", table_name="receipt_idempotency_keys")
    op.drop_index("ix_receipt_idempotency_keys_id", table_name="receipt_idempotency_keys")
    op.drop_table("receipt_idempotency_keys")
