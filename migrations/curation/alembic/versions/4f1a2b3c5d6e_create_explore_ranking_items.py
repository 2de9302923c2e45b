"""Create explore_ranking_items for the periodic ranking job.

Revision ID: 4f1a2b3c5d6e
Revises:
Create Date: 2026-10-19 09:00:00.000000

Changes:
  1. Enum type ranking_item_type ('card', 'collection')
  2. Table explore_ranking_items, composite PK (item_type, item_id);
     norm_score stays NULL until the first normalization pass
  3. Indexes: (item_type, norm_score) for feed reads,
     (updated_at) for the normalization snapshot
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ENUM, TIMESTAMP, UUID

revision: str = "4f1a2b3c5d6e"
down_revision: str | None = None
branch_labels = None
depends_on = None

item_type = ENUM("card", "collection", name="ranking_item_type", create_type=False)


def upgrade() -> None:
    item_type.create(op.get_bind(), checkfirst=True)
    op.create_table(
        "explore_ranking_items",
        sa.Column("item_type", item_type, nullable=False),
        sa.Column("item_id", UUID(as_uuid=True), nullable=False),
        sa.Column("raw_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("norm_score", sa.Float(), nullable=True),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("item_type", "item_id", name="pk_explore_ranking_items"),
    )
    op.create_index(
        "ix_explore_ranking_items_type_norm",
        "explore_ranking_items",
        ["item_type", "norm_score"],
    )
    op.create_index(
        "ix_explore_ranking_items_updated_at", "explore_ranking_items", ["updated_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_explore_ranking_items_updated_at", table_name="explore_ranking_items")
    op.drop_index("ix_explore_ranking_items_type_norm", table_name="explore_ranking_items")
    op.drop_table("explore_ranking_items")
    item_type.drop(op.get_bind(), checkfirst=True)
