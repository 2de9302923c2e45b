import uuid
from datetime import datetime, timezone

from sqlalchemy import Float, Index, PrimaryKeyConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base

from .enums import ItemType, item_type_enum


class RankingItem(Base):
    """One scored item. Written only by the ranking worker, read by the feed.

    item_id is a soft reference: the card or collection may have been deleted
    since the last run, so readers must re-check existence on hydration.
    """

    __tablename__ = "explore_ranking_items"

    item_type: Mapped[ItemType] = mapped_column(item_type_enum, nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    raw_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # NULL until the normalization pass has covered this row
    norm_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Last raw-score write; the normalization snapshot is taken by this column
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        PrimaryKeyConstraint("item_type", "item_id", name="pk_explore_ranking_items"),
        Index("ix_explore_ranking_items_type_norm", "item_type", "norm_score"),
        Index("ix_explore_ranking_items_updated_at", "updated_at"),
    )
