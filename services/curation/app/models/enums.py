import enum

from sqlalchemy.dialects.postgresql import ENUM as PgEnum


class ItemType(str, enum.Enum):
    """Kinds of rankable content.

    Collections are still called "stacks" by parts of the public API; that name
    is accepted at the HTTP boundary only (see ``from_external``).
    """

    CARD = "card"
    COLLECTION = "collection"

    @classmethod
    def from_external(cls, value: str) -> "ItemType":
        """Resolve a client-supplied type name. Raises ValueError on unknown names."""
        key = value.strip().lower()
        try:
            return _EXTERNAL_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown item type '{value}'.") from None


_EXTERNAL_ALIASES: dict[str, ItemType] = {
    "card": ItemType.CARD,
    "cards": ItemType.CARD,
    "collection": ItemType.COLLECTION,
    "collections": ItemType.COLLECTION,
    "stack": ItemType.COLLECTION,
    "stacks": ItemType.COLLECTION,
}

# cards.status is owned by the cards service; only this value is rankable.
CARD_STATUS_ACTIVE = "active"

# Stored lowercase to match the values already written by the web app.
item_type_enum = PgEnum(
    ItemType,
    name="ranking_item_type",
    create_type=True,
    values_callable=lambda members: [m.value for m in members],
)
