from app.models.attribution import CardAttribution
from app.models.card import Card
from app.models.collection import Collection, Tag, collection_tags
from app.models.enums import ItemType
from app.models.ranking import RankingItem
from app.models.user import User

__all__ = [
    "User",
    "Card",
    "Collection",
    "Tag",
    "collection_tags",
    "CardAttribution",
    "RankingItem",
    "ItemType",
]
