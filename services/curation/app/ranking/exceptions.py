"""Ranking domain exceptions (raised by service, caught by controller)."""


class ScoreInputUnavailable(Exception):
    """Counters for an item could not be read (deleted mid-batch, malformed row)."""

    def __init__(self, item_type: object, item_id: object, reason: str = "not found") -> None:
        self.item_type = item_type
        self.item_id = item_id
        super().__init__(f"Score inputs for {item_type} {item_id} unavailable: {reason}")


class EmptyScoreUpdate(Exception):
    """An upsert was requested with neither raw_score nor norm_score."""
