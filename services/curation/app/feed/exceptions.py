"""Feed domain exceptions (raised by service, caught by controller)."""


class InvalidMixError(ValueError):
    """The `mix` parameter could not be parsed into a usable ratio."""


class InvalidFeedTypeError(ValueError):
    """The `type` parameter names no known feed type."""
