"""
Global slowapi rate limiter for the public feed.

Mounted onto app.state in main.py so slowapi middleware can find it.

Storage: RATE_LIMIT_STORAGE_URI, e.g. the service's Redis. Defaults to
in-memory, which limits per process only.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

FEED_RATE_LIMIT = os.getenv("FEED_RATE_LIMIT", "120/minute")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
)
