from shared.middleware.error_handler import error_envelope_middleware
from shared.middleware.request_id import (
    RequestIdLogFilter,
    current_request_id,
    request_id_middleware,
)

__all__ = [
    "request_id_middleware",
    "error_envelope_middleware",
    "RequestIdLogFilter",
    "current_request_id",
]
