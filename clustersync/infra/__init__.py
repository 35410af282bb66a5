"""Internal machinery: HTTP transport and retries."""

from .http import (
    Auth,
    BasicAuth,
    BearerAuth,
    HttpClient,
    HttpError,
)
from .retry import on_status_code, retry

__all__ = [
    "Auth",
    "BasicAuth",
    "BearerAuth",
    "HttpClient",
    "HttpError",
    "on_status_code",
    "retry",
]
