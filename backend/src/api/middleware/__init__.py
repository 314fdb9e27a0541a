"""FastAPI middleware for rate limiting and error handling."""

from .error_handlers import (
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    story_graph_exception_handler,
    validation_exception_handler,
)
from .rate_limit import ClientRateLimiter, enforce_rate_limit, get_rate_limiter

__all__ = [
    "ClientRateLimiter",
    "enforce_rate_limit",
    "get_rate_limiter",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "story_graph_exception_handler",
    "internal_exception_handler",
]
