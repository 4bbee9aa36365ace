"""Middleware modules for the application."""

from community_analytics.middleware.logging import (
    RequestLoggingMiddleware,
    configure_logging,
    setup_request_logging_middleware,
)


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "setup_request_logging_middleware",
]
