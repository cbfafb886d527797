"""Middleware wrapped around the router."""

from .base import Middleware, NextHandler, wrap
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "NextHandler",
    "wrap",
    "LoggingMiddleware",
    "RequestLog",
]
