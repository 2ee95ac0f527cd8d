"""Shared HTTP infrastructure for Cloudbox API clients."""

from .clients import create_headers_async_client
from .config import (
    DEFAULT_API_HOST,
    DEFAULT_CONTENT_HOST,
    DEFAULT_TIMEOUT,
    ClientConfig,
)

__all__ = [
    "ClientConfig",
    "DEFAULT_API_HOST",
    "DEFAULT_CONTENT_HOST",
    "DEFAULT_TIMEOUT",
    "create_headers_async_client",
]
