"""Core module with logging, middleware, and exception handling."""

from dzzenos_api.core.exceptions import setup_exception_handlers
from dzzenos_api.core.logging import get_logger, setup_logging
from dzzenos_api.core.middleware import RequestContextMiddleware, get_client_ip

__all__ = [
    "get_logger",
    "setup_logging",
    "RequestContextMiddleware",
    "get_client_ip",
    "setup_exception_handlers",
]
