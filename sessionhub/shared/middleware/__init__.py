"""Custom middleware for SessionHub API.

This module contains custom middleware components
for request processing, logging and error handling.
"""

from .error_handler import (
    ErrorHandlerMiddleware,
    domain_exception_handler,
    status_code_for,
    with_security_headers,
)
from .request_logging import RequestLoggingMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestLoggingMiddleware",
    "domain_exception_handler",
    "status_code_for",
    "with_security_headers",
]
