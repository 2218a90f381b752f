"""Rate limiting configuration for the application.

This module configures the slowapi limiter shared by the API routers.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from sessionhub.core.config import (
    Environment,
    settings,
)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=settings.RATE_LIMIT_ENDPOINTS["default"],
    enabled=settings.APP_ENV != Environment.TEST,
)
