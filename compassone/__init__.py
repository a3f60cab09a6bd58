"""compassone: resilient async client for the CompassOne REST API.

Exposes the client facade and the configuration/error types most callers need.
"""

from compassone.core.client import CompassOneClient, Session
from compassone.domain.models.config import ClientConfig
from compassone.domain.errors import (
    CompassOneError,
    ConfigurationError,
    ApiError,
    RetryExhausted,
)

__version__ = "1.0.0"

__all__ = [
    "CompassOneClient",
    "Session",
    "ClientConfig",
    "CompassOneError",
    "ConfigurationError",
    "ApiError",
    "RetryExhausted",
    "__version__",
]
