"""
PencilX Shared Utilities
Common utility functions and classes used across the gateway
"""

from .config import Settings, get_settings
from .errors import (
    ErrorResponse,
    PencilXException,
    ServiceUnavailableError,
)
from .logger import get_logger

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Logging
    "get_logger",
    # Errors
    "ErrorResponse",
    "PencilXException",
    "ServiceUnavailableError",
]
