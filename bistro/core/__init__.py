"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from bistro.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from bistro.core.errors import (
    BistroError,
    ValidationError,
    AuthenticationRequired,
    Forbidden,
    NotFound,
    TransientIOError,
    PaymentProviderError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "BistroError",
    "ValidationError",
    "AuthenticationRequired",
    "Forbidden",
    "NotFound",
    "TransientIOError",
    "PaymentProviderError",
]
