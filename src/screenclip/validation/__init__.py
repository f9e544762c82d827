"""
Validation and error handling for the screenclip package.

This module provides the error taxonomy, input validation and the shared
error logging helpers used at component boundaries.
"""

from .exceptions import (
    ClipboardWriteError,
    ConfigurationError,
    ErrorSeverity,
    FileAccessError,
    NotificationError,
    ScreenclipError,
    ServiceInstallError,
    ValidationError,
    WatchLostError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_file_error,
)
from .strategies import ExponentialBackoff
from .validators import (
    validate_boolean,
    validate_enum_choice,
    validate_extensions,
    validate_log_level,
    validate_positive_float,
    validate_positive_integer,
)

__all__ = [
    # Errors
    "ScreenclipError",
    "ValidationError",
    "ConfigurationError",
    "WatchLostError",
    "FileAccessError",
    "ClipboardWriteError",
    "NotificationError",
    "ServiceInstallError",
    "ErrorSeverity",
    # Handlers
    "handle_error",
    "handle_config_error",
    "handle_file_error",
    "handle_cli_error",
    # Strategies
    "ExponentialBackoff",
    # Validators
    "validate_boolean",
    "validate_enum_choice",
    "validate_extensions",
    "validate_log_level",
    "validate_positive_float",
    "validate_positive_integer",
]
