"""Utility functions for icreactor."""

from icreactor.utils.helpers import generate_key, stringify_stable
from icreactor.utils.exceptions import (
    CallError,
    CanisterError,
    ErrorCategory,
    ReactorError,
    ValidationError,
    classify_exception,
    sanitize_error_message,
)
from icreactor.utils.logging_utils import add_file_sink, disable_logging, enable_logging

__all__ = [
    "generate_key",
    "stringify_stable",
    "CallError",
    "CanisterError",
    "ErrorCategory",
    "ReactorError",
    "ValidationError",
    "classify_exception",
    "sanitize_error_message",
    "add_file_sink",
    "disable_logging",
    "enable_logging",
]
