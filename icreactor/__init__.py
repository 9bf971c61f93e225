"""icreactor: typed calls to Internet Computer canisters with display codecs."""

from loguru import logger

from icreactor.cache import QueryCache, QueryOptions
from icreactor.candid import IDL, Principal
from icreactor.client import ClientManager
from icreactor.display_reactor import DisplayReactor, ValidationResult, from_pydantic_model
from icreactor.reactor import CallConfig, MethodDescriptor, Reactor
from icreactor.utils.exceptions import (
    CallError,
    CanisterError,
    ReactorError,
    ValidationError,
    ValidationIssue,
    is_call_error,
    is_canister_error,
    is_validation_error,
)
from icreactor.utils.logging_utils import add_file_sink, disable_logging, enable_logging

__version__ = "0.1.0"

logger.disable("icreactor")

__all__ = [
    "IDL",
    "CallConfig",
    "CallError",
    "CanisterError",
    "ClientManager",
    "DisplayReactor",
    "MethodDescriptor",
    "Principal",
    "QueryCache",
    "QueryOptions",
    "Reactor",
    "ReactorError",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "add_file_sink",
    "disable_logging",
    "enable_logging",
    "from_pydantic_model",
    "is_call_error",
    "is_canister_error",
    "is_validation_error",
]
