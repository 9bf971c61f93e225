"""
Exception hierarchy and error classification for icreactor.

Provides:
- A base error carrying a code, a category and details
- Call-level failures (transport, protocol rejection, certificate problems)
- Canister business errors unwrapped from ``Err`` result arms
- Pre-call argument validation errors
- Safe error message formatting (no sensitive data leak)
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from icreactor.utils.helpers import DISCRIMINANT, json_to_string

UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"


class ReactorError(Exception):
    """Base exception for all icreactor errors."""

    def __init__(
        self,
        message: str,
        code: str = UNKNOWN_ERROR,
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class CodecError(ReactorError):
    """A value did not match the shape a display codec expects."""

    def __init__(self, codec: str, message: str, value: Any = None):
        super().__init__(
            f"{codec}: {message}",
            code="CODEC_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"codec": codec, "value_type": type(value).__name__},
        )
        self.codec = codec


# ---------------------------------------------------------------------------
# Call errors
# ---------------------------------------------------------------------------


class CallError(ReactorError):
    """Failure calling the canister: network, agent, protocol or decode problems."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        *,
        code: str = "CALL_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, category=category, details=details)
        self.cause = cause


class MethodNotFoundError(CallError):
    """The bound interface declares no method with the requested name."""

    def __init__(self, method_name: str, canister_id: str | None = None):
        super().__init__(
            f"Method {method_name} not found",
            code="METHOD_NOT_FOUND",
            category=ErrorCategory.NOT_FOUND,
            details={"method_name": method_name, "canister_id": canister_id},
        )
        self.method_name = method_name


@dataclass(slots=True)
class CallContext:
    """Where a rejected call was headed, attached for diagnosability."""

    canister_id: str
    method_name: str
    http_details: Any = None


@dataclass(slots=True)
class RejectionInfo:
    """Structured rejection produced by the response processor."""

    request_id: bytes | None
    reject_code: int
    reject_message: str
    error_code: str | None = None
    call_context: CallContext | None = None
    signatures: list[Any] = field(default_factory=list)


class RejectError(CallError):
    """The replica rejected the call (certified or uncertified)."""

    def __init__(self, rejection: RejectionInfo, *, certified: bool):
        ctx = rejection.call_context
        where = f" calling {ctx.canister_id}.{ctx.method_name}" if ctx else ""
        kind = "Certified" if certified else "Uncertified"
        message = (
            f"{kind} reject{where}: code={rejection.reject_code} "
            f"message={rejection.reject_message!r}"
        )
        if rejection.error_code:
            message += f" error_code={rejection.error_code}"
        super().__init__(
            message,
            code="CALL_REJECTED",
            details={
                "reject_code": rejection.reject_code,
                "reject_message": rejection.reject_message,
                "error_code": rejection.error_code,
                "certified": certified,
            },
        )
        self.rejection = rejection
        self.certified = certified

    @property
    def reject_code(self) -> int:
        return self.rejection.reject_code

    @property
    def reject_message(self) -> str:
        return self.rejection.reject_message

    @property
    def error_code(self) -> str | None:
        return self.rejection.error_code

    @property
    def call_context(self) -> CallContext | None:
        return self.rejection.call_context


class MissingRootKeyError(CallError):
    """No trusted root key is available to verify a certificate."""

    def __init__(self) -> None:
        super().__init__(
            "Agent is missing the trusted root key; cannot verify certificate",
            code="MISSING_ROOT_KEY",
        )


class CertificateVerificationError(CallError):
    """A certificate failed verification against the trusted root key."""

    def __init__(self, canister_id: str, cause: BaseException | None = None):
        reason = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Certificate verification failed for {canister_id}{reason}",
            cause,
            code="CERTIFICATE_INVALID",
            details={"canister_id": canister_id},
        )


class UnexpectedResponseError(CallError):
    """The transport response fits none of the known reply shapes."""

    def __init__(self, message: str, call_context: CallContext | None = None):
        super().__init__(message, code="UNEXPECTED_RESPONSE")
        self.call_context = call_context


class PollingTimeoutError(CallError):
    """The polling policy gave up before the request reached a terminal status."""

    def __init__(self, context: str, attempts: int, elapsed_ms: float):
        super().__init__(
            f"Polling for {context} gave up after {attempts} attempts ({int(elapsed_ms)}ms)",
            code="POLLING_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"context": context, "attempts": attempts, "elapsed_ms": int(elapsed_ms)},
        )


# ---------------------------------------------------------------------------
# Canister (business) errors
# ---------------------------------------------------------------------------


def is_api_error(error: Any) -> bool:
    """True when the payload looks like ``{code, message, details}``."""
    return isinstance(error, dict) and all(k in error for k in ("code", "message", "details"))


class CanisterError(ReactorError):
    """
    The canister answered with the failure arm of a result.

    ``err`` holds the raw typed payload. ``code``, ``message`` and ``details``
    are derived from it:

    1. a ``code`` string field makes it a structured API error;
    2. else a ``_type`` discriminant (display-shaped variant) becomes the code;
    3. else a single-key object (wire-shaped variant) uses its key as the code;
    4. else the code is ``UNKNOWN_ERROR``.
    """

    def __init__(self, err: Any):
        code: str | None = None
        message: str | None = None
        details: Any = None
        is_api_shape = False

        if isinstance(err, dict):
            if isinstance(err.get("code"), str):
                code = err["code"]
                is_api_shape = True
                if isinstance(err.get("message"), str):
                    message = err["message"]
                if "details" in err:
                    details = err["details"]
            elif isinstance(err.get(DISCRIMINANT), str):
                code = err[DISCRIMINANT]
            elif len(err) == 1:
                code = next(iter(err))

        if message is None:
            message = json_to_string(err) if isinstance(err, (dict, list, tuple)) else str(err)

        super().__init__(
            message if is_api_shape else f"Canister Error: {message}",
            code=code or UNKNOWN_ERROR,
            category=ErrorCategory.RECOVERABLE,
        )
        self.err = err
        self.details = details

    @classmethod
    def create(cls, error: Any, message: str | None = None) -> CanisterError:
        """Wrap any error; already-classified errors pass through."""
        if isinstance(error, CanisterError):
            return error
        if is_api_error(error):
            return cls(error)
        if isinstance(error, BaseException):
            text = str(error)
        else:
            text = message or "An unknown error occurred"
        return cls({"code": UNKNOWN_ERROR, "message": text, "details": None})


def classify_canister_error(payload: Any) -> CanisterError:
    """Classify a failure-arm payload; idempotent for classified errors."""
    if isinstance(payload, CanisterError):
        return payload
    return CanisterError(payload)


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ValidationIssue:
    """A single validation issue."""

    path: list[str | int]
    message: str
    code: str | None = None


class ValidationError(ReactorError):
    """Argument validation failed before any network activity."""

    def __init__(self, method_name: str, issues: list[ValidationIssue]):
        messages = ", ".join(issue.message for issue in issues)
        super().__init__(
            f'Validation failed for "{method_name}": {messages}',
            code="VALIDATION_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"method_name": method_name, "issues": [issue.path for issue in issues]},
        )
        self.method_name = method_name
        self.issues = list(issues)

    def get_issues_for_path(self, path: str | int) -> list[ValidationIssue]:
        return [issue for issue in self.issues if path in issue.path]

    def has_error_for_path(self, path: str | int) -> bool:
        return any(path in issue.path for issue in self.issues)


def is_canister_error(error: Any) -> bool:
    return isinstance(error, CanisterError)


def is_call_error(error: Any) -> bool:
    return isinstance(error, CallError)


def is_validation_error(error: Any) -> bool:
    return isinstance(error, ValidationError)


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------

_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth|delegation)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"[a-fA-F0-9]{64,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    if isinstance(exc, ReactorError):
        return exc.code, exc.category, exc.category in (ErrorCategory.RETRYABLE, ErrorCategory.RATE_LIMIT)

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, ValueError):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    if isinstance(exc, KeyError):
        return "MISSING_KEY", ErrorCategory.VALIDATION, False

    if isinstance(exc, TypeError):
        return "TYPE_ERROR", ErrorCategory.VALIDATION, False

    exc_str = str(exc).lower()
    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
