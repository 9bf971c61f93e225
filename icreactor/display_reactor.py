"""Reactor that accepts and returns display-shaped values.

Arguments are validated (optionally) and converted to wire shape before
encoding; results are unwrapped on the wire value and the taken arm's payload
is converted to display shape.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence, Union

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from icreactor.candid.types import ServiceType
from icreactor.client import ClientManager
from icreactor.display.codec import ActorDisplayCodec, DisplayCodecBuilder
from icreactor.display.transform import transform_args_with_codec, transform_result_with_codec
from icreactor.reactor import CallConfig, MethodDescriptor, Reactor
from icreactor.utils.exceptions import (
    ReactorError,
    ValidationError,
    ValidationIssue,
    classify_canister_error,
    sanitize_error_message,
)
from icreactor.utils.result import UnwrapOutcome


@dataclass(slots=True)
class ValidationResult:
    success: bool
    issues: list[ValidationIssue] = field(default_factory=list)


ValidatorReturn = Union[ValidationResult, bool, None]
Validator = Callable[[list[Any]], Union[ValidatorReturn, Awaitable[ValidatorReturn]]]


@dataclass(frozen=True, slots=True)
class MethodCodecs:
    args: ActorDisplayCodec
    result: ActorDisplayCodec


def _normalize(method_name: str, outcome: ValidatorReturn) -> ValidationResult:
    if outcome is None or outcome is True:
        return ValidationResult(True)
    if outcome is False:
        return ValidationResult(False, [ValidationIssue([], f"Invalid arguments for {method_name}")])
    return outcome


def from_pydantic_model(model: type[BaseModel], *, position: int = 0) -> Validator:
    """
    Build a validator checking the argument at ``position`` against ``model``.

    Pydantic errors become :class:`ValidationIssue` objects with the error's
    ``loc`` as path, ``msg`` as message and ``type`` as code.
    """

    def validator(args: list[Any]) -> ValidationResult:
        if position >= len(args):
            return ValidationResult(False, [ValidationIssue([position], "Missing argument")])
        try:
            model.model_validate(args[position])
        except PydanticValidationError as exc:
            issues = [
                ValidationIssue(list(err["loc"]), err["msg"], err["type"])
                for err in exc.errors()
            ]
            return ValidationResult(False, issues)
        return ValidationResult(True)

    return validator


class DisplayReactor(Reactor):
    """
    Reactor speaking display shapes: decimal strings for big integers, text
    principals, hex blobs, ``None`` for absent options and ``_type``-tagged
    variants.
    """

    def __init__(
        self,
        client_manager: ClientManager,
        service: ServiceType,
        *,
        lenient_arg_transform: bool | None = None,
        **kwargs: Any,
    ):
        super().__init__(client_manager, service, **kwargs)
        if lenient_arg_transform is None:
            lenient_arg_transform = client_manager.config.lenient_arg_transform
        self.lenient_arg_transform = lenient_arg_transform
        self._validators: dict[str, Validator] = {}

        builder = DisplayCodecBuilder()
        self._codecs = {
            name: MethodCodecs(
                ActorDisplayCodec(builder.build(method.arg_type)),
                ActorDisplayCodec(builder.build(method.return_type)),
            )
            for name, method in self._methods.items()
        }

    def get_codec(self, method_name: str) -> MethodCodecs | None:
        return self._codecs.get(method_name)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def register_validator(self, method_name: str, validator: Validator) -> None:
        self._validators[method_name] = validator

    def unregister_validator(self, method_name: str) -> None:
        self._validators.pop(method_name, None)

    def has_validator(self, method_name: str) -> bool:
        return method_name in self._validators

    async def validate(self, method_name: str, args: Sequence[Any] | None) -> ValidationResult:
        """Run the method's validator on display-shaped ``args`` without calling."""
        validator = self._validators.get(method_name)
        if validator is None:
            return ValidationResult(True)
        try:
            outcome = validator(list(args or []))
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except ReactorError:
            raise
        except Exception as exc:
            message = sanitize_error_message(str(exc)) or type(exc).__name__
            logger.warning("Validator for {} raised: {}", method_name, message)
            return ValidationResult(False, [ValidationIssue([], message, "VALIDATOR_ERROR")])
        return _normalize(method_name, outcome)

    async def call_method(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        call_config: CallConfig | None = None,
    ) -> Any:
        result = await self.validate(method_name, args)
        if not result.success:
            raise ValidationError(method_name, result.issues)
        return await super().call_method(method_name, args, call_config)

    # ------------------------------------------------------------------
    # Transform hooks
    # ------------------------------------------------------------------

    def transform_args(self, method: MethodDescriptor, args: list[Any]) -> list[Any]:
        result = transform_args_with_codec(self._codecs[method.name].args, args)
        if result.ok:
            return result.value
        if not self.lenient_arg_transform:
            raise result.error
        logger.warning(
            "Could not convert display args for {}, passing them through: {}",
            method.name, sanitize_error_message(str(result.error)),
        )
        return result.value

    def transform_result(self, method: MethodDescriptor, outcome: UnwrapOutcome) -> Any:
        codec = self._codecs[method.name].result
        if outcome.arm is not None and codec.codec.arms:
            codec = ActorDisplayCodec(codec.codec.arms[outcome.arm])
        result = transform_result_with_codec(codec, outcome.value)
        if not result.ok:
            logger.warning(
                "Could not convert result of {} for display, returning it unchanged: {}",
                method.name, sanitize_error_message(str(result.error)),
            )
        if outcome.is_err:
            raise classify_canister_error(result.value)
        return result.value
