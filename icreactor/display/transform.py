"""Call-boundary transforms between display and wire arguments/results.

Transforms never raise: they return a :class:`TransformResult` and the caller
decides whether a failure falls back to the untouched input or aborts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

from icreactor.display.codec import ActorDisplayCodec
from icreactor.utils.exceptions import ReactorError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TransformResult(Generic[T]):
    """Outcome of a transform: the converted value, or the error plus the original input."""

    value: T
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


def _attempt(fn, value: Any, original: Any) -> TransformResult:
    try:
        return TransformResult(fn(value))
    except (ReactorError, ValueError, TypeError, KeyError, IndexError, AttributeError) as exc:
        return TransformResult(original, exc)


def transform_args_with_codec(codec: ActorDisplayCodec, args: Sequence[Any] | None) -> TransformResult[list]:
    """
    Display arguments -> wire arguments.

    ``codec`` is built from the method's argument list collapsed into a single
    node: the lone type for one argument, a tuple for several.
    """
    if not args:
        return TransformResult(list(args or []))
    args = list(args)
    if len(args) == 1:
        return _attempt(lambda a: [codec.as_candid(a[0])], args, args)
    return _attempt(lambda a: list(codec.as_candid(a)), args, args)


def transform_result_with_codec(codec: ActorDisplayCodec, result: Any) -> TransformResult[Any]:
    """Wire result -> display result; ``None`` passes through."""
    if result is None:
        return TransformResult(None)
    return _attempt(codec.as_display, result, result)
