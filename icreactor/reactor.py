"""Call executor: resolve a method, encode, dispatch, decode, unwrap.

``Reactor`` works on wire-shaped values. :class:`~icreactor.display_reactor.DisplayReactor`
overrides the two transform hooks to speak display shapes instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Sequence

from loguru import logger

from icreactor.agent.polling import PollingPolicy, TieredPollingPolicy
from icreactor.agent.response import process_query_response, process_update_response
from icreactor.agent.types import CallRequest, QueryRequest
from icreactor.cache import QueryKey, QueryOptions
from icreactor.candid.principal import Principal
from icreactor.candid.types import QUERY_ANNOTATIONS, FuncType, IdlType, ServiceType, type_from_list
from icreactor.client import ClientManager
from icreactor.utils.exceptions import (
    CallError,
    CanisterError,
    MethodNotFoundError,
    ReactorError,
    ValidationError,
    classify_canister_error,
    classify_exception,
    sanitize_error_message,
)
from icreactor.utils.helpers import generate_key
from icreactor.utils.result import UnwrapOutcome, unwrap_result


@dataclass(frozen=True, slots=True)
class MethodDescriptor:
    """One service method: argument/return type lists and annotations."""

    name: str
    arg_types: tuple[IdlType, ...] = ()
    ret_types: tuple[IdlType, ...] = ()
    annotations: tuple[str, ...] = ()

    @classmethod
    def from_func(cls, name: str, func: FuncType) -> MethodDescriptor:
        return cls(name, func.arg_types, func.ret_types, func.annotations)

    @property
    def is_query(self) -> bool:
        return any(a in QUERY_ANNOTATIONS for a in self.annotations)

    @property
    def arg_type(self) -> IdlType:
        return type_from_list(self.arg_types)

    @property
    def return_type(self) -> IdlType:
        return type_from_list(self.ret_types)


@dataclass(frozen=True, slots=True)
class CallConfig:
    """Per-call overrides forwarded into the transport request."""

    effective_canister_id: Principal | str | None = None
    nonce: bytes | None = None


def _collapse(values: Sequence[Any]) -> Any:
    if len(values) == 0:
        return None
    if len(values) == 1:
        return values[0]
    return tuple(values)


class Reactor:
    """
    Executes calls against one canister.

    Args:
        client_manager: Shared transport, wire codec, verifier, root key and cache.
        service: The canister's service type.
        canister_id: Target canister; falls back to the id registered or
            configured under ``name``.
        name: Human name of the canister, used for configuration lookup.
        polling_policy: Overrides the configured policy for update calls.
    """

    def __init__(
        self,
        client_manager: ClientManager,
        service: ServiceType,
        *,
        canister_id: Principal | str | None = None,
        name: str | None = None,
        polling_policy: PollingPolicy | TieredPollingPolicy | None = None,
    ):
        self.client = client_manager
        self.service = service
        self.name = name
        self.polling_policy = polling_policy or client_manager.polling_policy
        self._methods = {n: MethodDescriptor.from_func(n, f) for n, f in service.methods}

        if canister_id is None and name:
            canister_id = client_manager.resolve_canister_id(name)
        if canister_id is None:
            raise ReactorError(
                f"No canister id given and none configured for {name or 'this reactor'}",
                code="CANISTER_ID_MISSING",
            )
        self.canister_id = client_manager.register_canister_id(canister_id, name)

    # ------------------------------------------------------------------
    # Service introspection
    # ------------------------------------------------------------------

    def get_service_interface(self) -> ServiceType:
        return self.service

    @property
    def method_names(self) -> list[str]:
        return list(self._methods)

    def get_method(self, method_name: str) -> MethodDescriptor:
        method = self._methods.get(method_name)
        if method is None:
            raise MethodNotFoundError(method_name, self.canister_id.to_text())
        return method

    def is_query_method(self, method_name: str) -> bool:
        method = self._methods.get(method_name)
        return bool(method and method.is_query)

    def set_canister_id(self, canister_id: Principal | str) -> None:
        """Point the reactor at another canister; cached queries keep their old keys."""
        self.canister_id = self.client.register_canister_id(canister_id, self.name)

    def set_canister_name(self, name: str) -> None:
        self.name = name
        self.client.register_canister_id(self.canister_id, name)

    # ------------------------------------------------------------------
    # Transform hooks
    # ------------------------------------------------------------------

    def transform_args(self, method: MethodDescriptor, args: list[Any]) -> list[Any]:
        return args

    def transform_result(self, method: MethodDescriptor, outcome: UnwrapOutcome) -> Any:
        if outcome.is_err:
            raise classify_canister_error(outcome.value)
        return outcome.value

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call_method(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        call_config: CallConfig | None = None,
    ) -> Any:
        """
        Call ``method_name`` with ``args`` and return its (unwrapped) result.

        Raises:
            CanisterError: The method answered with the ``Err`` arm of a result.
            CallError: Unknown method, rejection, or any transport/encode/decode failure.
        """
        try:
            method = self.get_method(method_name)
            wire_args = self.transform_args(method, list(args or []))
            arg_bytes = self.client.wire.encode(method.arg_types, wire_args)

            logger.debug(
                "{} {}.{}",
                "query" if method.is_query else "update",
                self.canister_id.to_text(),
                method_name,
            )
            if method.is_query:
                reply = await self._execute_query(method, arg_bytes, call_config)
            else:
                reply = await self._execute_call(method, arg_bytes, call_config)

            decoded = _collapse(self.client.wire.decode(method.ret_types, reply))
            outcome = unwrap_result(decoded, method.return_type)
            return self.transform_result(method, outcome)
        except (CanisterError, ValidationError, CallError) as exc:
            logger.debug("{}.{} failed: {}", self.canister_id.to_text(), method_name,
                         sanitize_error_message(str(exc)))
            raise
        except Exception as exc:
            code, category, retryable = classify_exception(exc)
            raise CallError(
                f'Failed to call method "{method_name}": {exc}',
                exc,
                category=category,
                details={"cause_code": code, "retryable": retryable},
            ) from exc

    def _effective_canister_id(self, call_config: CallConfig | None) -> Principal:
        if call_config is not None and call_config.effective_canister_id is not None:
            return Principal.from_value(call_config.effective_canister_id)
        return self.canister_id

    async def _execute_query(
        self, method: MethodDescriptor, arg_bytes: bytes, call_config: CallConfig | None = None
    ) -> bytes:
        response = await self.client.transport.query(
            self.canister_id,
            QueryRequest(method.name, arg_bytes, effective_canister_id=self._effective_canister_id(call_config)),
        )
        return process_query_response(response, self.canister_id, method.name)

    async def _execute_call(
        self, method: MethodDescriptor, arg_bytes: bytes, call_config: CallConfig | None = None
    ) -> bytes:
        submitted = await self.client.transport.call(
            self.canister_id,
            CallRequest(
                method.name,
                arg_bytes,
                effective_canister_id=self._effective_canister_id(call_config),
                nonce=call_config.nonce if call_config else None,
            ),
        )
        return await process_update_response(
            submitted,
            self.canister_id,
            method.name,
            transport=self.client.transport,
            verifier=self.client.verifier,
            root_key=self.client.root_key,
            polling_policy=self.polling_policy,
        )

    # ------------------------------------------------------------------
    # Query cache integration
    # ------------------------------------------------------------------

    def generate_query_key(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        query_key: Iterable[Hashable] | None = None,
    ) -> QueryKey:
        """``(canister_id, method, args_key?, *query_key)``."""
        key: list[Hashable] = [self.canister_id.to_text(), method_name]
        if args is not None:
            key.append(generate_key(list(args)))
        key.extend(query_key or ())
        return tuple(key)

    def get_query_options(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        query_key: Iterable[Hashable] | None = None,
    ) -> QueryOptions:
        async def query_fn() -> Any:
            return await self.call_method(method_name, args)

        return QueryOptions(self.generate_query_key(method_name, args, query_key), query_fn)

    async def fetch_query(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        query_key: Iterable[Hashable] | None = None,
    ) -> Any:
        """Cached result, calling the canister on a miss."""
        options = self.get_query_options(method_name, args, query_key)
        return await self.client.query_cache.ensure_query_data(options)

    def get_query_data(
        self,
        method_name: str,
        args: Sequence[Any] | None = None,
        query_key: Iterable[Hashable] | None = None,
    ) -> Any:
        return self.client.query_cache.get(self.generate_query_key(method_name, args, query_key))

    def invalidate_queries(
        self,
        method_name: str | None = None,
        args: Sequence[Any] | None = None,
        query_key: Iterable[Hashable] | None = None,
    ) -> int:
        """Drop cached results for a method (or the whole canister when no method is given)."""
        if method_name is None:
            prefix: QueryKey = (self.canister_id.to_text(),)
        else:
            prefix = self.generate_query_key(method_name, args, query_key)
        return self.client.query_cache.invalidate(prefix)
