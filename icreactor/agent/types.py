"""Transport-facing data model and the collaborator protocols the core consumes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Awaitable, Protocol, Sequence, runtime_checkable

from icreactor.candid.principal import Principal
from icreactor.candid.types import IdlType


class RejectCode(IntEnum):
    SYS_FATAL = 1
    SYS_TRANSIENT = 2
    DESTINATION_INVALID = 3
    CANISTER_REJECT = 4
    CANISTER_ERROR = 5
    SYS_UNKNOWN = 6


class QueryResponseStatus(str, Enum):
    REPLIED = "replied"
    REJECTED = "rejected"


class RequestStatus(str, Enum):
    """Request status as found under ``request_status/<id>/status``."""
    RECEIVED = "received"
    PROCESSING = "processing"
    REPLIED = "replied"
    REJECTED = "rejected"
    DONE = "done"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: bytes | str | None) -> RequestStatus:
        if raw is None:
            return cls.UNKNOWN
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else str(raw)
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


@dataclass(slots=True)
class QueryRequest:
    method_name: str
    arg: bytes
    effective_canister_id: Principal | None = None


@dataclass(slots=True)
class CallRequest:
    method_name: str
    arg: bytes
    effective_canister_id: Principal | None = None
    nonce: bytes | None = None


@dataclass(slots=True)
class QueryResponse:
    status: QueryResponseStatus
    reply: bytes | None = None
    request_id: bytes | None = None
    reject_code: int = 0
    reject_message: str = ""
    error_code: str | None = None
    signatures: list[Any] = field(default_factory=list)
    http_details: Any = None


@dataclass(slots=True)
class CertifiedBody:
    """Synchronous update reply body embedding a certificate."""
    certificate: bytes


@dataclass(slots=True)
class RejectBody:
    """Uncertified update rejection body (older protocol variant)."""
    reject_code: int
    reject_message: str
    error_code: str | None = None


@dataclass(slots=True)
class HttpDetails:
    status: int
    status_text: str = ""
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: CertifiedBody | RejectBody | None = None

    @property
    def accepted(self) -> bool:
        return self.status == 202


@dataclass(slots=True)
class SubmitResponse:
    request_id: bytes
    response: HttpDetails
    request_details: dict[str, Any] | None = None


@runtime_checkable
class Certificate(Protocol):
    def lookup(self, path: Sequence[bytes]) -> bytes | None: ...


class CertificateVerifier(Protocol):
    """Verifies certificate bytes against a trusted root key (sync or async)."""

    def verify(
        self, certificate: bytes, root_key: bytes, canister_id: Principal
    ) -> Certificate | Awaitable[Certificate]: ...


class Transport(Protocol):
    async def query(self, canister_id: Principal, request: QueryRequest) -> QueryResponse: ...

    async def call(self, canister_id: Principal, request: CallRequest) -> SubmitResponse: ...

    async def read_state(self, canister_id: Principal, paths: Sequence[Sequence[bytes]]) -> bytes:
        """Return certificate bytes covering ``paths``."""
        ...


class WireCodec(Protocol):
    """Candid wire encoding, supplied by the host application."""

    def encode(self, types: Sequence[IdlType], values: Sequence[Any]) -> bytes: ...

    def decode(self, types: Sequence[IdlType], data: bytes) -> list[Any]: ...
