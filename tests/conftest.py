"""Pytest hooks and fixtures: small hand-written fakes for the external collaborators."""

from __future__ import annotations

import pickle
from typing import Any, Sequence

import pytest

from icreactor.agent.polling import PollingPolicy
from icreactor.agent.types import (
    CallRequest,
    QueryRequest,
    QueryResponse,
    QueryResponseStatus,
    SubmitResponse,
)
from icreactor.cache import QueryCache
from icreactor.candid.principal import Principal
from icreactor.client import ClientManager
from icreactor.config.schema import ReactorConfig

ROOT_KEY = b"trusted-root-key"
LEDGER_ID = Principal.from_hex("00000000000000020101")


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line("markers", "polling: exercises the update-call polling loop")


class PickleWire:
    """Wire codec stand-in: values survive the trip through bytes unchanged."""

    def __init__(self) -> None:
        self.encoded: list[list[Any]] = []

    def encode(self, types: Sequence[Any], values: Sequence[Any]) -> bytes:
        self.encoded.append(list(values))
        return pickle.dumps(list(values))

    def decode(self, types: Sequence[Any], data: bytes) -> list[Any]:
        return pickle.loads(data)


class DictCertificate:
    def __init__(self, tree: dict[tuple[bytes, ...], bytes]):
        self.tree = tree

    def lookup(self, path: Sequence[bytes]) -> bytes | None:
        return self.tree.get(tuple(path))


class DictVerifier:
    """Maps certificate bytes to certificates; unknown bytes fail verification."""

    def __init__(self) -> None:
        self.certificates: dict[bytes, DictCertificate] = {}
        self.calls: list[tuple[bytes, bytes]] = []

    def verify(self, certificate: bytes, root_key: bytes, canister_id: Principal) -> DictCertificate:
        self.calls.append((certificate, root_key))
        cert = self.certificates.get(certificate)
        if cert is None:
            raise ValueError("signature does not match the root key")
        return cert

    def issue(
        self,
        request_id: bytes,
        status: str,
        *,
        reply: bytes | None = None,
        reject_code: bytes | None = None,
        reject_message: str | None = None,
        error_code: str | None = None,
    ) -> bytes:
        """Register a certificate for ``request_id`` and return its bytes."""
        base = (b"request_status", request_id)
        tree: dict[tuple[bytes, ...], bytes] = {base + (b"status",): status.encode()}
        if reply is not None:
            tree[base + (b"reply",)] = reply
        if reject_code is not None:
            tree[base + (b"reject_code",)] = reject_code
        if reject_message is not None:
            tree[base + (b"reject_message",)] = reject_message.encode()
        if error_code is not None:
            tree[base + (b"error_code",)] = error_code.encode()
        raw = b"cert-%d" % len(self.certificates)
        self.certificates[raw] = DictCertificate(tree)
        return raw


class ScriptedTransport:
    """Returns queued responses in order and records every request."""

    def __init__(self) -> None:
        self.query_responses: list[QueryResponse] = []
        self.call_responses: list[SubmitResponse] = []
        self.read_state_responses: list[bytes] = []
        self.queries: list[QueryRequest] = []
        self.calls: list[CallRequest] = []
        self.read_state_paths: list[Any] = []

    async def query(self, canister_id: Principal, request: QueryRequest) -> QueryResponse:
        self.queries.append(request)
        return self.query_responses.pop(0)

    async def call(self, canister_id: Principal, request: CallRequest) -> SubmitResponse:
        self.calls.append(request)
        return self.call_responses.pop(0)

    async def read_state(self, canister_id: Principal, paths: Sequence[Sequence[bytes]]) -> bytes:
        self.read_state_paths.append(paths)
        return self.read_state_responses.pop(0)

    def reply_query(self, *values: Any) -> None:
        self.query_responses.append(QueryResponse(QueryResponseStatus.REPLIED, reply=pickle.dumps(list(values))))


def encode_reply(*values: Any) -> bytes:
    return pickle.dumps(list(values))


@pytest.fixture
def wire() -> PickleWire:
    return PickleWire()


@pytest.fixture
def verifier() -> DictVerifier:
    return DictVerifier()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def fast_polling() -> PollingPolicy:
    return PollingPolicy(interval_ms=0, backoff_multiplier=1, max_attempts=20, deadline_ms=None)


@pytest.fixture
def client_manager(transport, wire, verifier) -> ClientManager:
    config = ReactorConfig(polling={"interval_ms": 0, "backoff_multiplier": 1, "max_attempts": 20})
    return ClientManager(
        transport,
        wire,
        verifier,
        root_key=ROOT_KEY,
        query_cache=QueryCache(),
        config=config,
    )
