"""Explicit bundle of the collaborators every reactor needs."""

from __future__ import annotations

from typing import Sequence

from loguru import logger

from icreactor.agent.polling import PollingPolicy, TieredPollingPolicy
from icreactor.agent.types import CertificateVerifier, Transport, WireCodec
from icreactor.cache import QueryCache
from icreactor.candid.principal import Principal
from icreactor.config.access import get_config
from icreactor.config.schema import ReactorConfig


class ClientManager:
    """
    Holds the transport, wire codec, certificate verifier, trusted root key
    and query cache shared by the reactors of one application.

    Reactors receive a manager and use only what it carries. The one global
    lookup is the configuration: without an explicit ``config`` the shared one
    from :func:`~icreactor.config.access.get_config` is used.
    """

    def __init__(
        self,
        transport: Transport,
        wire: WireCodec,
        verifier: CertificateVerifier,
        *,
        root_key: bytes | None = None,
        query_cache: QueryCache | None = None,
        config: ReactorConfig | None = None,
    ):
        self.transport = transport
        self.wire = wire
        self.verifier = verifier
        self.query_cache = query_cache or QueryCache()
        self.config = config if config is not None else get_config()
        self._root_key = root_key
        self._canister_ids: dict[str, Principal] = {}

    @property
    def root_key(self) -> bytes | None:
        return self._root_key

    def set_root_key(self, root_key: bytes | None) -> None:
        """Replace the trusted root key (e.g. after fetching it from a local replica)."""
        self._root_key = root_key

    @property
    def polling_policy(self) -> PollingPolicy | TieredPollingPolicy:
        return self.config.polling.to_policy()

    def register_canister_id(self, canister_id: Principal | str, name: str | None = None) -> Principal:
        principal = Principal.from_value(canister_id)
        key = name or principal.to_text()
        self._canister_ids[key] = principal
        logger.debug("Registered canister {} as {}", principal.to_text(), key)
        return principal

    def unregister_canister_id(self, name: str) -> None:
        self._canister_ids.pop(name, None)

    @property
    def registered_canister_ids(self) -> Sequence[Principal]:
        return list(dict.fromkeys(self._canister_ids.values()))

    def resolve_canister_id(self, name: str) -> Principal | None:
        """Registered id for ``name``, then the configured one, else None."""
        principal = self._canister_ids.get(name)
        if principal is not None:
            return principal
        text = self.config.canisters.get(name)
        return Principal.from_text(text) if text else None
