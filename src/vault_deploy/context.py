"""Process-wide deployment context: config, catalog and connection cache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .catalog import DEFAULT_ABI_DIR, ContractCatalog, ErrorRegistry
from .config import ConfigStore, DeploymentConfig, SubChainConfig
from .constants import REVERT_DECODE_SOURCES
from .contracts import ContractInvoker
from .exceptions import ConfigInconsistent
from .fees import FeeStrategy
from .network import NetworkClient
from .transactions import GasMeter, TransactionSubmitter

logger = logging.getLogger(__name__)


class DeploymentContext:
    """Shared state for one orchestration run.

    Created once at process start and closed at process end. Connections are
    created lazily per logic chain id and reused for the lifetime of the
    context.
    """

    def __init__(
        self,
        store: ConfigStore,
        catalog: ContractCatalog,
        *,
        errors: ErrorRegistry | None = None,
        client_options: dict[str, Any] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.errors = errors or ErrorRegistry.from_catalog(
            catalog, [str(name.value) for name in REVERT_DECODE_SOURCES]
        )
        self.gas_meter = GasMeter()
        self._client_options = dict(client_options or {})
        self._clients: dict[int, NetworkClient] = {}
        self._submitters: dict[int, TransactionSubmitter] = {}

    @classmethod
    def from_environment(
        cls, *, root: Path | str | None = None, abi_dir: Path | str = DEFAULT_ABI_DIR
    ) -> DeploymentContext:
        store = ConfigStore.from_environment(root)
        store.load()
        return cls(store, ContractCatalog(abi_dir))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        for client in self._clients.values():
            client.disconnect()
        self._clients.clear()
        self._submitters.clear()

    def __enter__(self) -> DeploymentContext:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def config(self) -> DeploymentConfig:
        return self.store.config

    def sub_chain(self, index: int) -> SubChainConfig:
        return self.config.sub_chain(index)

    def client(self, sub_chain: SubChainConfig) -> NetworkClient:
        key = sub_chain.logic_chain_id
        client = self._clients.get(key)
        if client is None:
            client = NetworkClient(sub_chain, **self._client_options)
            self._clients[key] = client
        return client

    def submitter(self, sub_chain: SubChainConfig) -> TransactionSubmitter:
        key = sub_chain.logic_chain_id
        submitter = self._submitters.get(key)
        if submitter is None:
            submitter = TransactionSubmitter(
                self.client(sub_chain),
                FeeStrategy(sub_chain.essential),
                errors=self.errors,
                gas_meter=self.gas_meter,
            )
            self._submitters[key] = submitter
        return submitter

    def invoker(self, sub_chain: SubChainConfig, name: str, address: str) -> ContractInvoker:
        if not address:
            raise ConfigInconsistent(
                f"No address configured for {name}",
                field=name,
                details={"logic_chain_id": sub_chain.logic_chain_id},
            )
        return ContractInvoker(self.client(sub_chain), name, address, self.catalog.abi(name))

    def persist(self) -> None:
        self.store.overwrite()

    # ------------------------------------------------------------------
    # Signers
    # ------------------------------------------------------------------
    @staticmethod
    def deployer_signer(sub_chain: SubChainConfig) -> LocalAccount:
        return _signer_from_key(sub_chain.essential.deployer_sk, "DEPLOYER_SK")

    @staticmethod
    def admin_signer(sub_chain: SubChainConfig) -> LocalAccount:
        return _signer_from_key(sub_chain.essential.admin_sk, "ADMIN_SK")


def _signer_from_key(private_key: str, field: str) -> LocalAccount:
    try:
        return Account.from_key(private_key)
    except Exception as exc:
        raise ConfigInconsistent(
            "Failed to derive signer account from provided private key",
            field=field,
            details={"error": str(exc)},
        ) from exc
