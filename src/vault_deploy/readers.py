"""Read-only views over vault, portal, proxy and owner contract state."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from hexbytes import HexBytes

from .config import SubChainConfig
from .constants import PROXY_ADMIN_SLOT, ContractName
from .contracts import ContractInvoker
from .exceptions import ConfigInconsistent
from .types import PostCommitConfirmation, PreCommitCheckpoint
from .utils import bytes32_to_address

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)

Binder = Callable[[str, str], ContractInvoker]
StorageReader = Callable[[str, str], HexBytes]

#: Vault getter for each logic contract address
LOGIC_ADDRESS_GETTERS = {
    ContractName.USER_API_LOGIC: "userApiLogicAddress",
    ContractName.MANAGER_API_LOGIC: "managerApiLogicAddress",
    ContractName.MESSAGE_QUEUE_LOGIC: "messageQueueLogicAddress",
    ContractName.TOKEN_MANAGER_LOGIC: "tokenManagerLogicAddress",
    ContractName.MULTI_CHAIN_LOGIC: "multiChainLogicAddress",
}


def _hex(value: Any) -> str:
    if isinstance(value, bytes | bytearray):
        return HexBytes(value).to_0x_hex()
    return str(value)


class ChainReader:
    """On-chain reads for one sub-chain.

    Contract addresses are looked up from the sub-chain's address book at call
    time, so a reader created before deployment sees addresses filled later.
    """

    def __init__(self, sub_chain: SubChainConfig, bind: Binder, storage: StorageReader) -> None:
        self.sub_chain = sub_chain
        self._bind = bind
        self._storage = storage

    @classmethod
    def from_context(cls, ctx: DeploymentContext, sub_chain: SubChainConfig) -> ChainReader:
        client = ctx.client(sub_chain)
        return cls(
            sub_chain,
            lambda name, address: ctx.invoker(sub_chain, name, address),
            client.get_storage_at,
        )

    def _vault(self) -> ContractInvoker:
        return self._bind(
            ContractName.VAULT.value, self.sub_chain.essential.vault_proxy_contract_address
        )

    def _portal(self) -> ContractInvoker:
        return self._bind(
            ContractName.PORTAL.value, self.sub_chain.essential.portal_proxy_contract_address
        )

    def _owner(self) -> ContractInvoker:
        return self._bind(ContractName.OWNER.value, self.sub_chain.essential.owner_contract_address)

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------
    def vault_chain_cnt(self) -> int:
        return int(self._vault().call("chainCnt"))

    def logic_chain_id(self) -> int:
        return int(self._vault().call("logicChainId"))

    def primary_logic_chain_id(self) -> int:
        return int(self._vault().call("primaryLogicChainId"))

    def is_operator(self, address: str) -> bool:
        return bool(self._vault().call("operators", address))

    def is_exit_manager(self, address: str) -> bool:
        return bool(self._vault().call("exitManagers", address))

    def circuit_version(self) -> str:
        return str(self._vault().call("circuitVersion"))

    def vault_admin(self) -> str:
        return str(self._vault().call("admin"))

    def weth_address(self) -> str:
        return str(self._vault().call("wethAddress"))

    def logic_address(self, name: ContractName) -> str:
        try:
            getter = LOGIC_ADDRESS_GETTERS[name]
        except KeyError as exc:
            raise ConfigInconsistent(f"{name.value} is not a vault logic contract") from exc
        return str(self._vault().call(getter))

    def cross_chain_portal(self) -> str:
        return str(self._vault().call("crossChainPortalContract"))

    def pre_commit_checkpoint(self, logic_chain_id: int) -> PreCommitCheckpoint:
        return PreCommitCheckpoint.from_onchain(
            self._vault().call("preCommitCheckpointList", logic_chain_id)
        )

    def post_commit_confirmation(self) -> PostCommitConfirmation:
        return PostCommitConfirmation.from_onchain(self._vault().call("postCommitConfirmation"))

    def l1_commit_index(self) -> int:
        return int(self._vault().call("l1ToL2MessageQueueCommitIndex"))

    def l1_commit_hash(self) -> str:
        """Hash of the inbound queue at its current commit index."""
        return _hex(self._vault().call("l1ToL2MessageQueueHash", self.l1_commit_index()))

    def l2_commit_hash(self) -> str:
        return _hex(self._vault().call("l2ToL1MessageQueueCommitHash"))

    # ------------------------------------------------------------------
    # Portal
    # ------------------------------------------------------------------
    def portal_chain_cnt(self) -> int:
        return int(self._portal().call("chainCnt"))

    def portal_vault(self) -> str:
        return str(self._portal().call("vaultContract"))

    def eid_by_logic_chain_id(self, logic_chain_id: int) -> int:
        return int(self._portal().call("logicChainIdToEid", logic_chain_id))

    def logic_chain_id_by_eid(self, eid: int) -> int:
        return int(self._portal().call("eidToLogicChainId", eid))

    def peer(self, eid: int) -> str:
        """Peer bound to ``eid`` as a 0x-prefixed bytes32 word."""
        return _hex(self._portal().call("peers", eid))

    # ------------------------------------------------------------------
    # Proxies and owner
    # ------------------------------------------------------------------
    def proxy_admin(self, proxy_address: str) -> str:
        """Read the EIP-1967 admin slot of ``proxy_address``."""
        word = self._storage(proxy_address, PROXY_ADMIN_SLOT)
        return bytes32_to_address(HexBytes(word).rjust(32, b"\0"))

    def owner_of(self, ownable_address: str) -> str:
        return str(self._bind(ContractName.PROXY_ADMIN.value, ownable_address).call("owner"))

    def has_role(self, role: str, account: str) -> bool:
        return bool(self._owner().call("hasRole", role, account))

    def role_member_count(self, role: str) -> int | None:
        """Holder count of ``role`` when the owner contract is enumerable."""
        owner = self._owner()
        if not owner.has_function("getRoleMemberCount"):
            return None
        return int(owner.call("getRoleMemberCount", role))
