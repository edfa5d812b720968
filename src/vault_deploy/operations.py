"""Privileged write operations on the vault, portal, proxy admin and owner."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .config import EssentialConfig, SubChainConfig
from .constants import DEFAULT_ADMIN_ROLE, ContractName
from .exceptions import RoleHandoffRefused
from .readers import Binder, ChainReader
from .router import ExecutionRouter
from .types import ExecutionResult, PreCommitCheckpoint, TxOrigin
from .utils import address_to_bytes32, hex_equal, stringify

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)


class ChainOperations:
    """Every privileged write on one sub-chain, funnelled through the router."""

    def __init__(
        self,
        sub_chain: SubChainConfig,
        router: ExecutionRouter,
        bind: Binder,
        reader: ChainReader,
    ) -> None:
        self.sub_chain = sub_chain
        self.router = router
        self._bind = bind
        self.reader = reader

    @classmethod
    def from_context(cls, ctx: DeploymentContext, sub_chain: SubChainConfig) -> ChainOperations:
        return cls(
            sub_chain,
            ExecutionRouter.from_context(ctx, sub_chain),
            lambda name, address: ctx.invoker(sub_chain, name, address),
            ChainReader.from_context(ctx, sub_chain),
        )

    @property
    def _essential(self) -> EssentialConfig:
        return self.sub_chain.essential

    def _vault_call(self, origin: TxOrigin, fn_name: str, *args: Any) -> ExecutionResult:
        vault = self._bind(ContractName.VAULT.value, self._essential.vault_proxy_contract_address)
        logger.info("Vault contract address: %s", vault.address)
        return self.router.route_execution(origin, vault.address, vault.encode(fn_name, *args))

    def _portal_call(self, origin: TxOrigin, fn_name: str, *args: Any) -> ExecutionResult:
        portal = self._bind(
            ContractName.PORTAL.value, self._essential.portal_proxy_contract_address
        )
        logger.info("LayerZeroPortal contract address: %s", portal.address)
        return self.router.route_execution(origin, portal.address, portal.encode(fn_name, *args))

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------
    def update_verifiers(
        self, origin: TxOrigin, verifier_address: str, circuit_version: str
    ) -> ExecutionResult:
        logger.info("Send transaction to update new circuit version")
        logger.info("Snark verifier address: %s", verifier_address)
        logger.info("Circuit version: %s", circuit_version)
        return self._vault_call(origin, "updateAll", verifier_address, circuit_version)

    def register_token(
        self,
        origin: TxOrigin,
        token_address: str,
        asset_id: int,
        limit_digit: int,
        precision_digit: int,
        decimals: int,
    ) -> ExecutionResult:
        logger.info("Send transaction to register token %s as asset %s", token_address, asset_id)
        return self._vault_call(
            origin,
            "registerNewAsset",
            token_address,
            asset_id,
            limit_digit,
            precision_digit,
            decimals,
        )

    def set_asset_active(self, origin: TxOrigin, asset_id: int) -> ExecutionResult:
        logger.info("Send transaction to set asset %s active", asset_id)
        return self._vault_call(origin, "setAssetActive", asset_id)

    def register_operator(self, origin: TxOrigin, operator_address: str) -> ExecutionResult:
        logger.info("Send transaction to add operator %s", operator_address)
        return self._vault_call(origin, "registerOperator", operator_address)

    def register_exit_manager(self, origin: TxOrigin, exit_manager_address: str) -> ExecutionResult:
        logger.info("Send transaction to add exitManager %s", exit_manager_address)
        return self._vault_call(origin, "registerExitManager", exit_manager_address)

    def configure_vault(self, origin: TxOrigin, chain_cnt: int) -> ExecutionResult:
        """Bind logic contracts, portal and chain identity, seeding checkpoints."""
        essential = self._essential
        checkpoints = [
            PreCommitCheckpoint.seed(
                cp.logic_chain_id, cp.l1_last_commit_hash, cp.l2_last_commit_hash
            ).as_struct()
            for cp in essential.pre_commit_checkpoint
        ]
        logger.info("Send transaction to configure vault")
        return self._vault_call(
            origin,
            "configureAll",
            essential.weth_contract_address,
            essential.user_api_logic_contract_address,
            essential.manager_api_logic_contract_address,
            essential.message_queue_logic_contract_address,
            essential.token_manager_logic_contract_address,
            essential.multi_chain_logic_contract_address,
            essential.portal_proxy_contract_address,
            essential.logic_chain_id,
            essential.primary_logic_chain_id,
            chain_cnt,
            checkpoints,
        )

    def set_vault_configured(self, origin: TxOrigin, configured: bool = True) -> ExecutionResult:
        logger.info("Send transaction to set Vault Configured to %s", configured)
        return self._vault_call(origin, "setConfigured", configured)

    # ------------------------------------------------------------------
    # Portal
    # ------------------------------------------------------------------
    def set_peer(self, origin: TxOrigin, eid: int, peer_address: str) -> ExecutionResult:
        logger.info("Send transaction to set peer: EID %s, address %s", eid, peer_address)
        return self._portal_call(origin, "setPeer", eid, address_to_bytes32(peer_address))

    def configure_portal(
        self, origin: TxOrigin, vault_address: str, eid_list: Sequence[int]
    ) -> ExecutionResult:
        logger.info("Send transaction to configure lzPortal")
        logger.info("Vault proxy address: %s", vault_address)
        logger.info("EidList: %s", stringify(list(eid_list)))
        return self._portal_call(origin, "configureAll", vault_address, list(eid_list))

    def set_portal_configured(self, origin: TxOrigin, configured: bool = True) -> ExecutionResult:
        logger.info("Send transaction to set LzPortal Configured to %s", configured)
        return self._portal_call(origin, "setConfigured", configured)

    # ------------------------------------------------------------------
    # Proxy admin
    # ------------------------------------------------------------------
    def upgrade_proxy_impl(
        self, origin: TxOrigin, proxy_address: str, impl_address: str
    ) -> ExecutionResult:
        """Point ``proxy_address`` at ``impl_address`` through its proxy admin."""
        proxy_admin = self._bind(
            ContractName.PROXY_ADMIN.value, self.reader.proxy_admin(proxy_address)
        )
        logger.info("Send transaction to upgrade proxy implementation")
        logger.info("Proxy address: %s", proxy_address)
        logger.info("Implementation address: %s", impl_address)
        return self.router.route_execution(
            origin, proxy_admin.address, proxy_admin.encode("upgrade", proxy_address, impl_address)
        )

    # ------------------------------------------------------------------
    # Owner role handoff (signed by the deployer)
    # ------------------------------------------------------------------
    def grant_role(self, target_address: str, role: str = DEFAULT_ADMIN_ROLE) -> Mapping[str, Any]:
        logger.info("Send transaction to grant role %s to %s", role, target_address)
        logger.info("Owner contract: %s", self.router.owner_address)
        return self.router.submit_owner_call("grantRole", role, target_address)

    def renounce_role(self, successor: str, role: str = DEFAULT_ADMIN_ROLE) -> Mapping[str, Any]:
        """Drop the deployer's ``role`` once ``successor`` is seen holding it."""
        deployer = self.router.deployer_address()
        self._check_handoff(role, deployer, successor)
        logger.info("Send transaction to renounce role %s from %s", role, deployer)
        logger.info("Owner contract: %s", self.router.owner_address)
        return self.router.submit_owner_call("renounceRole", role, deployer)

    def _check_handoff(self, role: str, deployer: str, successor: str) -> None:
        details = {"role": role, "deployer": deployer, "successor": successor}
        if not successor or hex_equal(successor, deployer):
            raise RoleHandoffRefused(
                "Successor must be a different account than the deployer", details
            )
        if not self.reader.has_role(role, successor):
            raise RoleHandoffRefused(
                f"{successor} does not hold the role yet; refusing to renounce", details
            )
        count = self.reader.role_member_count(role)
        if count is not None and count < 2:
            raise RoleHandoffRefused(
                f"Role has {count} holder(s); renouncing would leave it without one",
                {**details, "holders": count},
            )
