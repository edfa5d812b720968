"""Reconcile on-chain state of a sub-chain with its declared configuration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .config import DeploymentConfig, SubChainConfig
from .constants import LOGIC_CONTRACTS, ZERO_BYTES32, ContractName
from .exceptions import ConsistencyViolation
from .operations import ChainOperations
from .readers import ChainReader
from .types import ExecutionResult, TxOrigin, continues_hash_chain
from .utils import address_to_bytes32, hex_equal

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)

#: Config key holding each logic contract address
LOGIC_ADDRESS_KEYS = {
    ContractName.MANAGER_API_LOGIC: "MANAGER_API_LOGIC_CONTRACT_ADDRESS",
    ContractName.MESSAGE_QUEUE_LOGIC: "MESSAGE_QUEUE_LOGIC_CONTRACT_ADDRESS",
    ContractName.MULTI_CHAIN_LOGIC: "MULTI_CHAIN_LOGIC_CONTRACT_ADDRESS",
    ContractName.TOKEN_MANAGER_LOGIC: "TOKEN_MANAGER_LOGIC_CONTRACT_ADDRESS",
    ContractName.USER_API_LOGIC: "USER_API_LOGIC_CONTRACT_ADDRESS",
}


@dataclass(frozen=True)
class ValidationStep:
    name: str
    check: Callable[[], None]


class ConsistencyValidator:
    """Fail-fast comparison of declared configuration against chain state.

    Checks run in a fixed order; the first mismatch raises
    :class:`ConsistencyViolation` carrying the field, both values and the
    name of the step it was found in.
    """

    def __init__(self, config: DeploymentConfig, sub_chain: SubChainConfig, reader: ChainReader) -> None:
        self.config = config
        self.sub_chain = sub_chain
        self.reader = reader

    @classmethod
    def from_context(cls, ctx: DeploymentContext, sub_chain: SubChainConfig) -> ConsistencyValidator:
        return cls(ctx.config, sub_chain, ChainReader.from_context(ctx, sub_chain))

    def steps(self) -> list[ValidationStep]:
        return [
            ValidationStep("Vault configurations", self.check_vault),
            ValidationStep("Pre-commit checkpoints", self.check_pre_commit_checkpoints),
            ValidationStep("Post-commit confirmation", self.check_post_commit_confirmation),
            ValidationStep("Vault proxy", self.check_vault_proxy),
            ValidationStep("LZPortal configurations", self.check_portal),
            ValidationStep("Eid and LogicChainId mapping", self.check_eid_mapping),
            ValidationStep("Peer by EID", self.check_peer_topology),
            ValidationStep("LZPortal proxy", self.check_portal_proxy),
        ]

    def run(self) -> None:
        essential = self.sub_chain.essential
        logger.info("========= Validate Deployment and Configuration =========")
        logger.info("Chain ID: %s", essential.chain_id)
        logger.info("Vault address: %s", essential.vault_proxy_contract_address)

        for index, step in enumerate(self.steps(), start=1):
            logger.info("========= Step %s: Validate %s =========", index, step.name)
            try:
                step.check()
            except ConsistencyViolation as exc:
                exc.step = step.name
                exc.details["step"] = step.name
                logger.error("Validation step '%s' failed: %s", step.name, exc)
                raise
            logger.info("%s passes validation", step.name)

    def mark_configured(self, operations: ChainOperations) -> list[ExecutionResult]:
        """Flip the configured flags of vault and portal with the admin origin."""
        logger.info("========= Enable Vault and LzPortal as Configured =========")
        return [
            operations.set_vault_configured(TxOrigin.ADMIN, True),
            operations.set_portal_configured(TxOrigin.ADMIN, True),
        ]

    # ------------------------------------------------------------------
    # Comparison helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _expect(field: str, expected: Any, observed: Any) -> None:
        if expected != observed:
            raise ConsistencyViolation(field, expected, observed)
        logger.debug("%s passes validation", field)

    @staticmethod
    def _expect_hex(field: str, expected: str, observed: str) -> None:
        if not hex_equal(expected, observed):
            raise ConsistencyViolation(field, expected, observed)
        logger.debug("%s passes validation", field)

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------
    def check_vault(self) -> None:
        e = self.sub_chain.essential
        r = self.reader
        self._expect("SUB_CHAIN_CNT", self.config.sub_chain_cnt, r.vault_chain_cnt())
        self._expect("LOGIC_CHAIN_ID", e.logic_chain_id, r.logic_chain_id())
        self._expect("PRIMARY_LOGIC_CHAIN_ID", e.primary_logic_chain_id, r.primary_logic_chain_id())
        for address in e.operator_addresses:
            self._expect(f"OPERATOR_ADDRESSES[{address}]", True, r.is_operator(address))
        for address in e.exit_manager_addresses:
            self._expect(f"EXIT_MANAGER_ADDRESSES[{address}]", True, r.is_exit_manager(address))
        self._expect("RELEASE_TAG", e.release_tag, r.circuit_version())
        self._expect_hex("WETH_CONTRACT_ADDRESS", e.weth_contract_address, r.weth_address())
        declared = e.to_dict()
        for name in LOGIC_CONTRACTS:
            key = LOGIC_ADDRESS_KEYS[name]
            self._expect_hex(key, declared[key], r.logic_address(name))
        self._expect_hex("OWNER_CONTRACT_ADDRESS", e.owner_contract_address, r.vault_admin())
        self._expect_hex(
            "LAYER_ZERO_PORTAL_PROXY_CONTRACT_ADDRESS",
            e.portal_proxy_contract_address,
            r.cross_chain_portal(),
        )

    def check_pre_commit_checkpoints(self) -> None:
        for declared in self.sub_chain.essential.pre_commit_checkpoint:
            prefix = f"PRE_COMMIT_CHECKPOINT[{declared.logic_chain_id}]"
            actual = self.reader.pre_commit_checkpoint(declared.logic_chain_id)
            self._expect(f"{prefix}.LOGIC_CHAIN_ID", declared.logic_chain_id, actual.logic_chain_id)
            self._expect(f"{prefix}.L1_MESSAGE_CNT", 0, actual.l1_message_cnt)
            self._expect_hex(
                f"{prefix}.L1_LAST_COMMIT_HASH",
                declared.l1_last_commit_hash,
                actual.l1_last_commit_hash,
            )
            if not continues_hash_chain(actual.l1_next_commit_hash, declared.l1_last_commit_hash):
                raise ConsistencyViolation(
                    f"{prefix}.L1_NEXT_COMMIT_HASH",
                    declared.l1_last_commit_hash,
                    actual.l1_next_commit_hash,
                )
            self._expect_hex(
                f"{prefix}.L2_LAST_COMMIT_HASH",
                declared.l2_last_commit_hash,
                actual.l2_last_commit_hash,
            )

    def check_post_commit_confirmation(self) -> None:
        confirmation = self.reader.post_commit_confirmation()
        self._expect("POST_COMMIT_CONFIRMATION.L1_MESSAGE_CNT", 0, confirmation.l1_message_cnt)
        self._expect_hex(
            "POST_COMMIT_CONFIRMATION.L1_NEXT_COMMIT_HASH",
            self.reader.l1_commit_hash(),
            confirmation.l1_next_commit_hash,
        )
        self._expect_hex(
            "POST_COMMIT_CONFIRMATION.L2_NEXT_COMMIT_HASH",
            self.reader.l2_commit_hash(),
            confirmation.l2_next_commit_hash,
        )

    def check_vault_proxy(self) -> None:
        e = self.sub_chain.essential
        self._expect_hex(
            "VAULT_PROXY_ADMIN_CONTRACT_ADDRESS",
            e.vault_proxy_admin_contract_address,
            self.reader.proxy_admin(e.vault_proxy_contract_address),
        )
        self._expect_hex(
            "VAULT_PROXY_ADMIN_CONTRACT_ADDRESS.owner",
            e.owner_contract_address,
            self.reader.owner_of(e.vault_proxy_admin_contract_address),
        )

    # ------------------------------------------------------------------
    # Portal
    # ------------------------------------------------------------------
    def check_portal(self) -> None:
        e = self.sub_chain.essential
        self._expect("SUB_CHAIN_CNT", self.config.sub_chain_cnt, self.reader.portal_chain_cnt())
        self._expect_hex(
            "VAULT_PROXY_CONTRACT_ADDRESS", e.vault_proxy_contract_address, self.reader.portal_vault()
        )

    def check_eid_mapping(self) -> None:
        for index in range(self.config.sub_chain_cnt):
            expected_eid = self.config.sub_chain(index).essential.endpoint_eid
            field = f"SUB_CHAIN_CONFIGS[{index}].LAYER_ZERO_ENDPOINT_EID"
            self._expect(field, expected_eid, self.reader.eid_by_logic_chain_id(index))
            self._expect(
                f"eidToLogicChainId[{expected_eid}]",
                index,
                self.reader.logic_chain_id_by_eid(expected_eid),
            )

    def check_peer_topology(self) -> None:
        """Primary binds every subsidiary; a subsidiary binds only the primary."""
        own_primary = self.sub_chain.essential.is_primary
        for peer in self.config.sub_chain_configs:
            peer_essential = peer.essential
            if own_primary:
                bound = not peer_essential.is_primary
            else:
                bound = peer_essential.is_primary
            expected = (
                address_to_bytes32(peer_essential.portal_proxy_contract_address)
                if bound
                else ZERO_BYTES32
            )
            self._expect_hex(
                f"peers[{peer_essential.endpoint_eid}]",
                expected,
                self.reader.peer(peer_essential.endpoint_eid),
            )

    def check_portal_proxy(self) -> None:
        e = self.sub_chain.essential
        self._expect_hex(
            "LAYER_ZERO_PORTAL_PROXY_ADMIN_CONTRACT_ADDRESS",
            e.portal_proxy_admin_contract_address,
            self.reader.proxy_admin(e.portal_proxy_contract_address),
        )
        self._expect_hex(
            "LAYER_ZERO_PORTAL_PROXY_ADMIN_CONTRACT_ADDRESS.owner",
            e.owner_contract_address,
            self.reader.owner_of(e.portal_proxy_admin_contract_address),
        )
