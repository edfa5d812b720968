"""Dependency-ordered, resumable deployment of one sub-chain."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .config import DeploymentConfig, EssentialConfig, SubChainConfig
from .constants import LOGIC_CONTRACTS, ContractName
from .deployer import ContractDeployer
from .exceptions import ConfigInconsistent
from .operations import ChainOperations
from .readers import ChainReader
from .release import CircuitRelease, CircuitReleaseFetcher
from .types import ExecutionResult, TxOrigin

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)

#: Address book attribute filled by deploying each logic contract
LOGIC_ADDRESS_FIELDS = {
    ContractName.MANAGER_API_LOGIC: "manager_api_logic_contract_address",
    ContractName.MESSAGE_QUEUE_LOGIC: "message_queue_logic_contract_address",
    ContractName.MULTI_CHAIN_LOGIC: "multi_chain_logic_contract_address",
    ContractName.TOKEN_MANAGER_LOGIC: "token_manager_logic_contract_address",
    ContractName.USER_API_LOGIC: "user_api_logic_contract_address",
}


def banner(title: str) -> None:
    logger.info("========= %s =========", title)


@dataclass(frozen=True)
class DeploymentStep:
    """One unit of deployment progress.

    ``output`` names the address book attribute the action fills. Steps
    without an output are tracked in ``COMPLETED_STEPS`` under a marker that
    joins the step name with the addresses held by its ``anchors``, so a
    freshly deployed contract is wired again.
    """

    name: str
    phase: str
    action: Callable[[], Any]
    output: str | None = None
    requires: tuple[str, ...] = field(default_factory=tuple)
    anchors: tuple[str, ...] = field(default_factory=tuple)


class DeploymentOrchestrator:
    """Run the deployment steps of one sub-chain in dependency order.

    Progress is written back to the config store after every step, so a
    re-run skips whatever is already recorded and resumes at the first
    missing step.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        sub_chain: SubChainConfig,
        deployer: ContractDeployer,
        operations: ChainOperations,
        reader: ChainReader,
        *,
        persist: Callable[[], None],
        release_loader: Callable[[], CircuitRelease],
    ) -> None:
        self.config = config
        self.sub_chain = sub_chain
        self.deployer = deployer
        self.operations = operations
        self.reader = reader
        self._persist = persist
        self._release_loader = release_loader
        self._release: CircuitRelease | None = None

    @classmethod
    def from_context(
        cls,
        ctx: DeploymentContext,
        sub_chain: SubChainConfig,
        *,
        fetcher: CircuitReleaseFetcher | None = None,
    ) -> DeploymentOrchestrator:
        essential = sub_chain.essential
        fetcher = fetcher or CircuitReleaseFetcher(essential.github_token)
        return cls(
            ctx.config,
            sub_chain,
            ContractDeployer.from_context(ctx, sub_chain),
            ChainOperations.from_context(ctx, sub_chain),
            ChainReader.from_context(ctx, sub_chain),
            persist=ctx.persist,
            release_loader=lambda: fetcher.fetch(essential.release_tag),
        )

    @property
    def essential(self) -> EssentialConfig:
        return self.sub_chain.essential

    @property
    def release(self) -> CircuitRelease:
        if self._release is None:
            self._release = self._release_loader()
        return self._release

    # ------------------------------------------------------------------
    # Step graph
    # ------------------------------------------------------------------
    def steps(self) -> list[DeploymentStep]:
        d = self.deployer
        ops = self.operations
        e = self.essential
        steps = [
            DeploymentStep(
                "owner",
                "Step 1: Deploy VesselOwner Contracts",
                lambda: d.deploy_contract(ContractName.OWNER.value),
                output="owner_contract_address",
            ),
            DeploymentStep(
                "vault-impl",
                "Step 2: Deploy Vault Implementations",
                lambda: d.deploy_contract(ContractName.VAULT.value),
                output="vault_impl_contract_address",
            ),
        ]
        for name in LOGIC_CONTRACTS:
            steps.append(
                DeploymentStep(
                    f"{name.value}-impl",
                    "Step 2: Deploy Vault Implementations",
                    lambda name=name: d.deploy_contract(name.value),
                    output=LOGIC_ADDRESS_FIELDS[name],
                )
            )
        steps += [
            DeploymentStep(
                "vault-proxy",
                "Step 3: Deploy Vault Proxy",
                lambda: d.deploy_vault_proxy(e.vault_impl_contract_address, e.owner_contract_address),
                output="vault_proxy_contract_address",
                requires=("vault_impl_contract_address", "owner_contract_address"),
            ),
            DeploymentStep(
                "vault-proxy-admin",
                "Step 3: Deploy Vault Proxy",
                lambda: self.reader.proxy_admin(e.vault_proxy_contract_address),
                output="vault_proxy_admin_contract_address",
                requires=("vault_proxy_contract_address",),
            ),
            DeploymentStep(
                "portal-impl",
                "Step 4: Deploy LayerZeroPortal Implementations",
                lambda: d.deploy_portal_impl(e.endpoint_address),
                output="portal_impl_contract_address",
                requires=("endpoint_address",),
            ),
            DeploymentStep(
                "portal-proxy",
                "Step 5: Deploy LayerZeroPortal Proxy",
                lambda: d.deploy_portal_proxy(
                    e.portal_impl_contract_address, e.owner_contract_address
                ),
                output="portal_proxy_contract_address",
                requires=("portal_impl_contract_address", "owner_contract_address"),
            ),
            DeploymentStep(
                "portal-proxy-admin",
                "Step 5: Deploy LayerZeroPortal Proxy",
                lambda: self.reader.proxy_admin(e.portal_proxy_contract_address),
                output="portal_proxy_admin_contract_address",
                requires=("portal_proxy_contract_address",),
            ),
            DeploymentStep(
                "snark-verifier",
                "Step 6: Deploy SnarkVerifier and Update Circuit Version",
                lambda: d.deploy_verifier(self.release.unified_bytecode),
                output="snark_verifier_contract_address",
            ),
            DeploymentStep(
                "update-verifiers",
                "Step 6: Deploy SnarkVerifier and Update Circuit Version",
                self._update_verifiers,
                requires=("vault_proxy_contract_address", "snark_verifier_contract_address"),
                anchors=("vault_proxy_contract_address", "snark_verifier_contract_address"),
            ),
        ]
        for address in e.operator_addresses:
            steps.append(
                DeploymentStep(
                    f"register-operator:{address}",
                    "Step 7: Register Operators and Exit Managers",
                    lambda address=address: ops.register_operator(TxOrigin.DEPLOYER, address),
                    requires=("vault_proxy_contract_address",),
                    anchors=("vault_proxy_contract_address",),
                )
            )
        for address in e.exit_manager_addresses:
            steps.append(
                DeploymentStep(
                    f"register-exit-manager:{address}",
                    "Step 7: Register Operators and Exit Managers",
                    lambda address=address: ops.register_exit_manager(TxOrigin.DEPLOYER, address),
                    requires=("vault_proxy_contract_address",),
                    anchors=("vault_proxy_contract_address",),
                )
            )
        steps += [
            DeploymentStep(
                "configure-vault",
                "Step 8: Configure Vault and LzPortal",
                lambda: ops.configure_vault(TxOrigin.DEPLOYER, self.config.sub_chain_cnt),
                requires=(
                    "vault_proxy_contract_address",
                    "weth_contract_address",
                    *LOGIC_ADDRESS_FIELDS.values(),
                    "portal_proxy_contract_address",
                ),
                anchors=("vault_proxy_contract_address", "portal_proxy_contract_address"),
            ),
            DeploymentStep(
                "configure-portal",
                "Step 8: Configure Vault and LzPortal",
                lambda: ops.configure_portal(
                    TxOrigin.DEPLOYER,
                    e.vault_proxy_contract_address,
                    [cfg.essential.endpoint_eid for cfg in self.config.sub_chain_configs],
                ),
                requires=("vault_proxy_contract_address", "portal_proxy_contract_address"),
                anchors=("portal_proxy_contract_address", "vault_proxy_contract_address"),
            ),
            DeploymentStep(
                "grant-admin-role",
                "Step 9: Transfer VesselOwner DefaultAdminRole from Deployer to Admin",
                lambda: ops.grant_role(e.admin_address),
                requires=("owner_contract_address", "admin_address"),
                anchors=("owner_contract_address",),
            ),
            DeploymentStep(
                "renounce-deployer-role",
                "Step 9: Transfer VesselOwner DefaultAdminRole from Deployer to Admin",
                lambda: ops.renounce_role(e.admin_address),
                requires=("owner_contract_address", "admin_address", "step:grant-admin-role"),
                anchors=("owner_contract_address",),
            ),
        ]
        return steps

    def _update_verifiers(self) -> ExecutionResult:
        return self.operations.update_verifiers(
            TxOrigin.DEPLOYER, self.essential.snark_verifier_contract_address, self.release.version
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def marker(self, step: DeploymentStep) -> str:
        """``COMPLETED_STEPS`` entry for ``step``, e.g. ``grant-admin-role@0xOwner``."""
        if not step.anchors:
            return step.name
        addresses = [str(getattr(self.essential, anchor)).lower() for anchor in step.anchors]
        return f"{step.name}@{'/'.join(addresses)}"

    def is_done(self, step: DeploymentStep) -> bool:
        if step.output is not None:
            return bool(getattr(self.essential, step.output))
        return self.marker(step) in self.essential.completed_steps

    def pending(self) -> list[DeploymentStep]:
        return [step for step in self.steps() if not self.is_done(step)]

    def _check_requirements(self, step: DeploymentStep) -> None:
        by_name = {candidate.name: candidate for candidate in self.steps()}
        for requirement in step.requires:
            if requirement.startswith("step:"):
                resolved = self.is_done(by_name[requirement[len("step:"):]])
            else:
                resolved = bool(getattr(self.essential, requirement))
            if not resolved:
                raise ConfigInconsistent(
                    f"Step {step.name} depends on unresolved {requirement}",
                    field=requirement,
                    details={"step": step.name, "logic_chain_id": self.essential.logic_chain_id},
                )

    def _record(self, step: DeploymentStep, output: Any) -> None:
        if step.output is not None:
            if not output:
                raise ConfigInconsistent(
                    f"Step {step.name} produced no value for {step.output}",
                    field=step.output,
                )
            setattr(self.essential, step.output, output)
        else:
            self.essential.completed_steps.append(self.marker(step))
        self._persist()

    def run(self) -> None:
        """Deploy and configure the sub-chain, skipping steps already recorded."""
        essential = self.essential
        steps = self.steps()
        pending = [step for step in steps if not self.is_done(step)]

        banner("Deploy ALL Contracts")
        logger.info("Chain ID: %s", essential.chain_id)
        logger.info("Node RPC: %s", essential.node_rpc_url)
        if not pending:
            logger.info("All %s steps already recorded; nothing to deploy", len(steps))
            return
        logger.info("Resuming at step %s (%s of %s pending)", pending[0].name, len(pending), len(steps))

        if any(step.name in {"snark-verifier", "update-verifiers"} for step in pending):
            # resolve the release before the first write
            logger.info("Circuit release %s ready", self.release.version)

        phase = None
        for step in pending:
            if step.phase != phase:
                phase = step.phase
                banner(phase)
            self._check_requirements(step)
            logger.debug("Running deployment step %s", step.name)
            self._record(step, step.action())

        banner("Step 10: Update Config File")
        self._persist()


def configure_peers(config: DeploymentConfig, sub_chain: SubChainConfig, operations: ChainOperations) -> None:
    """Bind portal peers in a star: primary to every subsidiary, subsidiary to primary."""
    essential = sub_chain.essential
    banner("Configure LayerZeroPortal")
    logger.info("Chain ID: %s", essential.chain_id)
    logger.info("LZ Portal address: %s", essential.portal_proxy_contract_address)
    if essential.is_primary:
        logger.info("This chain is PRIMARY chain. Set peers to all affiliated chain portals.")
        peers = config.subsidiaries()
    else:
        logger.info("This chain is SUBSIDIARY chain. Set peer to primary chain portal.")
        peers = [config.primary]

    for peer in peers:
        if not peer.essential.portal_proxy_contract_address:
            raise ConfigInconsistent(
                f"Portal of logic chain {peer.logic_chain_id} is not deployed yet",
                field="LAYER_ZERO_PORTAL_PROXY_CONTRACT_ADDRESS",
                details={"logic_chain_id": peer.logic_chain_id},
            )
        operations.set_peer(
            TxOrigin.ADMIN,
            peer.essential.endpoint_eid,
            peer.essential.portal_proxy_contract_address,
        )
