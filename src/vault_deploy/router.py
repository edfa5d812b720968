"""Route privileged calls through the owner contract, directly or via multisig."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from eth_account.signers.local import LocalAccount

from .config import SubChainConfig
from .constants import DEFAULT_ADMIN_ROLE, ContractName
from .contracts import ContractInvoker
from .readers import Binder
from .transactions import TransactionSubmitter
from .types import (
    DirectSubmit,
    ExecutionPlan,
    ExecutionResult,
    ProposalArtifact,
    ProposeForApproval,
    TxOrigin,
)

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)

_BANNER = "=" * 64


class ExecutionRouter:
    """Single funnel for privileged writes on one sub-chain.

    Every call is wrapped in ``owner.execute(target, 0, data, role)`` so the
    owner contract is the recorded caller. ``TxOrigin.ADMIN`` with multisig
    enabled yields a proposal artifact instead of a transaction.
    """

    def __init__(
        self,
        sub_chain: SubChainConfig,
        submitter: TransactionSubmitter,
        bind: Binder,
        signers: Callable[[TxOrigin], LocalAccount],
    ) -> None:
        self.sub_chain = sub_chain
        self._submitter = submitter
        self._bind = bind
        self._signers = signers
        self.proposals: list[ProposalArtifact] = []

    @classmethod
    def from_context(cls, ctx: DeploymentContext, sub_chain: SubChainConfig) -> ExecutionRouter:
        def signers(origin: TxOrigin) -> LocalAccount:
            if origin is TxOrigin.ADMIN:
                return ctx.admin_signer(sub_chain)
            return ctx.deployer_signer(sub_chain)

        return cls(
            sub_chain,
            ctx.submitter(sub_chain),
            lambda name, address: ctx.invoker(sub_chain, name, address),
            signers,
        )

    def _owner(self) -> ContractInvoker:
        return self._bind(ContractName.OWNER.value, self.sub_chain.essential.owner_contract_address)

    @property
    def owner_address(self) -> str:
        return self._owner().address

    def plan(self, origin: TxOrigin) -> ExecutionPlan:
        if origin is TxOrigin.ADMIN and self.sub_chain.essential.enable_multisig_admin:
            return ProposeForApproval(origin)
        return DirectSubmit(origin, self._signers(origin))

    def route_execution(self, origin: TxOrigin, target: str, call_data: str) -> ExecutionResult:
        """Execute ``call_data`` on ``target`` with the owner contract as caller."""
        owner = self._owner()
        tx = owner.transaction("execute", target, 0, call_data, DEFAULT_ADMIN_ROLE)
        plan = self.plan(origin)

        if isinstance(plan, ProposeForApproval):
            proposal = ProposalArtifact(to=owner.address, data=tx["data"], value=0)
            self._emit_proposal(proposal)
            return ExecutionResult(proposal=proposal)

        receipt = self._submitter.submit(plan.signer, tx)
        return ExecutionResult(receipt=receipt)

    def submit_owner_call(self, fn_name: str, *args: Any) -> Mapping[str, Any]:
        """Call the owner contract itself, signed by the deployer."""
        tx = self._owner().transaction(fn_name, *args)
        return self._submitter.submit(self._signers(TxOrigin.DEPLOYER), tx)

    def deployer_address(self) -> str:
        return self._signers(TxOrigin.DEPLOYER).address

    def _emit_proposal(self, proposal: ProposalArtifact) -> None:
        self.proposals.append(proposal)
        logger.info(_BANNER)
        logger.info("SAFE transaction created, propose in SAFE UI using admin wallet")
        logger.info("to: %s", proposal.to)
        logger.info("data: %s", proposal.data)
        logger.info("value: %s", proposal.value)
        logger.info(_BANNER)
