"""Raw bytecode deployment primitives."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from eth_abi import encode as abi_encode
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from .catalog import ContractCatalog
from .config import SubChainConfig, TokenInfo
from .constants import TEST_TOKEN_SUPPLY, ContractName
from .contracts import encode_constructor_args
from .exceptions import DeploymentAddressMissing
from .transactions import TransactionSubmitter
from .utils import maybe_add_0x_prefix, maybe_remove_0x_prefix, serialise_receipt

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .context import DeploymentContext

logger = logging.getLogger(__name__)

_PROXY_ARGS = ("address", "address", "bytes")


def encode_initializer(signature: str, types: Sequence[str], args: Sequence[Any]) -> bytes:
    """Selector of ``signature`` followed by its ABI-encoded arguments."""
    return function_signature_to_4byte_selector(signature) + abi_encode(list(types), list(args))


class ContractDeployer:
    """Deploy contracts on one sub-chain with the deployer key."""

    def __init__(
        self,
        sub_chain: SubChainConfig,
        submitter: TransactionSubmitter,
        catalog: ContractCatalog,
        signer: LocalAccount,
    ) -> None:
        self.sub_chain = sub_chain
        self._submitter = submitter
        self._catalog = catalog
        self._signer = signer

    @classmethod
    def from_context(cls, ctx: DeploymentContext, sub_chain: SubChainConfig) -> ContractDeployer:
        return cls(sub_chain, ctx.submitter(sub_chain), ctx.catalog, ctx.deployer_signer(sub_chain))

    @property
    def deployer_address(self) -> str:
        return self._signer.address

    def deploy_bytecode(self, bytecode: str, encoded_args: str = "0x") -> ChecksumAddress:
        """Submit ``bytecode || encoded_args`` as a creation transaction."""
        data = maybe_add_0x_prefix(bytecode) + maybe_remove_0x_prefix(encoded_args)
        receipt: Mapping[str, Any] = self._submitter.submit(self._signer, {"data": data})
        address = receipt.get("contractAddress")
        if not address:
            raise DeploymentAddressMissing(
                f"Deployment transaction returns null address {serialise_receipt(receipt)}",
                receipt,
            )
        return Web3.to_checksum_address(address)

    def deploy_contract(
        self,
        name: str,
        types: Sequence[str] = (),
        args: Sequence[Any] = (),
    ) -> ChecksumAddress:
        artifact = self._catalog.load(name)
        logger.info("Sending transaction to deploy %s contract.", name)
        address = self.deploy_bytecode(
            artifact.require_bytecode(), encode_constructor_args(types, args)
        )
        logger.info("%s contract deployed at %s", name, address)
        return address

    def _deploy_transparent_proxy(self, impl_address: str, owner_address: str, init: bytes) -> str:
        return self.deploy_contract(
            ContractName.PROXY.value, _PROXY_ARGS, (impl_address, owner_address, init)
        )

    def deploy_vault_proxy(self, vault_impl_address: str, owner_address: str) -> str:
        init = encode_initializer("initialize_v2(address)", ["address"], [owner_address])
        return self._deploy_transparent_proxy(vault_impl_address, owner_address, init)

    def deploy_portal_impl(self, endpoint_address: str) -> str:
        return self.deploy_contract(ContractName.PORTAL.value, ["address"], [endpoint_address])

    def deploy_portal_proxy(self, portal_impl_address: str, owner_address: str) -> str:
        init = encode_initializer("initialize(address)", ["address"], [owner_address])
        return self._deploy_transparent_proxy(portal_impl_address, owner_address, init)

    def deploy_verifier(self, bytecode: str) -> str:
        logger.info("Sending transaction to deploy SnarkVerifier bytecode")
        address = self.deploy_bytecode(bytecode)
        logger.info("SnarkVerifier bytecode deployed at %s", address)
        return address

    def deploy_weth(self) -> str:
        return self.deploy_contract(ContractName.WETH.value)

    def deploy_token(self, token: TokenInfo) -> str:
        """Test ERC-20 minting the whole supply to the deployer."""
        supply = TEST_TOKEN_SUPPLY * 10**token.decimals
        return self.deploy_contract(
            ContractName.TOKEN.value,
            ["address", "uint256", "uint8", "string", "string"],
            [self._signer.address, supply, token.decimals, token.symbol, token.symbol],
        )

