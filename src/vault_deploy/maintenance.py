"""One-off administrative flows run against an already deployed sub-chain."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .config import SubChainConfig
from .constants import LOGIC_CONTRACTS, ContractName
from .deployer import ContractDeployer
from .exceptions import ConfigInconsistent, VaultDeployError
from .operations import ChainOperations
from .orchestrator import LOGIC_ADDRESS_FIELDS, banner
from .readers import ChainReader
from .release import CircuitRelease
from .types import ExecutionResult, TxOrigin

logger = logging.getLogger(__name__)


def update_snark_verifier(
    sub_chain: SubChainConfig,
    deployer: ContractDeployer,
    operations: ChainOperations,
    reader: ChainReader,
    release: CircuitRelease,
) -> ExecutionResult:
    """Deploy the release's verifier and point the vault at it."""
    current = reader.circuit_version()
    if current == release.version:
        raise VaultDeployError(
            f"On-chain circuit version equals with release version {current}",
            {"version": current},
        )
    logger.info("Current circuit version: %s", current)
    logger.info("New circuit version to upgrade: %s", release.version)

    banner("Step 2: Deploy bytecode of all verifiers")
    verifier = deployer.deploy_verifier(release.unified_bytecode)
    sub_chain.essential.snark_verifier_contract_address = verifier

    banner("Step 3: Update vault with new version")
    return operations.update_verifiers(TxOrigin.ADMIN, verifier, release.version)


def update_vault_impl(
    sub_chain: SubChainConfig,
    deployer: ContractDeployer,
    operations: ChainOperations,
    persist: Callable[[], None],
) -> ExecutionResult:
    """Redeploy vault and logic implementations, then upgrade the vault proxy."""
    essential = sub_chain.essential
    if not essential.vault_proxy_contract_address:
        raise ConfigInconsistent(
            "Vault proxy is not deployed", field="VAULT_PROXY_CONTRACT_ADDRESS"
        )

    banner("Step 1: Deploy New Vault Implementations")
    essential.vault_impl_contract_address = deployer.deploy_contract(ContractName.VAULT.value)
    persist()
    for name in LOGIC_CONTRACTS:
        setattr(essential, LOGIC_ADDRESS_FIELDS[name], deployer.deploy_contract(name.value))
        persist()

    banner("Step 2: Upgrade Vault proxy implementation")
    result = operations.upgrade_proxy_impl(
        TxOrigin.ADMIN,
        essential.vault_proxy_contract_address,
        essential.vault_impl_contract_address,
    )
    persist()
    return result


def deploy_weth(sub_chain: SubChainConfig, deployer: ContractDeployer, persist: Callable[[], None]) -> str:
    banner("Step 1: Deploy WETH Token contract")
    sub_chain.essential.weth_contract_address = deployer.deploy_weth()
    persist()
    return sub_chain.essential.weth_contract_address


def deploy_test_tokens(
    sub_chain: SubChainConfig, deployer: ContractDeployer, persist: Callable[[], None]
) -> list[str]:
    banner("Step 1: Deploy ERC20 Token Contract")
    addresses = []
    for token in sub_chain.test.tokens:
        token.address = deployer.deploy_token(token)
        addresses.append(token.address)
    for index, address in enumerate(addresses, start=1):
        logger.info("ERC20 Token %s is deployed to: %s.", index, address)
    persist()
    return addresses


def register_test_tokens(sub_chain: SubChainConfig, operations: ChainOperations) -> list[ExecutionResult]:
    banner("Step 1: Register and Activate Tokens")
    results = []
    for token in sub_chain.test.tokens:
        if not token.address:
            raise ConfigInconsistent(
                f"Token {token.symbol} has no deployed address", field="TEST.TOKENS.ADDRESS"
            )
        results.append(
            operations.register_token(
                TxOrigin.ADMIN,
                token.address,
                token.id,
                token.limit_digit,
                token.precision_digit,
                token.decimals,
            )
        )
        results.append(operations.set_asset_active(TxOrigin.ADMIN, token.id))
    return results
