"""Command line entry points.

Usage:
    vault-deploy deploy --chain 0 [--nonce 12]
    vault-deploy configure-portal --chain 1
    vault-deploy validate --chain 0
    vault-deploy register-operator 0x570b2C710445091C95a2859cE282D16D4Cf1A257
    vault-deploy update-verifier
    vault-deploy update-vault-impl
    vault-deploy deploy-weth | deploy-tokens | register-tokens
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from dotenv import load_dotenv

from . import maintenance
from .catalog import DEFAULT_ABI_DIR
from .config import SubChainConfig
from .context import DeploymentContext
from .deployer import ContractDeployer
from .exceptions import VaultDeployError
from .log import setup_logging
from .operations import ChainOperations
from .orchestrator import DeploymentOrchestrator, banner, configure_peers
from .readers import ChainReader
from .release import CircuitReleaseFetcher
from .types import TxOrigin
from .validator import ConsistencyValidator

logger = logging.getLogger(__name__)

Handler = Callable[[DeploymentContext, SubChainConfig, argparse.Namespace], None]


def _announce(title: str, sub_chain: SubChainConfig) -> None:
    essential = sub_chain.essential
    banner(title)
    logger.info("Chain ID: %s", essential.chain_id)
    logger.info("Node RPC: %s", essential.node_rpc_url)
    logger.info("Vault address: %s", essential.vault_proxy_contract_address)


def cmd_deploy(ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace) -> None:
    logger.info("Current Block: %s", ctx.client(sub_chain).block_number())
    DeploymentOrchestrator.from_context(ctx, sub_chain).run()


def cmd_configure_portal(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    configure_peers(ctx.config, sub_chain, ChainOperations.from_context(ctx, sub_chain))


def cmd_validate(ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace) -> None:
    validator = ConsistencyValidator.from_context(ctx, sub_chain)
    validator.run()
    validator.mark_configured(ChainOperations.from_context(ctx, sub_chain))


def cmd_register_operator(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Add Operator Vault", sub_chain)
    ChainOperations.from_context(ctx, sub_chain).register_operator(TxOrigin.ADMIN, args.address)


def cmd_register_exit_manager(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Add ExitManager Vault", sub_chain)
    ChainOperations.from_context(ctx, sub_chain).register_exit_manager(
        TxOrigin.ADMIN, args.address
    )


def cmd_update_verifier(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Update Snark Verifier", sub_chain)
    banner("Step 1: Download release from github")
    essential = sub_chain.essential
    release = CircuitReleaseFetcher(essential.github_token).fetch(essential.release_tag)
    maintenance.update_snark_verifier(
        sub_chain,
        ContractDeployer.from_context(ctx, sub_chain),
        ChainOperations.from_context(ctx, sub_chain),
        ChainReader.from_context(ctx, sub_chain),
        release,
    )
    ctx.persist()


def cmd_update_vault_impl(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Update Vault Implementation", sub_chain)
    maintenance.update_vault_impl(
        sub_chain,
        ContractDeployer.from_context(ctx, sub_chain),
        ChainOperations.from_context(ctx, sub_chain),
        ctx.persist,
    )


def cmd_deploy_weth(ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace) -> None:
    _announce("Deploy WETH Token contract", sub_chain)
    maintenance.deploy_weth(sub_chain, ContractDeployer.from_context(ctx, sub_chain), ctx.persist)


def cmd_deploy_tokens(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Deploy Test Tokens", sub_chain)
    maintenance.deploy_test_tokens(
        sub_chain, ContractDeployer.from_context(ctx, sub_chain), ctx.persist
    )


def cmd_register_tokens(
    ctx: DeploymentContext, sub_chain: SubChainConfig, args: argparse.Namespace
) -> None:
    _announce("Register And Activate Token", sub_chain)
    maintenance.register_test_tokens(sub_chain, ChainOperations.from_context(ctx, sub_chain))


COMMANDS: dict[str, Handler] = {
    "deploy": cmd_deploy,
    "configure-portal": cmd_configure_portal,
    "validate": cmd_validate,
    "register-operator": cmd_register_operator,
    "register-exit-manager": cmd_register_exit_manager,
    "update-verifier": cmd_update_verifier,
    "update-vault-impl": cmd_update_vault_impl,
    "deploy-weth": cmd_deploy_weth,
    "deploy-tokens": cmd_deploy_tokens,
    "register-tokens": cmd_register_tokens,
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--chain", type=int, default=0, help="Index of the sub-chain in SUB_CHAIN_CONFIGS (default: 0)"
    )
    common.add_argument(
        "--nonce", type=int, default=None, help="Force the deployer's next nonce before any step"
    )
    common.add_argument(
        "--root", type=Path, default=None, help="Directory holding .config.<NODE_ENV>.json"
    )
    common.add_argument(
        "--abi-dir", type=Path, default=DEFAULT_ABI_DIR, help="Directory of compiled contract artifacts"
    )

    parser = argparse.ArgumentParser(
        prog="vault-deploy",
        description="Deploy, wire and validate vault and portal contracts across sub-chains",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("deploy", parents=[common], help="Deploy and configure every contract")
    sub.add_parser("configure-portal", parents=[common], help="Set portal peers in a star topology")
    sub.add_parser(
        "validate", parents=[common], help="Validate on-chain state, then mark vault and portal configured"
    )
    p_op = sub.add_parser("register-operator", parents=[common], help="Register a vault operator")
    p_op.add_argument("address", help="Operator address")
    p_em = sub.add_parser(
        "register-exit-manager", parents=[common], help="Register a vault exit manager"
    )
    p_em.add_argument("address", help="Exit manager address")
    sub.add_parser(
        "update-verifier", parents=[common], help="Deploy the RELEASE_TAG verifier and update the vault"
    )
    sub.add_parser(
        "update-vault-impl", parents=[common], help="Redeploy vault implementations and upgrade the proxy"
    )
    sub.add_parser("deploy-weth", parents=[common], help="Deploy a WETH contract")
    sub.add_parser("deploy-tokens", parents=[common], help="Deploy the TEST.TOKENS ERC-20 contracts")
    sub.add_parser(
        "register-tokens", parents=[common], help="Register and activate every TEST.TOKENS asset"
    )
    return parser


def run(args: argparse.Namespace, ctx: DeploymentContext) -> None:
    """Apply the nonce override, then run the selected command on ``ctx``."""
    sub_chain = ctx.sub_chain(args.chain)
    if args.nonce is not None:
        deployer = ctx.deployer_signer(sub_chain)
        ctx.client(sub_chain).set_nonce(deployer.address, args.nonce)
        logger.info("Set deployer nonce to %s", args.nonce)
    COMMANDS[args.command](ctx, sub_chain, args)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging()
    try:
        with DeploymentContext.from_environment(root=args.root, abi_dir=args.abi_dir) as ctx:
            run(args, ctx)
            logger.info("Flow finishes successfully")
            logger.info("Total gas used: %s", ctx.gas_meter.total)
    except VaultDeployError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        if exc.details:
            logger.error("Details: %s", exc.details)
        return 1
    except Exception:
        logger.exception("Flow failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
