from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from eth_abi import decode as abi_decode
from eth_account import Account
from web3 import Web3

from vault_deploy.catalog import ContractArtifact
from vault_deploy.config import DeploymentConfig
from vault_deploy.constants import DEFAULT_ADMIN_ROLE, PROXY_ADMIN_SLOT, ZERO_BYTES32
from vault_deploy.deployer import ContractDeployer
from vault_deploy.exceptions import ConfigInconsistent, TransactionReverted
from vault_deploy.operations import ChainOperations
from vault_deploy.orchestrator import DeploymentOrchestrator, configure_peers
from vault_deploy.readers import ChainReader
from vault_deploy.release import CircuitRelease
from vault_deploy.router import ExecutionRouter
from vault_deploy.types import TxOrigin
from vault_deploy.validator import ConsistencyValidator

DEPLOYER = Account.from_key("0x" + "11" * 32)
ADMIN = Account.from_key("0x" + "22" * 32)
RELEASE_TAG = "v3.1.0"
WETH = "0x" + "77" * 20
ENDPOINT = "0x" + "1a" * 20
L1_LAST = "0x" + "a1" * 32
L2_LAST = "0x" + "b2" * 32
QUEUE_L1_HASH = "0x" + "c3" * 32
QUEUE_L2_HASH = "0x" + "d4" * 32
VERIFIER_BYTECODE = "0x" + b"SnarkVerifier".hex() + "fe"


def fake_bytecode(name: str) -> str:
    return "0x" + name.encode().hex() + "fe"


def essential_dict(index: int, count: int, **overrides: Any) -> dict[str, Any]:
    data = {
        "NODE_RPC_URL": f"http://127.0.0.1:{8545 + index}",
        "CHAIN_ID": 31337 + index,
        "LOGIC_CHAIN_ID": index,
        "PRIMARY_LOGIC_CHAIN_ID": 0,
        "DEPLOYER_SK": "0x" + "11" * 32,
        "MAX_FEE_PER_GAS": 100,
        "MAX_PRIORITY_FEE_PER_GAS": 1.5,
        "ENABLE_1559": True,
        "ADMIN_SK": "0x" + "22" * 32,
        "ADMIN_ADDRESS": ADMIN.address,
        "ENABLE_MULTISIG_ADMIN": False,
        "OPERATOR_ADDRESSES": ["0x" + "0a" * 20],
        "EXIT_MANAGER_ADDRESSES": ["0x" + "0e" * 20],
        "GITHUB_TOKEN": "ghp_test",
        "RELEASE_TAG": RELEASE_TAG,
        "WETH_CONTRACT_ADDRESS": WETH,
        "LAYER_ZERO_ENDPOINT_ADDRESS": ENDPOINT,
        "LAYER_ZERO_ENDPOINT_EID": 30100 + index,
        "PRE_COMMIT_CHECKPOINT": [
            {
                "LOGIC_CHAIN_ID": peer,
                "L1_LAST_COMMIT_HASH": L1_LAST,
                "L2_LAST_COMMIT_HASH": L2_LAST,
            }
            for peer in range(count)
            if peer != index
        ],
    }
    data.update(overrides)
    return data


def config_dict(count: int = 2) -> dict[str, Any]:
    return {
        "SUB_CHAIN_CNT": count,
        "SUB_CHAIN_CONFIGS": [
            {
                "ESSENTIAL": essential_dict(index, count),
                "TEST": {"TOKENS": [{"ID": 1, "SYMBOL": "USDT", "DECIMALS": 6}]},
            }
            for index in range(count)
        ],
    }


def make_config(count: int = 2) -> DeploymentConfig:
    config = DeploymentConfig.from_dict(config_dict(count))
    config.validate()
    return config


# ----------------------------------------------------------------------
# In-memory chain
# ----------------------------------------------------------------------
@dataclass
class FakeContract:
    kind: str
    address: str
    state: dict[str, Any] = field(default_factory=dict)


class FakeChain:
    """Minimal stand-in for one sub-chain's contracts, storage and calls."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.contracts: dict[str, FakeContract] = {}
        self.storage: dict[tuple[str, str], bytes] = {}
        self.payloads: dict[str, tuple[str, str, tuple[Any, ...]]] = {}
        self.log: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.enumerable_roles = True
        self._addresses = itertools.count(1)
        self._payload_ids = itertools.count(1)

    # addresses --------------------------------------------------------
    def new_address(self) -> str:
        return Web3.to_checksum_address(f"0x{self.index + 1:04x}{next(self._addresses):036x}")

    def contract_at(self, address: str) -> FakeContract:
        return self.contracts[address.lower()]

    def find(self, kind: str) -> list[FakeContract]:
        return [c for c in self.contracts.values() if c.kind == kind]

    def remember(self, address: str, fn_name: str, args: tuple[Any, ...]) -> str:
        data = "0x" + f"{next(self._payload_ids):064x}"
        self.payloads[data] = (address, fn_name, args)
        return data

    # deployment -------------------------------------------------------
    def deploy(self, sender: str, data: str) -> str:
        names = ["TransparentUpgradeableProxy", "LayerZeroPortal", "VesselOwner", "Vault",
                 "ManagerApiLogic", "MessageQueueLogic", "MultiChainLogic",
                 "TokenManagerLogic", "UserApiLogic", "Token", "WETH"]
        for name in names:
            prefix = fake_bytecode(name)
            if data.startswith(prefix):
                return self._create(name, sender, bytes.fromhex(data[len(prefix):]))
        if data.startswith(VERIFIER_BYTECODE):
            return self._create("SnarkVerifier", sender, b"")
        raise AssertionError(f"unknown bytecode {data[:20]}")

    def _create(self, kind: str, sender: str, ctor_args: bytes) -> str:
        address = self.new_address()
        contract = FakeContract(kind, address)
        if kind == "VesselOwner":
            contract.state["roles"] = {DEFAULT_ADMIN_ROLE: {sender.lower()}}
        elif kind == "TransparentUpgradeableProxy":
            impl, owner, _init = abi_decode(["address", "address", "bytes"], ctor_args)
            implementation = self.contract_at(impl)
            contract.kind = implementation.kind
            contract.state.update(admin=owner, implementation=impl)
            admin_address = self.new_address()
            self.contracts[admin_address.lower()] = FakeContract(
                "ProxyAdmin", admin_address, {"owner": owner}
            )
            self.storage[(address.lower(), PROXY_ADMIN_SLOT)] = b"\0" * 12 + bytes.fromhex(
                admin_address[2:]
            )
        elif kind == "LayerZeroPortal":
            (endpoint,) = abi_decode(["address"], ctor_args)
            contract.state["endpoint"] = endpoint
        self.contracts[address.lower()] = contract
        self.log.append(("deploy", kind))
        return address

    # writes -----------------------------------------------------------
    def transact(self, sender: str, to: str, data: str) -> None:
        address, fn_name, args = self.payloads[data]
        assert address.lower() == to.lower()
        if fn_name in self.fail_on:
            raise TransactionReverted("Transaction reverted", {"status": 0})
        contract = self.contract_at(address)
        if contract.kind == "VesselOwner" and fn_name == "execute":
            target, _value, inner, role = args
            self._require_role(contract, role, sender)
            inner_address, inner_fn, inner_args = self.payloads[inner]
            assert inner_address.lower() == target.lower()
            if inner_fn in self.fail_on:
                raise TransactionReverted("Transaction reverted", {"status": 0})
            self.apply(self.contract_at(target), inner_fn, inner_args, contract.address)
        else:
            self.apply(contract, fn_name, args, sender)

    def _require_role(self, owner: FakeContract, role: str, account: str) -> None:
        if account.lower() not in owner.state["roles"].get(role, set()):
            raise TransactionReverted("AccessControlUnauthorizedAccount", {"account": account})

    def apply(self, contract: FakeContract, fn_name: str, args: tuple[Any, ...], sender: str) -> None:
        state = contract.state
        self.log.append((contract.kind, fn_name))
        if contract.kind == "VesselOwner":
            role, account = args
            if fn_name == "grantRole":
                self._require_role(contract, role, sender)
                state["roles"].setdefault(role, set()).add(account.lower())
            elif fn_name == "renounceRole":
                assert account.lower() == sender.lower()
                state["roles"][role].discard(account.lower())
            return
        if contract.kind == "ProxyAdmin":
            proxy, impl = args
            self.contract_at(proxy).state["implementation"] = impl
            return
        if fn_name == "setConfigured":
            state["configured"] = args[0]
        elif contract.kind == "Vault":
            self._apply_vault(state, fn_name, args)
        elif contract.kind == "LayerZeroPortal":
            self._apply_portal(state, fn_name, args)

    def _apply_vault(self, state: dict[str, Any], fn_name: str, args: tuple[Any, ...]) -> None:
        if fn_name == "updateAll":
            state["verifier"], state["circuitVersion"] = args
        elif fn_name == "registerOperator":
            state.setdefault("operators", {})[args[0].lower()] = True
        elif fn_name == "registerExitManager":
            state.setdefault("exitManagers", {})[args[0].lower()] = True
        elif fn_name == "registerNewAsset":
            state.setdefault("assets", {})[args[1]] = {"address": args[0], "active": False}
        elif fn_name == "setAssetActive":
            state["assets"][args[0]]["active"] = True
        elif fn_name == "configureAll":
            (weth, user_api, manager_api, message_queue, token_manager, multi_chain, portal,
             logic_id, primary_id, chain_cnt, checkpoints) = args
            state.update(
                wethAddress=weth,
                userApiLogicAddress=user_api,
                managerApiLogicAddress=manager_api,
                messageQueueLogicAddress=message_queue,
                tokenManagerLogicAddress=token_manager,
                multiChainLogicAddress=multi_chain,
                crossChainPortalContract=portal,
                logicChainId=logic_id,
                primaryLogicChainId=primary_id,
                chainCnt=chain_cnt,
                preCommitCheckpointList={
                    cp["logicChainId"]: (
                        cp["logicChainId"],
                        cp["l1MessageCnt"],
                        cp["l1LastCommitHash"],
                        cp["l1NextCommitHash"],
                        cp["l2LastCommitHash"],
                    )
                    for cp in checkpoints
                },
                postCommitConfirmation=(logic_id, 0, QUEUE_L1_HASH, QUEUE_L2_HASH),
                l1ToL2MessageQueueCommitIndex=0,
                l1ToL2MessageQueueHash={0: QUEUE_L1_HASH},
                l2ToL1MessageQueueCommitHash=QUEUE_L2_HASH,
            )

    def _apply_portal(self, state: dict[str, Any], fn_name: str, args: tuple[Any, ...]) -> None:
        if fn_name == "configureAll":
            vault, eids = args
            state.update(
                vaultContract=vault,
                chainCnt=len(eids),
                logicChainIdToEid=dict(enumerate(eids)),
                eidToLogicChainId={eid: index for index, eid in enumerate(eids)},
            )
        elif fn_name == "setPeer":
            eid, peer = args
            state.setdefault("peers", {})[eid] = peer

    # reads ------------------------------------------------------------
    def read(self, address: str, fn_name: str, args: tuple[Any, ...]) -> Any:
        contract = self.contract_at(address)
        state = contract.state
        if contract.kind == "VesselOwner":
            holders = state["roles"].get(args[0], set())
            if fn_name == "hasRole":
                return args[1].lower() in holders
            if fn_name == "getRoleMemberCount":
                return len(holders)
        if fn_name in ("operators", "exitManagers"):
            return state.get(fn_name, {}).get(args[0].lower(), False)
        if fn_name == "peers":
            return state.get("peers", {}).get(args[0], ZERO_BYTES32)
        if fn_name == "circuitVersion":
            return state.get("circuitVersion", "")
        value = state.get(fn_name, 0)
        if args:
            return value.get(args[0], 0)
        return value

    def storage_at(self, address: str, slot: str) -> bytes:
        return self.storage.get((address.lower(), slot), b"\0" * 32)


class FakeInvoker:
    def __init__(self, chain: FakeChain, name: str, address: str) -> None:
        self.chain = chain
        self.name = name
        self.address = Web3.to_checksum_address(address)

    def has_function(self, fn_name: str) -> bool:
        if fn_name == "getRoleMemberCount":
            return self.chain.enumerable_roles
        return True

    def call(self, fn_name: str, *args: Any) -> Any:
        return self.chain.read(self.address, fn_name, args)

    def encode(self, fn_name: str, *args: Any) -> str:
        return self.chain.remember(self.address, fn_name, args)

    def transaction(self, fn_name: str, *args: Any) -> dict[str, Any]:
        return {"to": self.address, "data": self.encode(fn_name, *args)}


class FakeSubmitter:
    def __init__(self, chain: FakeChain) -> None:
        self.chain = chain
        self.submitted: list[tuple[str, dict[str, Any]]] = []

    def submit(self, signer: Any, unsigned_tx: dict[str, Any]) -> dict[str, Any]:
        self.submitted.append((signer.address, dict(unsigned_tx)))
        if "to" not in unsigned_tx:
            address = self.chain.deploy(signer.address, unsigned_tx["data"])
            return {"status": 1, "gasUsed": 1_000_000, "contractAddress": address}
        self.chain.transact(signer.address, unsigned_tx["to"], unsigned_tx["data"])
        return {"status": 1, "gasUsed": 50_000, "contractAddress": None}


class FakeCatalog:
    def load(self, name: str) -> ContractArtifact:
        return ContractArtifact(name=name, abi=[], bytecode=fake_bytecode(name))


class FakeWorld:
    """A deployment set whose every sub-chain is an in-memory :class:`FakeChain`."""

    def __init__(self, config: DeploymentConfig) -> None:
        self.config = config
        self.chains = [FakeChain(index) for index in range(config.sub_chain_cnt)]
        self.persisted: list[dict[str, Any]] = []
        self.release_loads = 0

    def persist(self) -> None:
        self.persisted.append(self.config.to_dict())

    def load_release(self) -> CircuitRelease:
        self.release_loads += 1
        return CircuitRelease(version=RELEASE_TAG, unified_bytecode=VERIFIER_BYTECODE)

    def binder(self, index: int) -> Callable[[str, str], FakeInvoker]:
        chain = self.chains[index]

        def bind(name: str, address: str) -> FakeInvoker:
            if not address:
                raise ConfigInconsistent(f"No address configured for {name}", field=name)
            return FakeInvoker(chain, name, address)

        return bind

    def components(self, index: int) -> SimpleNamespace:
        sub_chain = self.config.sub_chain(index)
        chain = self.chains[index]
        submitter = FakeSubmitter(chain)
        bind = self.binder(index)
        reader = ChainReader(sub_chain, bind, chain.storage_at)
        router = ExecutionRouter(
            sub_chain,
            submitter,  # type: ignore[arg-type]
            bind,  # type: ignore[arg-type]
            lambda origin: ADMIN if origin is TxOrigin.ADMIN else DEPLOYER,
        )
        operations = ChainOperations(sub_chain, router, bind, reader)  # type: ignore[arg-type]
        deployer = ContractDeployer(sub_chain, submitter, FakeCatalog(), DEPLOYER)  # type: ignore[arg-type]
        orchestrator = DeploymentOrchestrator(
            self.config,
            sub_chain,
            deployer,
            operations,
            reader,
            persist=self.persist,
            release_loader=self.load_release,
        )
        validator = ConsistencyValidator(self.config, sub_chain, reader)
        return SimpleNamespace(
            sub_chain=sub_chain,
            chain=chain,
            submitter=submitter,
            reader=reader,
            router=router,
            operations=operations,
            deployer=deployer,
            orchestrator=orchestrator,
            validator=validator,
        )

    def deploy_all(self) -> None:
        """Deploy every sub-chain, then bind the portal peers."""
        for index in range(self.config.sub_chain_cnt):
            self.components(index).orchestrator.run()
        for index in range(self.config.sub_chain_cnt):
            c = self.components(index)
            configure_peers(self.config, c.sub_chain, c.operations)


@pytest.fixture
def world() -> FakeWorld:
    return FakeWorld(make_config(2))


@pytest.fixture
def make_world() -> Callable[[int], FakeWorld]:
    return lambda count: FakeWorld(make_config(count))
