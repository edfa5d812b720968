"""Configuration containers and the on-disk configuration store."""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar

from dotenv import load_dotenv
from web3 import Web3

from .exceptions import ConfigInconsistent, ConfigNotFound

logger = logging.getLogger(__name__)

DEFAULT_NODE_ENV = "local"
DEFAULT_BACKUP_DIR = "config-backup"

_T = TypeVar("_T", bound="_JsonRecord")


def _key(name: str, **kwargs: Any) -> Any:
    return field(metadata={"key": name}, **kwargs)


class _JsonRecord:
    """Map snake_case attributes onto the upper-snake keys stored on disk."""

    extra: dict[str, Any]

    @classmethod
    def from_dict(cls: type[_T], data: Mapping[str, Any]) -> _T:
        kwargs: dict[str, Any] = {}
        known: set[str] = set()
        missing: list[str] = []
        for f in fields(cls):  # type: ignore[arg-type]
            key = f.metadata.get("key")
            if key is None:
                continue
            known.add(key)
            if key in data:
                kwargs[f.name] = cls._decode_field(f.name, data[key])
            elif f.default is MISSING and f.default_factory is MISSING:
                missing.append(key)
        if missing:
            raise ConfigInconsistent(
                f"{cls.__name__} is missing required keys",
                field=missing[0],
                details={"missing": missing},
            )
        kwargs["extra"] = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        return value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            key = f.metadata.get("key")
            if key is None:
                continue
            value = getattr(self, f.name)
            if isinstance(value, list):
                value = [item.to_dict() if isinstance(item, _JsonRecord) else item for item in value]
            elif isinstance(value, _JsonRecord):
                value = value.to_dict()
            data[key] = value
        data.update(self.extra)
        return data


@dataclass
class SubChainCheckpoint(_JsonRecord):
    """Declared pre-commit checkpoint seed for one peer chain."""

    logic_chain_id: int = _key("LOGIC_CHAIN_ID")
    l1_last_commit_hash: str = _key("L1_LAST_COMMIT_HASH")
    l2_last_commit_hash: str = _key("L2_LAST_COMMIT_HASH")
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenInfo(_JsonRecord):
    """Test token description; ``address`` is filled once deployed."""

    id: int = _key("ID")
    symbol: str = _key("SYMBOL")
    address: str = _key("ADDRESS", default="")
    decimals: int = _key("DECIMALS", default=18)
    limit_digit: int = _key("LIMIT_DIGIT", default=0)
    precision_digit: int = _key("PRECISION_DIGIT", default=0)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class EssentialConfig(_JsonRecord):
    """Identity, secrets, fee policy and address book of one sub-chain."""

    node_rpc_url: str = _key("NODE_RPC_URL")
    chain_id: int = _key("CHAIN_ID")
    logic_chain_id: int = _key("LOGIC_CHAIN_ID")
    primary_logic_chain_id: int = _key("PRIMARY_LOGIC_CHAIN_ID")
    deployer_sk: str = _key("DEPLOYER_SK", default="", repr=False)
    max_fee_per_gas: float = _key("MAX_FEE_PER_GAS", default=0)
    max_priority_fee_per_gas: float = _key("MAX_PRIORITY_FEE_PER_GAS", default=0)
    enable_1559: bool = _key("ENABLE_1559", default=True)
    admin_sk: str = _key("ADMIN_SK", default="", repr=False)
    admin_address: str = _key("ADMIN_ADDRESS", default="")
    enable_multisig_admin: bool = _key("ENABLE_MULTISIG_ADMIN", default=False)
    operator_addresses: list[str] = _key("OPERATOR_ADDRESSES", default_factory=list)
    exit_manager_addresses: list[str] = _key("EXIT_MANAGER_ADDRESSES", default_factory=list)
    github_token: str = _key("GITHUB_TOKEN", default="", repr=False)
    release_tag: str = _key("RELEASE_TAG", default="")
    weth_contract_address: str = _key("WETH_CONTRACT_ADDRESS", default="")
    owner_contract_address: str = _key("OWNER_CONTRACT_ADDRESS", default="")

    vault_proxy_contract_address: str = _key("VAULT_PROXY_CONTRACT_ADDRESS", default="")
    vault_proxy_admin_contract_address: str = _key(
        "VAULT_PROXY_ADMIN_CONTRACT_ADDRESS", default=""
    )
    vault_impl_contract_address: str = _key("VAULT_IMPL_CONTRACT_ADDRESS", default="")
    manager_api_logic_contract_address: str = _key(
        "MANAGER_API_LOGIC_CONTRACT_ADDRESS", default=""
    )
    message_queue_logic_contract_address: str = _key(
        "MESSAGE_QUEUE_LOGIC_CONTRACT_ADDRESS", default=""
    )
    multi_chain_logic_contract_address: str = _key(
        "MULTI_CHAIN_LOGIC_CONTRACT_ADDRESS", default=""
    )
    token_manager_logic_contract_address: str = _key(
        "TOKEN_MANAGER_LOGIC_CONTRACT_ADDRESS", default=""
    )
    user_api_logic_contract_address: str = _key("USER_API_LOGIC_CONTRACT_ADDRESS", default="")
    snark_verifier_contract_address: str = _key("SNARK_VERIFIER_CONTRACT_ADDRESS", default="")
    pre_commit_checkpoint: list[SubChainCheckpoint] = _key(
        "PRE_COMMIT_CHECKPOINT", default_factory=list
    )

    portal_proxy_contract_address: str = _key(
        "LAYER_ZERO_PORTAL_PROXY_CONTRACT_ADDRESS", default=""
    )
    portal_proxy_admin_contract_address: str = _key(
        "LAYER_ZERO_PORTAL_PROXY_ADMIN_CONTRACT_ADDRESS", default=""
    )
    portal_impl_contract_address: str = _key(
        "LAYER_ZERO_PORTAL_IMPL_CONTRACT_ADDRESS", default=""
    )
    endpoint_address: str = _key("LAYER_ZERO_ENDPOINT_ADDRESS", default="")
    endpoint_eid: int = _key("LAYER_ZERO_ENDPOINT_EID", default=0)

    completed_steps: list[str] = _key("COMPLETED_STEPS", default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        if name == "pre_commit_checkpoint":
            return [SubChainCheckpoint.from_dict(item) for item in value]
        return value

    @property
    def is_primary(self) -> bool:
        return self.logic_chain_id == self.primary_logic_chain_id

    def max_fee_wei(self) -> int:
        """Fee ceiling converted from gwei."""
        return int(Web3.to_wei(Decimal(str(self.max_fee_per_gas)), "gwei"))

    def max_priority_fee_wei(self) -> int:
        return int(Web3.to_wei(Decimal(str(self.max_priority_fee_per_gas)), "gwei"))


@dataclass
class TestConfig(_JsonRecord):
    """Test fixtures deployed on development networks."""

    __test__ = False

    tokens: list[TokenInfo] = _key("TOKENS", default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        if name == "tokens":
            return [TokenInfo.from_dict(item) for item in value]
        return value


@dataclass
class SubChainConfig(_JsonRecord):
    """Configuration of one participating network."""

    essential: EssentialConfig = _key("ESSENTIAL")
    test: TestConfig = _key("TEST", default_factory=TestConfig)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        if name == "essential":
            return EssentialConfig.from_dict(value)
        if name == "test":
            return TestConfig.from_dict(value)
        return value

    @property
    def logic_chain_id(self) -> int:
        return self.essential.logic_chain_id


@dataclass
class DeploymentConfig(_JsonRecord):
    """Every sub-chain of one deployment set."""

    sub_chain_cnt: int = _key("SUB_CHAIN_CNT")
    sub_chain_configs: list[SubChainConfig] = _key("SUB_CHAIN_CONFIGS", default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _decode_field(cls, name: str, value: Any) -> Any:
        if name == "sub_chain_configs":
            return [SubChainConfig.from_dict(item) for item in value]
        return value

    def validate(self) -> None:
        """Check the set-level invariants before anything touches the network."""
        if len(self.sub_chain_configs) != self.sub_chain_cnt:
            raise ConfigInconsistent(
                "SUB_CHAIN_CNT not match SUB_CHAIN_CONFIGS",
                field="SUB_CHAIN_CNT",
                value=self.sub_chain_cnt,
                details={"configs": len(self.sub_chain_configs)},
            )
        if not self.sub_chain_configs:
            return

        primary = self.sub_chain_configs[0].essential.primary_logic_chain_id
        for index, sub_chain in enumerate(self.sub_chain_configs):
            essential = sub_chain.essential
            if essential.primary_logic_chain_id != primary:
                raise ConfigInconsistent(
                    f"PRIMARY_LOGIC_CHAIN_ID of chain {index} invalid",
                    field="PRIMARY_LOGIC_CHAIN_ID",
                    value=essential.primary_logic_chain_id,
                )
            if essential.logic_chain_id != index:
                raise ConfigInconsistent(
                    f"LOGIC_CHAIN_ID of chain {index} invalid",
                    field="LOGIC_CHAIN_ID",
                    value=essential.logic_chain_id,
                )

    def sub_chain(self, index: int) -> SubChainConfig:
        try:
            return self.sub_chain_configs[index]
        except IndexError as exc:
            raise ConfigInconsistent(
                f"No sub-chain config at index {index}",
                field="SUB_CHAIN_CONFIGS",
                value=index,
            ) from exc

    @property
    def primary(self) -> SubChainConfig:
        primary_id = self.sub_chain_configs[0].essential.primary_logic_chain_id
        return self.sub_chain(primary_id)

    def subsidiaries(self) -> list[SubChainConfig]:
        return [cfg for cfg in self.sub_chain_configs if not cfg.essential.is_primary]


class ConfigStore:
    """Environment-scoped JSON config file with timestamped backups."""

    def __init__(self, path: Path | str, *, backup_dir: Path | str | None = None) -> None:
        self.path = Path(path)
        self.backup_dir = (
            Path(backup_dir) if backup_dir is not None else self.path.parent / DEFAULT_BACKUP_DIR
        )
        self._config: DeploymentConfig | None = None

    @classmethod
    def from_environment(cls, root: Path | str | None = None) -> ConfigStore:
        """Resolve ``.config.<NODE_ENV>.json`` after loading ``.env``."""
        load_dotenv()
        node_env = os.getenv("NODE_ENV") or DEFAULT_NODE_ENV
        base = Path(root) if root is not None else Path.cwd()
        return cls(base / f".config.{node_env}.json")

    @property
    def config(self) -> DeploymentConfig:
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> DeploymentConfig:
        if not self.path.exists():
            logger.error("Config file %s does not exist.", self.path)
            raise ConfigNotFound(str(self.path))

        backup = self.backup()
        logger.info("Backup created for %s at %s", self.path, backup)

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigInconsistent(
                f"Config file {self.path} is not valid JSON",
                details={"error": str(exc)},
            ) from exc

        config = DeploymentConfig.from_dict(raw)
        logger.info("load config from %s", self.path)
        config.validate()
        self._config = config
        return config

    def backup(self) -> Path:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        target = self.backup_dir / f"{self.path.stem}-{stamp}.json"
        shutil.copyfile(self.path, target)
        return target

    def overwrite(self) -> None:
        """Rewrite the whole file from the in-memory config."""
        if self._config is None:
            raise ConfigInconsistent("No config loaded; nothing to write back")
        self.path.write_text(json.dumps(self._config.to_dict(), indent=2), encoding="utf-8")
        logger.debug("Config written back to %s", self.path)
