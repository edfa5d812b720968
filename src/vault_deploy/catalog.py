"""Contract interface catalog and custom-error registry."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eth_abi import decode as abi_decode
from eth_utils.abi import collapse_if_tuple
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import CatalogError, RevertDecodeFailed
from .types import DecodedRevert
from .utils import maybe_add_0x_prefix

logger = logging.getLogger(__name__)

DEFAULT_ABI_DIR = Path("..") / "abi"


@dataclass(frozen=True)
class ContractArtifact:
    """Interface descriptor and, for deployable contracts, creation bytecode."""

    name: str
    abi: list[dict[str, Any]]
    bytecode: str | None

    def require_bytecode(self) -> str:
        if not self.bytecode or self.bytecode == "0x":
            raise CatalogError(f"Contract {self.name} has no creation bytecode", contract=self.name)
        return self.bytecode


class ContractCatalog:
    """Load compiled artifacts from ``<abi_dir>/<File>.sol/<Name>.json``."""

    def __init__(self, abi_dir: Path | str = DEFAULT_ABI_DIR) -> None:
        self.abi_dir = Path(abi_dir)
        self._cache: dict[tuple[str, str], ContractArtifact] = {}

    def load(self, name: str) -> ContractArtifact:
        return self.load_interface(str(name), str(name))

    def load_interface(self, folder: str, file_name: str) -> ContractArtifact:
        cache_key = (folder, file_name)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        path = self.abi_dir / f"{folder}.sol" / f"{file_name}.json"
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            logger.error("Error loading contract %s metadata.", file_name)
            raise CatalogError(
                f"Contract artifact {path} not found", contract=file_name
            ) from exc
        except json.JSONDecodeError as exc:
            logger.error("Error loading contract %s metadata.", file_name)
            raise CatalogError(
                f"Contract artifact {path} is not valid JSON",
                contract=file_name,
                details={"error": str(exc)},
            ) from exc

        artifact = _parse_artifact(file_name, raw)
        self._cache[cache_key] = artifact
        return artifact

    def abi(self, name: str) -> list[dict[str, Any]]:
        return self.load(name).abi


def _parse_artifact(name: str, raw: Any) -> ContractArtifact:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("abi"), list):
        raise CatalogError(f"Contract {name} metadata has no ABI", contract=name)

    bytecode = raw.get("bytecode")
    if isinstance(bytecode, Mapping):
        bytecode = bytecode.get("object")
    if bytecode is not None and not isinstance(bytecode, str):
        raise CatalogError(f"Contract {name} bytecode is malformed", contract=name)

    return ContractArtifact(
        name=name,
        abi=list(raw["abi"]),
        bytecode=maybe_add_0x_prefix(bytecode) if bytecode else None,
    )


@dataclass(frozen=True)
class ErrorSignature:
    contract: str
    name: str
    types: tuple[str, ...]
    arg_names: tuple[str, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.types)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])


_BUILTIN_ERRORS = (
    ErrorSignature("<builtin>", "Error", ("string",), ("message",)),
    ErrorSignature("<builtin>", "Panic", ("uint256",), ("code",)),
)


class ErrorRegistry:
    """Selector lookup over the custom errors of every known contract."""

    def __init__(self, signatures: Iterable[ErrorSignature] = ()) -> None:
        self._by_selector: dict[bytes, ErrorSignature] = {}
        self._by_contract: dict[str, set[str]] = {}
        for signature in (*_BUILTIN_ERRORS, *signatures):
            self.register(signature)

    @classmethod
    def from_catalog(cls, catalog: ContractCatalog, names: Sequence[str]) -> ErrorRegistry:
        registry = cls()
        for name in names:
            try:
                artifact = catalog.load(str(name))
            except CatalogError as exc:
                logger.warning("Skipping %s for revert decoding: %s", name, exc)
                continue
            registry.register_abi(artifact.name, artifact.abi)
        return registry

    def register_abi(self, contract: str, abi: Sequence[Mapping[str, Any]]) -> None:
        for entry in abi:
            if entry.get("type") != "error":
                continue
            inputs = entry.get("inputs", [])
            self.register(
                ErrorSignature(
                    contract=contract,
                    name=entry["name"],
                    types=tuple(collapse_if_tuple(dict(item)) for item in inputs),
                    arg_names=tuple(
                        item.get("name") or f"arg{index}" for index, item in enumerate(inputs)
                    ),
                )
            )

    def register(self, signature: ErrorSignature) -> None:
        self._by_selector.setdefault(signature.selector, signature)
        self._by_contract.setdefault(signature.contract, set()).add(signature.signature)

    def signatures(self, contract: str) -> set[str]:
        return set(self._by_contract.get(contract, set()))

    def decode(self, data: bytes | str) -> DecodedRevert:
        raw = bytes(HexBytes(data))
        if len(raw) < 4:
            raise RevertDecodeFailed(
                "Revert data too short to carry a selector", {"data": HexBytes(raw).to_0x_hex()}
            )

        signature = self._by_selector.get(raw[:4])
        if signature is None:
            raise RevertDecodeFailed(
                "Unknown error selector", {"selector": HexBytes(raw[:4]).to_0x_hex()}
            )

        try:
            values = abi_decode(list(signature.types), raw[4:])
        except Exception as exc:
            raise RevertDecodeFailed(
                f"Failed to decode arguments of {signature.signature}",
                {"error": str(exc)},
            ) from exc

        return DecodedRevert(
            contract=signature.contract,
            name=signature.name,
            args=dict(zip(signature.arg_names, values)),
        )


def extract_revert_data(exc: BaseException) -> bytes | None:
    """Pull structured revert bytes out of a web3/provider exception, if any."""
    candidates: list[Any] = [getattr(exc, "data", None)]
    candidates.extend(arg for arg in exc.args if isinstance(arg, Mapping))
    for candidate in candidates:
        if isinstance(candidate, Mapping):
            candidate = candidate.get("data")
        if isinstance(candidate, bytes | bytearray):
            return bytes(candidate)
        if isinstance(candidate, str) and candidate.startswith("0x") and len(candidate) >= 10:
            try:
                return bytes(HexBytes(candidate))
            except ValueError:
                continue
    return None
