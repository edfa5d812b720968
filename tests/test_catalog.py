"""Tests for the contract catalog and revert decoding."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from eth_abi import encode as abi_encode
from web3 import Web3

from vault_deploy.catalog import ContractCatalog, ErrorRegistry, extract_revert_data
from vault_deploy.exceptions import CatalogError, RevertDecodeFailed

VAULT_ABI = [
    {"type": "function", "name": "chainCnt", "inputs": [], "outputs": [{"type": "uint256"}]},
    {
        "type": "error",
        "name": "InvalidChainId",
        "inputs": [{"name": "chainId", "type": "uint32"}],
    },
]


def _write_artifact(root: Path, name: str, data: dict) -> None:
    folder = root / f"{name}.sol"
    folder.mkdir(parents=True)
    (folder / f"{name}.json").write_text(json.dumps(data), encoding="utf-8")


class TestContractCatalog:
    def test_load_reads_abi_and_nested_bytecode(self, tmp_path: Path) -> None:
        _write_artifact(tmp_path, "Vault", {"abi": VAULT_ABI, "bytecode": {"object": "6080"}})
        catalog = ContractCatalog(tmp_path)

        artifact = catalog.load("Vault")

        assert artifact.abi == VAULT_ABI
        assert artifact.require_bytecode() == "0x6080"
        assert catalog.load("Vault") is artifact

    def test_missing_artifact(self, tmp_path: Path) -> None:
        with pytest.raises(CatalogError) as excinfo:
            ContractCatalog(tmp_path).load("Vault")
        assert excinfo.value.contract == "Vault"

    def test_interface_without_bytecode_cannot_deploy(self, tmp_path: Path) -> None:
        _write_artifact(tmp_path, "IVault", {"abi": VAULT_ABI})
        artifact = ContractCatalog(tmp_path).load("IVault")
        with pytest.raises(CatalogError):
            artifact.require_bytecode()

    def test_abi_missing_is_malformed(self, tmp_path: Path) -> None:
        _write_artifact(tmp_path, "Broken", {"bytecode": "0x00"})
        with pytest.raises(CatalogError):
            ContractCatalog(tmp_path).load("Broken")


class TestErrorRegistry:
    def test_decodes_custom_error(self) -> None:
        registry = ErrorRegistry()
        registry.register_abi("Vault", VAULT_ABI)
        data = Web3.keccak(text="InvalidChainId(uint32)")[:4] + abi_encode(["uint32"], [9])

        decoded = registry.decode(data)

        assert decoded.contract == "Vault"
        assert decoded.name == "InvalidChainId"
        assert decoded.args == {"chainId": 9}
        assert registry.signatures("Vault") == {"InvalidChainId(uint32)"}

    def test_decodes_error_string(self) -> None:
        data = "0x08c379a0" + abi_encode(["string"], ["boom"]).hex()
        decoded = ErrorRegistry().decode(data)
        assert decoded.name == "Error"
        assert decoded.args == {"message": "boom"}

    def test_unknown_selector(self) -> None:
        with pytest.raises(RevertDecodeFailed) as excinfo:
            ErrorRegistry().decode("0xdeadbeef")
        assert excinfo.value.details["selector"] == "0xdeadbeef"

    def test_short_data(self) -> None:
        with pytest.raises(RevertDecodeFailed):
            ErrorRegistry().decode("0x01")

    def test_from_catalog_skips_missing(self, tmp_path: Path) -> None:
        _write_artifact(tmp_path, "Vault", {"abi": VAULT_ABI})
        registry = ErrorRegistry.from_catalog(ContractCatalog(tmp_path), ["Vault", "Missing"])
        assert registry.signatures("Vault") == {"InvalidChainId(uint32)"}
        assert registry.signatures("Missing") == set()


class TestExtractRevertData:
    def test_from_data_attribute(self) -> None:
        exc = ValueError("reverted")
        exc.data = "0xdeadbeef00"  # type: ignore[attr-defined]
        assert extract_revert_data(exc) == bytes.fromhex("deadbeef00")

    def test_from_rpc_error_mapping(self) -> None:
        exc = ValueError({"code": 3, "message": "execution reverted", "data": "0x12345678"})
        assert extract_revert_data(exc) == bytes.fromhex("12345678")

    def test_nothing_to_extract(self) -> None:
        assert extract_revert_data(RuntimeError("plain")) is None
