"""Contract bindings producing read calls and encoded write payloads."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from eth_abi import encode as abi_encode
from eth_typing import ChecksumAddress, HexStr
from eth_utils import is_hex_address
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from .exceptions import CatalogError, NetworkError
from .network import NetworkClient

logger = logging.getLogger(__name__)


def _checksum_args(args: Sequence[Any]) -> list[Any]:
    """Checksum top-level address arguments; web3 rejects lowercase addresses."""
    return [
        Web3.to_checksum_address(arg) if isinstance(arg, str) and is_hex_address(arg) else arg
        for arg in args
    ]


class ContractInvoker:
    """Bind an address and interface to a sub-chain connection."""

    def __init__(
        self,
        client: NetworkClient,
        name: str,
        address: str,
        abi: Sequence[Mapping[str, Any]],
    ) -> None:
        self.client = client
        self.name = name
        self.address: ChecksumAddress = Web3.to_checksum_address(address)
        self._abi = abi
        self._contract: Contract | None = None

    @property
    def contract(self) -> Contract:
        if self._contract is None:
            self._contract = self.client.contract(self.address, self._abi)
        return self._contract

    def _function(self, fn_name: str, args: Sequence[Any]) -> Any:
        try:
            return getattr(self.contract.functions, fn_name)(*_checksum_args(args))
        except AttributeError as exc:
            raise CatalogError(
                f"{self.name} interface has no function {fn_name}", contract=self.name
            ) from exc

    def has_function(self, fn_name: str) -> bool:
        return any(
            entry.get("type") == "function" and entry.get("name") == fn_name
            for entry in self._abi
        )

    def call(self, fn_name: str, *args: Any) -> Any:
        function = self._function(fn_name, args)
        try:
            return function.call()
        except Exception as exc:
            raise NetworkError(
                f"Call {self.name}.{fn_name} failed",
                endpoint=self.client.rpc_url,
                details={"address": self.address, "args": list(args), "error": str(exc)},
            ) from exc

    def encode(self, fn_name: str, *args: Any) -> HexStr:
        """ABI-encode a call to ``fn_name`` as 0x-prefixed call data."""
        return self.contract.encode_abi(fn_name, args=_checksum_args(args))

    def transaction(self, fn_name: str, *args: Any) -> dict[str, Any]:
        return {"to": self.address, "data": self.encode(fn_name, *args)}


def encode_constructor_args(types: Sequence[str], args: Sequence[Any]) -> str:
    """ABI-encode constructor arguments as 0x-prefixed hex."""
    if not types:
        return "0x"
    return HexBytes(abi_encode(list(types), list(args))).to_0x_hex()
