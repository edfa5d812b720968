"""Per-sub-chain RPC connection handling."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from hexbytes import HexBytes
from web3 import HTTPProvider, Web3
from web3.contract import Contract
from web3.types import TxParams

from .config import SubChainConfig
from .exceptions import FeeDataUnavailable, NetworkError, NonceOverrideFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeData:
    """Fee observations of the node, in wei."""

    gas_price: int | None
    max_fee_per_gas: int | None
    max_priority_fee_per_gas: int | None


class NetworkClient:
    """One lazily built Web3 connection to a sub-chain's RPC endpoint.

    Reads and writes block until the node answers; no request or receipt
    timeout is imposed unless one is passed explicitly.
    """

    def __init__(
        self,
        sub_chain: SubChainConfig,
        *,
        request_timeout: float | None = None,
        receipt_timeout: float | None = None,
        poll_latency: float = 0.5,
    ) -> None:
        self.rpc_url = sub_chain.essential.node_rpc_url
        self.logic_chain_id = sub_chain.essential.logic_chain_id
        self._request_timeout = request_timeout
        self._receipt_timeout = receipt_timeout if receipt_timeout is not None else math.inf
        self._poll_latency = poll_latency
        self._web3: Web3 | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> Web3:
        provider = HTTPProvider(self.rpc_url, request_kwargs={"timeout": self._request_timeout})
        web3 = Web3(provider)
        if not web3.is_connected():
            raise NetworkError("Unable to connect to node RPC", endpoint=self.rpc_url)
        self._web3 = web3
        logger.info("Connected to logic chain %s RPC at %s", self.logic_chain_id, self.rpc_url)
        return web3

    def disconnect(self) -> None:
        self._web3 = None

    def is_connected(self) -> bool:
        return self._web3 is not None

    @property
    def web3(self) -> Web3:
        if self._web3 is None:
            return self.connect()
        return self._web3

    # ------------------------------------------------------------------
    # Chain reads
    # ------------------------------------------------------------------
    @property
    def chain_id(self) -> int:
        return int(self.web3.eth.chain_id)

    def block_number(self) -> int:
        return int(self.web3.eth.block_number)

    def contract(self, address: str, abi: Sequence[Mapping[str, Any]]) -> Contract:
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=list(abi))

    def get_storage_at(self, address: str, slot: str) -> HexBytes:
        return HexBytes(self.web3.eth.get_storage_at(Web3.to_checksum_address(address), slot))

    def next_nonce(self, address: str) -> int:
        return int(self.web3.eth.get_transaction_count(Web3.to_checksum_address(address), "pending"))

    def fee_data(self, *, eip1559: bool) -> FeeData:
        """Read current gas price, and base/priority fee when ``eip1559`` is set."""
        eth = self.web3.eth
        try:
            gas_price = int(eth.gas_price)
            if not eip1559:
                return FeeData(gas_price=gas_price, max_fee_per_gas=None, max_priority_fee_per_gas=None)

            block = eth.get_block("latest")
            base_fee = block.get("baseFeePerGas")
            priority_fee = int(eth.max_priority_fee)
        except Exception as exc:
            raise FeeDataUnavailable(
                f"Failed to get fee data: {exc}", {"endpoint": self.rpc_url}
            ) from exc

        if base_fee is None:
            raise FeeDataUnavailable(
                "Latest block carries no base fee; chain does not support EIP-1559",
                {"endpoint": self.rpc_url},
            )
        return FeeData(
            gas_price=gas_price,
            max_fee_per_gas=int(base_fee) * 2 + priority_fee,
            max_priority_fee_per_gas=priority_fee,
        )

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------
    def estimate_gas(self, tx: TxParams) -> int:
        return int(self.web3.eth.estimate_gas(tx))

    def send_raw_transaction(self, raw: bytes) -> HexBytes:
        return HexBytes(self.web3.eth.send_raw_transaction(raw))

    def wait_for_receipt(self, tx_hash: HexBytes) -> Mapping[str, Any]:
        return self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout, poll_latency=self._poll_latency
        )

    def set_nonce(self, address: str, nonce: int) -> None:
        """Force ``address``'s next nonce on a development node."""
        checksum = Web3.to_checksum_address(address)
        response = self.web3.provider.make_request("anvil_setNonce", [checksum, hex(nonce)])
        if isinstance(response, Mapping) and response.get("error"):
            raise NetworkError(
                "anvil_setNonce rejected by node",
                endpoint=self.rpc_url,
                details={"error": response["error"]},
            )

        actual = int(self.web3.eth.get_transaction_count(checksum))
        if actual != nonce:
            logger.error("Failed to set nonce to %s. Actual: %s.", nonce, actual)
            raise NonceOverrideFailed(nonce, actual)
        logger.info("Set nonce of %s to %s", checksum, nonce)
