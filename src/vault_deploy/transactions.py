"""Transaction submission: estimate, budget, price, send, confirm."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes

from .catalog import ErrorRegistry, extract_revert_data
from .exceptions import EstimationFailed, RevertDecodeFailed, SubmissionFailed, TransactionReverted
from .fees import FeeStrategy
from .network import NetworkClient
from .utils import serialise_receipt, stringify

logger = logging.getLogger(__name__)

#: Gas limit = estimate * GAS_LIMIT_NUMERATOR // GAS_LIMIT_DENOMINATOR
GAS_LIMIT_NUMERATOR = 12
GAS_LIMIT_DENOMINATOR = 10

_BANNER = "=" * 64


def budget_gas_limit(estimate: int) -> int:
    """Apply the fixed 20% safety margin with integer truncation."""
    return estimate * GAS_LIMIT_NUMERATOR // GAS_LIMIT_DENOMINATOR


class GasMeter:
    """Running total of gas used by confirmed transactions in this process."""

    def __init__(self) -> None:
        self.total = 0
        self.transactions = 0

    def record(self, gas_used: int) -> None:
        self.total += gas_used
        self.transactions += 1


class TransactionSubmitter:
    """Sign and submit transactions for one sub-chain and wait for them to be mined."""

    def __init__(
        self,
        client: NetworkClient,
        fee_strategy: FeeStrategy,
        *,
        errors: ErrorRegistry | None = None,
        gas_meter: GasMeter | None = None,
    ) -> None:
        self._client = client
        self._fee_strategy = fee_strategy
        self._errors = errors or ErrorRegistry()
        self._gas_meter = gas_meter or GasMeter()

    @property
    def gas_meter(self) -> GasMeter:
        return self._gas_meter

    def submit(self, signer: LocalAccount, unsigned_tx: Mapping[str, Any]) -> Mapping[str, Any]:
        tx: dict[str, Any] = dict(unsigned_tx)
        tx.setdefault("from", signer.address)
        tx.setdefault("value", 0)

        try:
            estimate = self._client.estimate_gas(tx)
        except Exception as exc:
            logger.error("Failed to estimate gas for transaction: %s", exc)
            self._log_revert_reason(exc)
            raise EstimationFailed(
                "Failed to estimate gas for transaction",
                {"to": tx.get("to"), "error": str(exc)},
            ) from exc
        logger.debug("Gas estimation to send transaction: %s.", estimate)
        tx["gas"] = budget_gas_limit(estimate)

        self._fee_strategy.compute(
            self._client.fee_data(eip1559=self._fee_strategy.enable_1559)
        ).apply(tx)

        tx_hash_hex: str | None = None
        try:
            tx["nonce"] = self._client.next_nonce(signer.address)
            tx["chainId"] = self._client.chain_id
            signed = signer.sign_transaction(tx)
            tx_hash = self._client.send_raw_transaction(signed.raw_transaction)
            tx_hash_hex = HexBytes(tx_hash).to_0x_hex()
            logger.debug("Transaction sent: hash=%s nonce=%s", tx_hash_hex, tx["nonce"])
            receipt = self._client.wait_for_receipt(tx_hash)
        except Exception as exc:
            logger.error("Failed to submit transaction %s: %s", tx_hash_hex or "(not broadcast)", exc)
            self._log_revert_reason(exc)
            details = {"to": tx.get("to"), "nonce": tx.get("nonce"), "error": str(exc)}
            if tx_hash_hex is not None:
                details["tx_hash"] = tx_hash_hex
            raise SubmissionFailed("Failed to submit transaction", details) from exc

        if receipt.get("status") != 1:
            logger.error("transaction reverted. receipt:")
            logger.error(stringify(receipt))
            raise TransactionReverted(
                "Transaction reverted",
                receipt,
                {"receipt": serialise_receipt(receipt)},
            )

        gas_used = int(receipt.get("gasUsed", 0))
        self._gas_meter.record(gas_used)
        logger.info(
            "Transaction confirmed. Gas used: %s. Gas price: %s",
            gas_used,
            receipt.get("effectiveGasPrice"),
        )
        logger.info(_BANNER)
        return receipt

    def _log_revert_reason(self, exc: BaseException) -> None:
        data = extract_revert_data(exc)
        if data is None:
            return
        try:
            decoded = self._errors.decode(data)
        except RevertDecodeFailed as decode_exc:
            logger.error("Fail to decode: %s %s", decode_exc, stringify(decode_exc.details))
            return
        logger.error("Error Name: %s", decoded.name)
        logger.error("Error arg: %s", stringify(decoded.args))
