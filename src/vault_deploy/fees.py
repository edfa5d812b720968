"""Fee profile selection under a per-chain ceiling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .config import EssentialConfig
from .exceptions import FeeCeilingExceeded, FeeDataUnavailable
from .network import FeeData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeProfile:
    """Fee fields to attach to a pending transaction."""

    gas_price: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None

    def apply(self, tx: dict[str, Any]) -> dict[str, Any]:
        if self.is_eip1559:
            tx.pop("gasPrice", None)
            tx["maxFeePerGas"] = self.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        else:
            tx.pop("maxFeePerGas", None)
            tx.pop("maxPriorityFeePerGas", None)
            tx["gasPrice"] = self.gas_price
        return tx


class FeeStrategy:
    """Compute a submittable fee profile from node fee data and chain policy."""

    def __init__(self, essential: EssentialConfig) -> None:
        self.enable_1559 = essential.enable_1559
        self.ceiling = essential.max_fee_wei()
        self.priority_fee = essential.max_priority_fee_wei()

    def compute(self, fee_data: FeeData) -> FeeProfile:
        if self.enable_1559:
            observed = fee_data.max_fee_per_gas
            if observed is None:
                raise FeeDataUnavailable("Node did not report maxFeePerGas")
            if observed > self.ceiling:
                raise FeeCeilingExceeded(
                    f"Current fee exceeds max price accepted: {observed} > {self.ceiling}",
                    observed=observed,
                    ceiling=self.ceiling,
                )
            # priority fee comes from policy, not from the node
            return FeeProfile(max_fee_per_gas=observed, max_priority_fee_per_gas=self.priority_fee)

        observed = fee_data.gas_price
        if observed is None:
            raise FeeDataUnavailable("Node did not report gasPrice")
        if observed > self.ceiling:
            raise FeeCeilingExceeded(
                f"Current gas price exceeds max price accepted: {observed} > {self.ceiling}",
                observed=observed,
                ceiling=self.ceiling,
            )
        return FeeProfile(gas_price=observed)
