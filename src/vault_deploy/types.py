"""Type definitions and value records shared across the toolkit."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from eth_account.signers.local import LocalAccount

from .utils import hex_equal, maybe_add_0x_prefix


class TxOrigin(Enum):
    """Logical identity a privileged write originates from."""

    DEPLOYER = "deployer"
    ADMIN = "admin"


@dataclass(frozen=True)
class DirectSubmit:
    """Sign with ``signer`` and submit immediately."""

    origin: TxOrigin
    signer: LocalAccount


@dataclass(frozen=True)
class ProposeForApproval:
    """Emit a proposal for external co-signing instead of submitting."""

    origin: TxOrigin


ExecutionPlan = DirectSubmit | ProposeForApproval


@dataclass(frozen=True)
class ProposalArtifact:
    """Multisig proposal printed for an external co-signing workflow."""

    to: str
    data: str
    value: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {"to": self.to, "data": self.data, "value": self.value}


@dataclass
class ExecutionResult:
    """Outcome of a routed privileged call."""

    proposal: ProposalArtifact | None = None
    receipt: Mapping[str, Any] | None = None

    @property
    def executed(self) -> bool:
        return self.receipt is not None


def _normalise_hash(value: Any) -> str:
    if isinstance(value, bytes | bytearray):
        return "0x" + bytes(value).hex()
    return maybe_add_0x_prefix(str(value))


@dataclass(frozen=True)
class PreCommitCheckpoint:
    """Hash-chained cursor over the inbound and outbound message queues."""

    logic_chain_id: int
    l1_message_cnt: int
    l1_last_commit_hash: str
    l1_next_commit_hash: str
    l2_last_commit_hash: str

    @classmethod
    def from_onchain(cls, raw: Any) -> PreCommitCheckpoint:
        """Build from the tuple returned by ``preCommitCheckpointList``."""
        logic_chain_id, cnt, l1_last, l1_next, l2_last = raw
        return cls(
            logic_chain_id=int(logic_chain_id),
            l1_message_cnt=int(cnt),
            l1_last_commit_hash=_normalise_hash(l1_last),
            l1_next_commit_hash=_normalise_hash(l1_next),
            l2_last_commit_hash=_normalise_hash(l2_last),
        )

    @classmethod
    def seed(cls, logic_chain_id: int, l1_last: str, l2_last: str) -> PreCommitCheckpoint:
        """Checkpoint as written at (re-)configuration: zero count, next == last."""
        return cls(
            logic_chain_id=logic_chain_id,
            l1_message_cnt=0,
            l1_last_commit_hash=l1_last,
            l1_next_commit_hash=l1_last,
            l2_last_commit_hash=l2_last,
        )

    def as_struct(self) -> dict[str, Any]:
        return {
            "logicChainId": self.logic_chain_id,
            "l1MessageCnt": self.l1_message_cnt,
            "l1LastCommitHash": self.l1_last_commit_hash,
            "l1NextCommitHash": self.l1_next_commit_hash,
            "l2LastCommitHash": self.l2_last_commit_hash,
        }


@dataclass(frozen=True)
class PostCommitConfirmation:
    """Confirmation record of the last cross-chain commit."""

    logic_chain_id: int
    l1_message_cnt: int
    l1_next_commit_hash: str
    l2_next_commit_hash: str

    @classmethod
    def from_onchain(cls, raw: Any) -> PostCommitConfirmation:
        logic_chain_id, cnt, l1_next, l2_next = raw
        return cls(
            logic_chain_id=int(logic_chain_id),
            l1_message_cnt=int(cnt),
            l1_next_commit_hash=_normalise_hash(l1_next),
            l2_next_commit_hash=_normalise_hash(l2_next),
        )


def continues_hash_chain(previous_next_hash: str, following_last_hash: str) -> bool:
    """Whether commit *n*'s next hash is the last hash consumed at commit *n+1*."""
    return hex_equal(previous_next_hash, following_last_hash)


@dataclass(frozen=True)
class DecodedRevert:
    """Custom error decoded from revert data."""

    contract: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)
