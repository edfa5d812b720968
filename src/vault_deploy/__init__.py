"""Multi-chain vault deployment - deploy, wire and validate.

This library deploys the vault, its logic contracts and the cross-chain
portal on every sub-chain of a deployment set, wires them together and
verifies that on-chain state matches the declared configuration.
"""

from .config import ConfigStore, DeploymentConfig, EssentialConfig, SubChainConfig
from .context import DeploymentContext
from .exceptions import (
    ConfigInconsistent,
    ConfigNotFound,
    ConsistencyViolation,
    DeploymentAddressMissing,
    EstimationFailed,
    FeeCeilingExceeded,
    RevertDecodeFailed,
    RoleHandoffRefused,
    SubmissionFailed,
    TransactionReverted,
    VaultDeployError,
)
from .fees import FeeProfile, FeeStrategy
from .orchestrator import DeploymentOrchestrator, DeploymentStep
from .router import ExecutionRouter
from .transactions import TransactionSubmitter, budget_gas_limit
from .types import (
    DirectSubmit,
    ExecutionResult,
    PostCommitConfirmation,
    PreCommitCheckpoint,
    ProposalArtifact,
    ProposeForApproval,
    TxOrigin,
)
from .utils import address_to_bytes32, bytes32_to_address, hex_equal
from .validator import ConsistencyValidator

__version__ = "0.1.0"

__all__ = [
    # Pipeline components
    "DeploymentContext",
    "DeploymentOrchestrator",
    "DeploymentStep",
    "ConsistencyValidator",
    "ExecutionRouter",
    "TransactionSubmitter",
    "FeeStrategy",
    "FeeProfile",
    "budget_gas_limit",
    # Configuration
    "ConfigStore",
    "DeploymentConfig",
    "SubChainConfig",
    "EssentialConfig",
    # Types
    "TxOrigin",
    "DirectSubmit",
    "ProposeForApproval",
    "ProposalArtifact",
    "ExecutionResult",
    "PreCommitCheckpoint",
    "PostCommitConfirmation",
    # Exceptions
    "VaultDeployError",
    "ConfigNotFound",
    "ConfigInconsistent",
    "EstimationFailed",
    "FeeCeilingExceeded",
    "SubmissionFailed",
    "TransactionReverted",
    "DeploymentAddressMissing",
    "ConsistencyViolation",
    "RevertDecodeFailed",
    "RoleHandoffRefused",
    # Utility functions
    "address_to_bytes32",
    "bytes32_to_address",
    "hex_equal",
]
