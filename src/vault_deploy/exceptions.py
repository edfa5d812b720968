"""Exception hierarchy for the vault deployment toolkit."""

from typing import Any


class VaultDeployError(Exception):
    """Base exception for all deployment and validation errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigNotFound(VaultDeployError):
    """Raised when the configuration store file does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Config file {path} does not exist", {"path": path})
        self.path = path


class ConfigInconsistent(VaultDeployError):
    """Raised when the declared configuration contradicts itself."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class CatalogError(VaultDeployError):
    """Raised when a contract artifact is missing or malformed."""

    def __init__(self, message: str, contract: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.contract = contract


class NetworkError(VaultDeployError):
    """Raised when network/connection issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class EstimationFailed(VaultDeployError):
    """Raised when the node refuses to estimate gas for a transaction."""


class FeeDataUnavailable(VaultDeployError):
    """Raised when current fee data cannot be read from the node."""


class FeeCeilingExceeded(VaultDeployError):
    """Raised when the network fee is above the configured ceiling."""

    def __init__(self, message: str, observed: int, ceiling: int):
        super().__init__(message, {"observed": observed, "ceiling": ceiling})
        self.observed = observed
        self.ceiling = ceiling


class SubmissionFailed(VaultDeployError):
    """Raised when signing, broadcasting or awaiting a transaction fails."""


class TransactionReverted(VaultDeployError):
    """Raised when a mined transaction reports a non-success status."""

    def __init__(self, message: str, receipt: Any, details: dict | None = None):
        super().__init__(message, details)
        self.receipt = receipt


class DeploymentAddressMissing(VaultDeployError):
    """Raised when a deployment receipt carries no contract address."""

    def __init__(self, message: str, receipt: Any):
        super().__init__(message)
        self.receipt = receipt


class ConsistencyViolation(VaultDeployError):
    """Raised when on-chain state disagrees with the declared configuration."""

    def __init__(self, field: str, expected: Any, observed: Any, step: str | None = None):
        super().__init__(
            f"{field} not consistent with on-chain value {observed!r} (expected {expected!r})",
            {"field": field, "expected": expected, "observed": observed, "step": step},
        )
        self.field = field
        self.expected = expected
        self.observed = observed
        self.step = step


class RevertDecodeFailed(VaultDeployError):
    """Raised when revert data matches no known error signature."""


class RoleHandoffRefused(VaultDeployError):
    """Raised when renouncing a role would leave it without a holder."""


class ReleaseError(VaultDeployError):
    """Raised when the circuit release cannot be fetched."""

    def __init__(self, message: str, tag: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.tag = tag


class NonceOverrideFailed(VaultDeployError):
    """Raised when forcing the signer's next nonce does not take effect."""

    def __init__(self, requested: int, actual: int):
        super().__init__(
            f"Failed to set nonce to {requested}. Actual: {actual}",
            {"requested": requested, "actual": actual},
        )
        self.requested = requested
        self.actual = actual


class InvalidAddress(VaultDeployError):
    """Raised when a value is not a 20-byte hex address."""

    def __init__(self, value: Any):
        super().__init__(f"Invalid address {value}", {"value": value})
        self.value = value


class InvalidBytes32(VaultDeployError):
    """Raised when a value is not a 32-byte hex word."""

    def __init__(self, value: Any):
        super().__init__(f"Invalid bytes32 {value}", {"value": value})
        self.value = value
