"""Contract names, storage slots and role identifiers."""

from enum import Enum

#: AccessControl DEFAULT_ADMIN_ROLE (bytes32 zero)
DEFAULT_ADMIN_ROLE = "0x" + "00" * 32

ZERO_BYTES32 = "0x" + "00" * 32

#: EIP-1967 ``bytes32(uint256(keccak256("eip1967.proxy.admin")) - 1)``
PROXY_ADMIN_SLOT = "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"

#: Initial supply of test tokens, in whole units
TEST_TOKEN_SUPPLY = 10**30


class ContractName(str, Enum):
    """Artifact names in the contract interface catalog."""

    OWNER = "VesselOwner"
    VAULT = "Vault"
    MANAGER_API_LOGIC = "ManagerApiLogic"
    MESSAGE_QUEUE_LOGIC = "MessageQueueLogic"
    MULTI_CHAIN_LOGIC = "MultiChainLogic"
    TOKEN_MANAGER_LOGIC = "TokenManagerLogic"
    USER_API_LOGIC = "UserApiLogic"
    PORTAL = "LayerZeroPortal"
    PROXY = "TransparentUpgradeableProxy"
    PROXY_ADMIN = "ProxyAdmin"
    TOKEN = "Token"
    WETH = "WETH"


#: Logic contracts delegated to by the vault, in deployment order
LOGIC_CONTRACTS = (
    ContractName.MANAGER_API_LOGIC,
    ContractName.MESSAGE_QUEUE_LOGIC,
    ContractName.MULTI_CHAIN_LOGIC,
    ContractName.TOKEN_MANAGER_LOGIC,
    ContractName.USER_API_LOGIC,
)

#: Contracts whose custom errors are used to decode reverts
REVERT_DECODE_SOURCES = (
    ContractName.VAULT,
    *LOGIC_CONTRACTS,
    ContractName.OWNER,
    ContractName.PORTAL,
)
