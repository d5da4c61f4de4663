"""
autostake - randomized multi-account native staking on EVM chains.
"""
from .version import __version__
from .cancellation import CancellationToken
from .chain import ChainGateway, GatewayRegistry
from .config import AppConfig, load_config
from .accounts import load_accounts, parse_private_key
from .exceptions import (
    AutostakeError, ConfigError, GatewayConnectionError, RpcError, OperationCancelledError,
    InsufficientBalanceError, GasTimeoutError, SigningError, BroadcastFailedError,
    ConfirmationTimeoutError, RevertedTransactionError
)
from .models import (
    Account, Range, RunParameters, LifecycleSettings, StakeRequest, FeeQuote,
    PreparedTransaction, SignedTransaction, OutcomeStatus, TransactionOutcome, RunSummary
)
from .orchestrator import StakeOrchestrator, TaskState

__all__ = [
    "__version__",
    "CancellationToken",
    "ChainGateway",
    "GatewayRegistry",
    "AppConfig",
    "load_config",
    "load_accounts",
    "parse_private_key",
    "AutostakeError",
    "ConfigError",
    "GatewayConnectionError",
    "RpcError",
    "OperationCancelledError",
    "InsufficientBalanceError",
    "GasTimeoutError",
    "SigningError",
    "BroadcastFailedError",
    "ConfirmationTimeoutError",
    "RevertedTransactionError",
    "Account",
    "Range",
    "RunParameters",
    "LifecycleSettings",
    "StakeRequest",
    "FeeQuote",
    "PreparedTransaction",
    "SignedTransaction",
    "OutcomeStatus",
    "TransactionOutcome",
    "RunSummary",
    "StakeOrchestrator",
    "TaskState",
]
