"""
Exceptions for the autostake package.
"""
from typing import Optional


class AutostakeError(Exception):
    """Base exception for all autostake errors."""
    pass


class ConfigError(AutostakeError):
    """Raised when configuration or key material is invalid. Fatal at startup."""
    pass


class GatewayConnectionError(AutostakeError, ConnectionError):
    """Raised when the RPC endpoint cannot be reached during gateway construction."""
    pass


class RpcError(AutostakeError):
    """Raised when a read-only RPC call fails."""

    def __init__(self, method: str, message: str):
        self.method = method
        super().__init__(f"{method} failed: {message}")


class OperationCancelledError(AutostakeError):
    """Raised at a suspension point once the run has been cancelled."""
    pass


class InsufficientBalanceError(AutostakeError):
    """Raised when an account cannot cover the stake amount."""

    def __init__(self, address: str, balance: int, required: int):
        self.address = address
        self.balance = balance
        self.required = required
        super().__init__(
            f"[{address}] low balance: {balance} wei < required {required} wei"
        )


class GasTimeoutError(AutostakeError):
    """Raised when no affordable fee quote appeared within the wait ceiling."""
    pass


class SigningError(AutostakeError):
    """Raised when a prepared transaction cannot be signed."""
    pass


class BroadcastFailedError(AutostakeError):
    """
    Raised when a signed transaction could not be submitted.

    ``terminal`` is True when the node rejected the transaction outright and
    False when retries were exhausted on transient errors.
    """

    def __init__(self, message: str, terminal: bool, attempts: int):
        self.terminal = terminal
        self.attempts = attempts
        super().__init__(message)


class ConfirmationTimeoutError(AutostakeError):
    """Reported when a submitted transaction was not mined in time."""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"transaction {tx_hash} not confirmed within {timeout:g}s")


class RevertedTransactionError(AutostakeError):
    """Reported when a mined transaction has a failing receipt status."""

    def __init__(self, tx_hash: str, status: Optional[int] = None):
        self.tx_hash = tx_hash
        self.status = status
        super().__init__(f"transaction {tx_hash} reverted (status={status})")
