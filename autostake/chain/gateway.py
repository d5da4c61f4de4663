"""
Chain gateway implementation for the autostake package.

This module wraps a single JSON-RPC endpoint behind the handful of reads and
writes the staking lifecycle needs. Every call takes a CancellationToken and
is bounded by the provider's HTTP timeout.
"""
import logging
import threading
import urllib.parse
from contextlib import nullcontext
from typing import Any, Callable, Dict, Optional, TypeVar

from web3 import Web3
from web3.exceptions import TransactionNotFound

from ..cancellation import CancellationToken
from ..exceptions import GatewayConnectionError, OperationCancelledError, RpcError

T = TypeVar('T')

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

# Receipt lookups that fail with these fragments mean "not mined yet"
_PENDING_RECEIPT_MARKERS = ("not found", "unknown block", "free tier limits")


def is_pending_receipt_error(error: BaseException) -> bool:
    """Check whether a receipt lookup error just means the node has not seen the block yet."""
    message = str(error).lower()
    return any(marker in message for marker in _PENDING_RECEIPT_MARKERS)


class ChainGateway:
    """
    Capability wrapper over one EVM JSON-RPC endpoint.

    web3's HTTP provider keeps one requests session per thread, so a single
    gateway can be shared by every account task. Pass
    ``serialize_requests=True`` when plugging in a provider that is not safe
    for concurrent use.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        serialize_requests: bool = False,
        w3: Optional[Web3] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Connect to the RPC endpoint.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint
            timeout: Seconds allowed for the reachability probe and for each round trip
            serialize_requests: Guard every call with a lock
            w3: Pre-built Web3 instance (tests, custom providers)
            logger: Optional logger instance

        Raises:
            GatewayConnectionError: If the endpoint cannot be reached in time
        """
        self.rpc_url = rpc_url
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock() if serialize_requests else None

        if w3 is None:
            parsed = urllib.parse.urlparse(rpc_url)
            if parsed.scheme not in ("http", "https"):
                raise GatewayConnectionError(f"Unsupported RPC URL scheme: {rpc_url!r}")
            provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
            w3 = Web3(provider)
            self._probe(w3, timeout)
        self.w3 = w3

        self.logger.debug(f"Connected chain gateway to {self._display_url}")

    @property
    def _display_url(self) -> str:
        # Provider keys often live in the path or query; keep only scheme and host
        parsed = urllib.parse.urlparse(self.rpc_url)
        return f"{parsed.scheme}://{parsed.hostname}" if parsed.hostname else self.rpc_url

    def _probe(self, w3: Web3, timeout: float) -> None:
        try:
            connected = w3.is_connected()
        except Exception as e:
            raise GatewayConnectionError(f"Error connecting to RPC {self._display_url}: {e}") from e
        if not connected:
            raise GatewayConnectionError(
                f"RPC {self._display_url} is not reachable (timeout {timeout:g}s)"
            )

    def _call(self, method: str, fn: Callable[[], T], token: Optional[CancellationToken]) -> T:
        if token is not None:
            token.raise_if_cancelled()
        guard = self._lock if self._lock is not None else nullcontext()
        try:
            with guard:
                return fn()
        except (OperationCancelledError, RpcError):
            raise
        except Exception as e:
            raise RpcError(method, str(e)) from e

    def balance_of(self, address: str, token: Optional[CancellationToken] = None) -> int:
        """Native coin balance of ``address`` in wei."""
        checksum = Web3.to_checksum_address(address)
        return self._call("eth_getBalance", lambda: int(self.w3.eth.get_balance(checksum)), token)

    def current_base_fee(self, token: Optional[CancellationToken] = None) -> int:
        """
        Base fee per gas of the latest block.

        Raises:
            RpcError: If the call fails or the chain does not report a base fee
        """
        block = self._call("eth_getBlockByNumber", lambda: self.w3.eth.get_block("latest"), token)
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise RpcError("eth_getBlockByNumber", "latest block has no baseFeePerGas (pre-EIP-1559 chain?)")
        return int(base_fee)

    def suggested_priority_fee(self, token: Optional[CancellationToken] = None) -> int:
        return self._call("eth_maxPriorityFeePerGas", lambda: int(self.w3.eth.max_priority_fee), token)

    def estimate_gas(self, call: Dict[str, Any], token: Optional[CancellationToken] = None) -> int:
        return self._call("eth_estimateGas", lambda: int(self.w3.eth.estimate_gas(call)), token)

    def pending_nonce(self, address: str, token: Optional[CancellationToken] = None) -> int:
        checksum = Web3.to_checksum_address(address)
        return self._call(
            "eth_getTransactionCount",
            lambda: int(self.w3.eth.get_transaction_count(checksum, "pending")),
            token,
        )

    def chain_id(self, token: Optional[CancellationToken] = None) -> int:
        return self._call("eth_chainId", lambda: int(self.w3.eth.chain_id), token)

    def submit(self, raw_tx: bytes, token: Optional[CancellationToken] = None) -> str:
        """
        Broadcast a signed transaction.

        Unlike the read calls, node errors are re-raised untouched so the
        broadcaster can classify them.

        Returns:
            Transaction hash as 0x-prefixed hex
        """
        if token is not None:
            token.raise_if_cancelled()
        guard = self._lock if self._lock is not None else nullcontext()
        with guard:
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        return Web3.to_hex(tx_hash)

    def receipt(self, tx_hash: str, token: Optional[CancellationToken] = None) -> Optional[int]:
        """
        Receipt status for ``tx_hash``.

        Returns:
            The receipt status (1 = success), or None if not mined yet

        Raises:
            RpcError: For lookup failures that do not mean "not mined yet"
        """
        if token is not None:
            token.raise_if_cancelled()
        guard = self._lock if self._lock is not None else nullcontext()
        try:
            with guard:
                receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            if is_pending_receipt_error(e):
                return None
            raise RpcError("eth_getTransactionReceipt", str(e)) from e
        if receipt is None:
            return None
        return int(receipt["status"])

    def close(self) -> None:
        """Release the provider's HTTP sessions, if it holds any."""
        provider = getattr(self.w3, "provider", None)
        disconnect = getattr(provider, "disconnect", None)
        if callable(disconnect):
            try:
                disconnect()
            except Exception as e:
                self.logger.warning(f"Error closing RPC provider: {e}", exc_info=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
