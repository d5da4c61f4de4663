"""
Receipt polling for submitted transactions.
"""
import logging
from enum import Enum
from typing import Optional

from ..cancellation import CancellationToken
from ..chain import ChainGateway
from ..exceptions import OperationCancelledError, RpcError
from .._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_TIMEOUT = 60.0


class ConfirmationState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"


class ConfirmationWatcher:
    """
    Polls ``receipt(hash)`` until the transaction is mined or time runs out.

    The first poll happens one interval after the call, matching a ticker.
    Lagging nodes that answer "not found" keep the state PENDING; so do other
    receipt lookup errors, which are logged and retried on the next tick.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        self.gateway = gateway
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def wait(self, tx_hash: str, token: CancellationToken) -> ConfirmationState:
        """
        Block until ``tx_hash`` reaches a final state.

        Returns:
            SUCCEEDED, REVERTED or TIMED_OUT

        Raises:
            OperationCancelledError: If the token fires; the transaction itself
                stays submitted
        """
        deadline = token.monotonic() + self.timeout

        while token.monotonic() + self.poll_interval <= deadline:
            if not token.sleep(self.poll_interval):
                raise OperationCancelledError(token.reason or "cancelled while awaiting confirmation")

            try:
                status = self.gateway.receipt(tx_hash, token)
            except RpcError as e:
                rate_limited_log(
                    f"Error getting transaction receipt for {tx_hash}: {e}",
                    level="warning",
                    interval=15,
                    logger_instance=self.logger,
                    key=f"receipt:{tx_hash}",
                    clock=token.monotonic,
                )
                continue

            if status is None:
                continue
            self.logger.debug(f"Transaction {tx_hash} mined with status {status}")
            return ConfirmationState.SUCCEEDED if status == 1 else ConfirmationState.REVERTED

        remaining = deadline - token.monotonic()
        if remaining > 0 and not token.sleep(remaining):
            raise OperationCancelledError(token.reason or "cancelled while awaiting confirmation")
        return ConfirmationState.TIMED_OUT
