"""
Signed transaction submission with bounded retry.
"""
import logging
from enum import Enum
from typing import Optional

from ..cancellation import CancellationToken
from ..chain import ChainGateway
from ..exceptions import BroadcastFailedError, OperationCancelledError
from ..models import SignedTransaction

logger = logging.getLogger(__name__)

DEFAULT_RETRY_COUNT = 5
DEFAULT_BACKOFF = 2.0

# Node rejections that no amount of resending the same bytes will fix
TERMINAL_ERROR_MARKERS = (
    "nonce too low",
    "insufficient funds",
    "already known",
    "replacement transaction underpriced",
    "intrinsic gas too low",
    "exceeds block gas limit",
    "invalid sender",
    "transaction type not supported",
    "rlp",
    "invalid transaction",
)

# After an earlier attempt may have reached the node, these mean our own bytes
# are already in the mempool (or mined)
RESENT_ACCEPTED_MARKERS = (
    "already known",
    "nonce too low",
)


class BroadcastErrorKind(str, Enum):
    TERMINAL = "terminal"
    TRANSIENT = "transient"


def classify_broadcast_error(error: BaseException) -> BroadcastErrorKind:
    """
    Decide whether a submission error is worth retrying.

    Known node rejections are terminal; network failures, timeouts and
    anything unrecognised are transient.
    """
    message = str(error).lower()
    if any(marker in message for marker in TERMINAL_ERROR_MARKERS):
        return BroadcastErrorKind.TERMINAL
    return BroadcastErrorKind.TRANSIENT


def _is_resent_accepted(error: BaseException) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in RESENT_ACCEPTED_MARKERS)


class Broadcaster:
    """Resends the same signed bytes until accepted, rejected, or out of attempts."""

    def __init__(
        self,
        gateway: ChainGateway,
        retry_count: int = DEFAULT_RETRY_COUNT,
        backoff: float = DEFAULT_BACKOFF,
        logger: Optional[logging.Logger] = None,
    ):
        if retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        self.gateway = gateway
        self.retry_count = retry_count
        self.backoff = backoff
        self.logger = logger or logging.getLogger(__name__)

    def broadcast(self, signed: SignedTransaction, token: CancellationToken) -> str:
        """
        Submit ``signed`` and return its hash without waiting for inclusion.

        An "already known" or "nonce too low" answer after an earlier transient
        failure means a previous attempt reached the node, so the signed hash is
        returned for the watcher to follow.

        Args:
            signed: Signed transaction; retries resend exactly these bytes
            token: Cancellation signal

        Returns:
            Transaction hash

        Raises:
            BroadcastFailedError: On a terminal rejection, or after
                ``retry_count`` transient failures
            OperationCancelledError: If the token fires before or between attempts
        """
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.retry_count + 1):
            try:
                return self.gateway.submit(signed.raw, token)
            except OperationCancelledError:
                raise
            except Exception as e:
                if last_error is not None and _is_resent_accepted(e):
                    self.logger.info(
                        f"[NONCE: {signed.nonce}] node already has the transaction after a failed attempt: {e}"
                    )
                    return signed.tx_hash
                if classify_broadcast_error(e) is BroadcastErrorKind.TERMINAL:
                    self.logger.error(f"[NONCE: {signed.nonce}] transaction rejected: {e}")
                    raise BroadcastFailedError(
                        f"Failed to send transaction: {e}", terminal=True, attempts=attempt
                    ) from e
                last_error = e
                self.logger.warning(
                    f"[NONCE: {signed.nonce}] attempt {attempt}/{self.retry_count} failed: {e}"
                )

            if attempt < self.retry_count and not token.sleep(self.backoff):
                raise OperationCancelledError(token.reason or "cancelled during broadcast backoff")

        raise BroadcastFailedError(
            f"Failed to send transaction after {self.retry_count} attempts: {last_error}",
            terminal=False,
            attempts=self.retry_count,
        ) from last_error
