"""
Fee quoting with an affordability ceiling.
"""
import logging
from typing import Any, Dict, Optional

from web3 import Web3

from ..cancellation import CancellationToken
from ..chain import ChainGateway
from ..exceptions import GasTimeoutError, OperationCancelledError
from ..models import FeeQuote
from .._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

DEFAULT_MAX_FEE_WEI = Web3.to_wei(3, "gwei")
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_WAIT_TIMEOUT = 300.0


class FeeGate:
    """
    Produces an EIP-1559 FeeQuote once the network fee drops under a ceiling.

    The chain head is checked immediately and then every ``poll_interval``
    seconds. ``max_fee_per_gas`` is always ``base_fee + priority_fee`` of the
    head at the moment of the check; quotes are never reused across attempts.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        max_fee_wei: int = DEFAULT_MAX_FEE_WEI,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        self.gateway = gateway
        self.max_fee_wei = max_fee_wei
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def quote(self, call: Dict[str, Any], token: CancellationToken) -> FeeQuote:
        """
        Wait for an affordable fee and return a quote for ``call``.

        Args:
            call: Transaction fields used as the gas estimation target
            token: Cancellation signal

        Returns:
            FeeQuote for the current chain head

        Raises:
            GasTimeoutError: If fees stay above the ceiling for ``timeout`` seconds
            OperationCancelledError: If the token fires while waiting
            RpcError: If any chain read fails
        """
        deadline = token.monotonic() + self.timeout

        while True:
            base_fee = self.gateway.current_base_fee(token)
            priority_fee = self.gateway.suggested_priority_fee(token)
            max_fee = base_fee + priority_fee
            gas_limit = self.gateway.estimate_gas(call, token)

            if max_fee <= self.max_fee_wei:
                return FeeQuote(
                    gas_limit=gas_limit,
                    max_priority_fee_per_gas=priority_fee,
                    max_fee_per_gas=max_fee,
                )

            rate_limited_log(
                f"[ATTENTION] High gas: max fee {Web3.from_wei(max_fee, 'gwei')} gwei "
                f"exceeds ceiling {Web3.from_wei(self.max_fee_wei, 'gwei')} gwei, waiting",
                level="warning",
                interval=30,
                logger_instance=self.logger,
                key="fee-gate:high-gas",
                clock=token.monotonic,
            )

            remaining = deadline - token.monotonic()
            if remaining <= 0:
                break
            if not token.sleep(min(self.poll_interval, remaining)):
                raise OperationCancelledError(token.reason or "cancelled while waiting for gas")
            if token.monotonic() >= deadline:
                break

        raise GasTimeoutError(
            f"Gas wait timeout of {self.timeout:g}s exceeded: fees stayed above "
            f"{Web3.from_wei(self.max_fee_wei, 'gwei')} gwei"
        )
