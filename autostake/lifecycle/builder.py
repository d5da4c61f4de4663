"""
Delegation call encoding and unsigned transaction assembly.
"""
import logging
from typing import Optional, Tuple

from eth_abi import decode, encode
from web3 import Web3

from ..cancellation import CancellationToken
from ..chain import ChainGateway
from ..exceptions import InsufficientBalanceError
from ..models import PreparedTransaction, StakeRequest
from .fees import FeeGate

logger = logging.getLogger(__name__)

# delegate(uint64 validatorId) on the staking contract
DELEGATE_SELECTOR = bytes.fromhex("84994fec")


def encode_delegate_call(validator_id: int) -> bytes:
    """
    Encode the delegation call for ``validator_id``.

    Returns:
        4-byte selector followed by the validator id left-padded to 32 bytes

    Raises:
        ValueError: If the id does not fit the uint64 argument
    """
    if not 0 <= validator_id < 2 ** 64:
        raise ValueError(f"validator id out of uint64 range: {validator_id}")
    return DELEGATE_SELECTOR + encode(["uint64"], [validator_id])


def decode_delegate_call(data: bytes) -> Tuple[bytes, int]:
    """Split delegation calldata back into (selector, validator id)."""
    if len(data) != 36:
        raise ValueError(f"delegation calldata must be 36 bytes, got {len(data)}")
    (validator_id,) = decode(["uint64"], data[4:])
    return data[:4], validator_id


class TransactionBuilder:
    """Turns a StakeRequest into a PreparedTransaction using chain reads only."""

    def __init__(
        self,
        gateway: ChainGateway,
        contract_address: str,
        fee_gate: FeeGate,
        logger: Optional[logging.Logger] = None,
    ):
        self.gateway = gateway
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.fee_gate = fee_gate
        self.logger = logger or logging.getLogger(__name__)

    def build(self, request: StakeRequest, token: CancellationToken) -> PreparedTransaction:
        """
        Assemble the delegation transaction for ``request``.

        The sender's balance is checked first so that underfunded accounts
        fail before any gas estimation.

        Args:
            request: Sampled stake for one account
            token: Cancellation signal

        Returns:
            PreparedTransaction ready to sign

        Raises:
            InsufficientBalanceError: If balance < amount
            GasTimeoutError: If no affordable fee appeared in time
            RpcError: If any chain read fails
            OperationCancelledError: If the token fires
        """
        sender = Web3.to_checksum_address(request.account.address)

        balance = self.gateway.balance_of(sender, token)
        if balance < request.amount_wei:
            raise InsufficientBalanceError(sender, balance, request.amount_wei)

        data = encode_delegate_call(request.validator_id)
        chain_id = self.gateway.chain_id(token)
        nonce = self.gateway.pending_nonce(sender, token)

        fee = self.fee_gate.quote(
            {
                "from": sender,
                "to": self.contract_address,
                "value": request.amount_wei,
                "data": Web3.to_hex(data),
            },
            token,
        )
        self.logger.debug(
            f"[{request.account.short}] prepared nonce={nonce} gas={fee.gas_limit} "
            f"maxFee={fee.max_fee_per_gas} tip={fee.max_priority_fee_per_gas}"
        )

        return PreparedTransaction(
            chain_id=chain_id,
            nonce=nonce,
            fee=fee,
            to=self.contract_address,
            value=request.amount_wei,
            data=data,
        )
