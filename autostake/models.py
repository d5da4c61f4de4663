"""
Data models for the autostake package.
"""
from collections import Counter
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from web3 import Web3


class Range(BaseModel):
    """Half-open numeric interval [min, max)"""
    model_config = ConfigDict(frozen=True)

    min: float
    max: float

    @model_validator(mode="after")
    def _check_bounds(self) -> "Range":
        if self.min < 0:
            raise ValueError("min must not be negative")
        if self.max <= self.min:
            raise ValueError("max must be greater than min")
        return self


def ether_bounds_wei(bounds: Range) -> Tuple[int, int]:
    """Convert a coin-denominated range to wei, keeping the decimal value of each bound."""
    return (
        Web3.to_wei(Decimal(str(bounds.min)), "ether"),
        Web3.to_wei(Decimal(str(bounds.max)), "ether"),
    )


class Account(BaseModel):
    """A wallet loaded from the keys file. The key never appears in repr."""
    model_config = ConfigDict(frozen=True)

    address: str
    private_key: str = Field(..., repr=False)

    @property
    def short(self) -> str:
        return f"{self.address[:6]}…"


class RunParameters(BaseModel):
    """Immutable inputs for a single staking run."""
    model_config = ConfigDict(frozen=True)

    stake: Range
    delay: Range
    validators: Tuple[int, ...]
    contract_address: str
    rpc_url: str
    explorer_tx_url: str = ""

    @model_validator(mode="after")
    def _check_ranges(self) -> "RunParameters":
        if not self.validators:
            raise ValueError("validator set must not be empty")
        min_wei, max_wei = ether_bounds_wei(self.stake)
        if max_wei <= min_wei:
            raise ValueError(f"stake range is empty once converted to wei: [{min_wei}, {max_wei})")
        return self

    def stake_bounds_wei(self) -> Tuple[int, int]:
        return ether_bounds_wei(self.stake)

    def tx_url(self, tx_hash: str) -> str:
        if not self.explorer_tx_url:
            return tx_hash
        return f"{self.explorer_tx_url.rstrip('/')}/{tx_hash}"


class LifecycleSettings(BaseModel):
    """Tunables for the fee gate, broadcaster and confirmation watcher."""
    model_config = ConfigDict(frozen=True)

    max_fee_wei: int = Field(default_factory=lambda: Web3.to_wei(3, "gwei"), gt=0)
    gas_poll_interval: float = Field(5.0, gt=0)
    gas_wait_timeout: float = Field(300.0, gt=0)
    retry_count: int = Field(5, ge=1)
    retry_backoff: float = Field(2.0, ge=0)
    receipt_poll_interval: float = Field(3.0, gt=0)
    receipt_timeout: float = Field(60.0, gt=0)


class StakeRequest(BaseModel):
    """One delegation to perform for one account."""
    model_config = ConfigDict(frozen=True)

    account: Account
    amount_wei: int
    validator_id: int

    @property
    def amount_ether(self) -> Decimal:
        return Web3.from_wei(self.amount_wei, "ether")


class FeeQuote(BaseModel):
    """EIP-1559 fee pair plus gas limit, valid for one attempt only."""
    model_config = ConfigDict(frozen=True)

    gas_limit: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int


class PreparedTransaction(BaseModel):
    """Fully specified unsigned dynamic-fee transaction"""
    model_config = ConfigDict(frozen=True)

    chain_id: int
    nonce: int
    fee: FeeQuote
    to: str
    value: int
    data: bytes

    def to_tx_dict(self) -> Dict[str, Any]:
        """
        Render the transaction in the dictionary form eth_account signs.

        Returns:
            Type-2 transaction dictionary
        """
        return {
            "type": 2,
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "maxPriorityFeePerGas": self.fee.max_priority_fee_per_gas,
            "maxFeePerGas": self.fee.max_fee_per_gas,
            "gas": self.fee.gas_limit,
            "to": Web3.to_checksum_address(self.to),
            "value": self.value,
            "data": self.data,
        }


class SignedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: bytes
    tx_hash: str
    nonce: int


class OutcomeStatus(str, Enum):
    """Terminal status of one account's stake attempt."""
    SUCCEEDED = "Succeeded"
    REVERTED = "Reverted"
    BROADCAST_FAILED = "BroadcastFailed"
    CONFIRMATION_TIMED_OUT = "ConfirmationTimedOut"
    NOT_SUBMITTED = "NotSubmitted"
    CANCELLED = "Cancelled"


class TransactionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    address: str
    status: OutcomeStatus
    tx_hash: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED

    @property
    def reason(self) -> str:
        if self.error is None:
            return self.status.value
        return f"{type(self.error).__name__}: {self.error}"


class RunSummary(BaseModel):
    """Aggregate of every outcome reported during a run"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    outcomes: List[TransactionOutcome]
    total_accounts: int

    @property
    def counts(self) -> Dict[OutcomeStatus, int]:
        return dict(Counter(outcome.status for outcome in self.outcomes))

    @property
    def pending(self) -> int:
        """Accounts launched but still without an outcome (abandoned after the grace period)."""
        return self.total_accounts - len(self.outcomes)

    def describe(self) -> str:
        counts = self.counts
        parts = [f"{status.value}={counts[status]}" for status in OutcomeStatus if counts.get(status)]
        if self.pending:
            parts.append(f"Abandoned={self.pending}")
        return f"{len(self.outcomes)}/{self.total_accounts} accounts finished ({', '.join(parts) or 'none'})"
