"""
Pytest fixtures for the autostake tests.
"""
import random
import threading
from typing import Any, Dict, List, Optional

import pytest
from web3 import Web3

from autostake._rate_limited_log import reset_rate_limits
from autostake.accounts import parse_private_key
from autostake.cancellation import CancellationToken
from autostake.models import Range, RunParameters

TEST_RPC_URL = "https://rpc.example.com"
TEST_CONTRACT = "0x0000000000000000000000000000000000001000"
TEST_EXPLORER = "https://explorer.example.com/tx"
TEST_CHAIN_ID = 10143
TEST_TX_HASH = "0x" + "ab" * 32

# Well-known development keys (hardhat/anvil accounts #0 and #1)
TEST_PRIV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TEST_PRIV_KEY_2 = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
TEST_ADDRESS_2 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

GWEI = Web3.to_wei(1, "gwei")


class SimulatedClock(CancellationToken):
    """
    CancellationToken whose sleeps advance a virtual clock instantly.

    ``on_sleep`` is called before every sleep with (token, seconds) and may
    cancel the token to simulate a signal arriving mid-wait.
    """

    def __init__(self, on_sleep=None):
        super().__init__()
        self.now = 0.0
        self.sleeps: List[float] = []
        self.on_sleep = on_sleep
        self._clock_lock = threading.Lock()

    def monotonic(self) -> float:
        with self._clock_lock:
            return self.now

    def sleep(self, seconds: float) -> bool:
        if self.on_sleep is not None:
            self.on_sleep(self, seconds)
        if self.cancelled:
            return False
        if seconds > 0:
            with self._clock_lock:
                self.sleeps.append(seconds)
                self.now += seconds
        return True


class FakeGateway:
    """
    In-memory stand-in for ChainGateway.

    Sequences (base fees, submit results, receipts) are consumed one item per
    call; the last base fee repeats forever. Exceptions in a sequence are raised.
    """

    def __init__(
        self,
        balance: int = Web3.to_wei(100, "ether"),
        base_fees=(GWEI,),
        priority_fee: int = GWEI // 10,
        gas: int = 60_000,
        nonce: int = 7,
        chain_id: int = TEST_CHAIN_ID,
        submit_results: Optional[List[Any]] = None,
        receipts: Optional[List[Any]] = None,
    ):
        self.balance = balance
        self._base_fees = list(base_fees)
        self.priority_fee = priority_fee
        self.gas = gas
        self.nonce = nonce
        self._chain_id = chain_id
        self._submit_results = list(submit_results or [])
        self._receipts = list(receipts or [])
        self.calls: List[str] = []
        self.estimate_calls: List[Dict[str, Any]] = []
        self.submitted: List[bytes] = []
        self.receipt_polls: List[float] = []
        self._lock = threading.Lock()

    def _record(self, name: str, token: Optional[CancellationToken]) -> None:
        if token is not None:
            token.raise_if_cancelled()
        with self._lock:
            self.calls.append(name)

    def balance_of(self, address, token=None):
        self._record("balance_of", token)
        return self.balance

    def current_base_fee(self, token=None):
        self._record("current_base_fee", token)
        with self._lock:
            return self._base_fees.pop(0) if len(self._base_fees) > 1 else self._base_fees[0]

    def suggested_priority_fee(self, token=None):
        self._record("suggested_priority_fee", token)
        return self.priority_fee

    def estimate_gas(self, call, token=None):
        self._record("estimate_gas", token)
        self.estimate_calls.append(call)
        return self.gas

    def pending_nonce(self, address, token=None):
        self._record("pending_nonce", token)
        return self.nonce

    def chain_id(self, token=None):
        self._record("chain_id", token)
        return self._chain_id

    def submit(self, raw_tx, token=None):
        self._record("submit", token)
        with self._lock:
            self.submitted.append(raw_tx)
            result = self._submit_results.pop(0) if self._submit_results else TEST_TX_HASH
        if isinstance(result, BaseException):
            raise result
        return result

    def receipt(self, tx_hash, token=None):
        self._record("receipt", token)
        with self._lock:
            self.receipt_polls.append(token.monotonic() if token is not None else 0.0)
            result = self._receipts.pop(0) if self._receipts else None
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self):
        pass


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def clock():
    return SimulatedClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def account():
    return parse_private_key(TEST_PRIV_KEY)


@pytest.fixture
def account_2():
    return parse_private_key(TEST_PRIV_KEY_2)


@pytest.fixture
def run_params():
    return RunParameters(
        stake=Range(min=0.1, max=0.5),
        delay=Range(min=1, max=3),
        validators=(1, 2, 3),
        contract_address=TEST_CONTRACT,
        rpc_url=TEST_RPC_URL,
        explorer_tx_url=TEST_EXPLORER,
    )


@pytest.fixture
def rng():
    return random.Random(1234)
