"""
Tests for delegation encoding and transaction assembly.
"""
import pytest
from web3 import Web3

from autostake.exceptions import GasTimeoutError, InsufficientBalanceError
from autostake.lifecycle import (
    DELEGATE_SELECTOR, FeeGate, TransactionBuilder, decode_delegate_call, encode_delegate_call
)
from autostake.models import StakeRequest

from conftest import FakeGateway, GWEI, TEST_CHAIN_ID, TEST_CONTRACT


def _builder(gateway, **fee_kwargs):
    return TransactionBuilder(gateway, TEST_CONTRACT, FeeGate(gateway, **fee_kwargs))


def test_encode_delegate_call_layout():
    data = encode_delegate_call(7)
    assert len(data) == 36
    assert data[:4] == bytes.fromhex("84994fec")
    assert data[4:] == (7).to_bytes(32, "big")


def test_encode_decode_round_trip():
    selector, validator_id = decode_delegate_call(encode_delegate_call(7))
    assert selector == DELEGATE_SELECTOR
    assert validator_id == 7


@pytest.mark.parametrize("validator_id", [-1, 2**64])
def test_encode_rejects_out_of_range_ids(validator_id):
    with pytest.raises(ValueError):
        encode_delegate_call(validator_id)


def test_decode_rejects_wrong_length():
    with pytest.raises(ValueError):
        decode_delegate_call(b"\x00" * 35)


def test_build_produces_prepared_transaction(account, clock):
    gateway = FakeGateway(nonce=12, gas=75_000, base_fees=(GWEI,), priority_fee=GWEI // 2)
    request = StakeRequest(account=account, amount_wei=10**17, validator_id=7)

    prepared = _builder(gateway).build(request, clock)

    assert prepared.chain_id == TEST_CHAIN_ID
    assert prepared.nonce == 12
    assert prepared.value == 10**17
    assert prepared.to == Web3.to_checksum_address(TEST_CONTRACT)
    assert prepared.data == encode_delegate_call(7)
    assert prepared.fee.gas_limit == 75_000
    assert prepared.fee.max_priority_fee_per_gas == GWEI // 2
    assert prepared.fee.max_fee_per_gas == GWEI + GWEI // 2

    call = gateway.estimate_calls[0]
    assert call["from"] == account.address
    assert call["value"] == 10**17
    assert call["data"] == Web3.to_hex(encode_delegate_call(7))


def test_insufficient_balance_fails_before_any_other_read(account, clock):
    gateway = FakeGateway(balance=10**16)
    request = StakeRequest(account=account, amount_wei=10**17, validator_id=1)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        _builder(gateway).build(request, clock)

    assert exc_info.value.balance == 10**16
    assert exc_info.value.required == 10**17
    assert gateway.calls == ["balance_of"]
    assert gateway.submitted == []


def test_balance_equal_to_amount_is_enough(account, clock):
    gateway = FakeGateway(balance=10**17)
    request = StakeRequest(account=account, amount_wei=10**17, validator_id=1)
    assert _builder(gateway).build(request, clock).value == 10**17


def test_gas_timeout_propagates(account, clock):
    gateway = FakeGateway(base_fees=(10 * GWEI,))
    request = StakeRequest(account=account, amount_wei=10**17, validator_id=1)

    with pytest.raises(GasTimeoutError):
        _builder(gateway, timeout=20, poll_interval=5).build(request, clock)
    assert gateway.submitted == []


def test_to_tx_dict_is_dynamic_fee(account, clock):
    request = StakeRequest(account=account, amount_wei=10**17, validator_id=3)
    tx = _builder(FakeGateway()).build(request, clock).to_tx_dict()

    assert tx["type"] == 2
    assert tx["chainId"] == TEST_CHAIN_ID
    assert "gasPrice" not in tx
    assert set(tx) >= {"maxFeePerGas", "maxPriorityFeePerGas", "gas", "nonce", "to", "value", "data"}
