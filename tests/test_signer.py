"""
Tests for transaction signing.
"""
import pytest
from eth_account import Account as EthAccount
from web3 import Web3

from autostake.exceptions import SigningError
from autostake.lifecycle import Signer, encode_delegate_call, sign_transaction
from autostake.models import FeeQuote, PreparedTransaction

from conftest import GWEI, TEST_ADDRESS, TEST_CHAIN_ID, TEST_CONTRACT, TEST_PRIV_KEY


@pytest.fixture
def prepared():
    return PreparedTransaction(
        chain_id=TEST_CHAIN_ID,
        nonce=3,
        fee=FeeQuote(gas_limit=80_000, max_priority_fee_per_gas=GWEI // 10, max_fee_per_gas=GWEI),
        to=TEST_CONTRACT,
        value=10**17,
        data=encode_delegate_call(42),
    )


def test_signed_transaction_recovers_sender(prepared):
    signed = sign_transaction(prepared, TEST_PRIV_KEY)

    assert EthAccount.recover_transaction(signed.raw) == TEST_ADDRESS
    assert signed.nonce == 3


def test_hash_matches_raw_bytes(prepared):
    signed = sign_transaction(prepared, TEST_PRIV_KEY)

    assert signed.tx_hash == Web3.to_hex(Web3.keccak(signed.raw))
    # EIP-2718 envelope for dynamic-fee transactions
    assert signed.raw[0] == 2


def test_signing_is_deterministic(prepared):
    assert Signer().sign(prepared, TEST_PRIV_KEY) == sign_transaction(prepared, TEST_PRIV_KEY)


def test_chain_id_is_bound(prepared):
    other = prepared.model_copy(update={"chain_id": 1})
    assert sign_transaction(other, TEST_PRIV_KEY).raw != sign_transaction(prepared, TEST_PRIV_KEY).raw


def test_bad_key_raises_signing_error(prepared):
    with pytest.raises(SigningError):
        sign_transaction(prepared, "0x1234")
