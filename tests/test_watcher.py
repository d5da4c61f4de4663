"""
Tests for receipt polling.
"""
import logging

import pytest

from autostake.exceptions import OperationCancelledError, RpcError
from autostake.lifecycle import ConfirmationState, ConfirmationWatcher

from conftest import FakeGateway, SimulatedClock, TEST_TX_HASH


def test_success_on_third_poll(clock):
    gateway = FakeGateway(receipts=[None, None, 1])

    state = ConfirmationWatcher(gateway, poll_interval=3, timeout=60).wait(TEST_TX_HASH, clock)

    assert state is ConfirmationState.SUCCEEDED
    assert gateway.receipt_polls == [3, 6, 9]


def test_failing_status_is_reverted(clock):
    gateway = FakeGateway(receipts=[0])
    assert ConfirmationWatcher(gateway).wait(TEST_TX_HASH, clock) is ConfirmationState.REVERTED


def test_times_out_after_deadline(clock):
    gateway = FakeGateway()

    state = ConfirmationWatcher(gateway, poll_interval=3, timeout=60).wait(TEST_TX_HASH, clock)

    assert state is ConfirmationState.TIMED_OUT
    assert clock.now == pytest.approx(60)
    assert len(gateway.receipt_polls) == 20


def test_timeout_not_multiple_of_interval(clock):
    gateway = FakeGateway()

    state = ConfirmationWatcher(gateway, poll_interval=3, timeout=10).wait(TEST_TX_HASH, clock)

    assert state is ConfirmationState.TIMED_OUT
    assert gateway.receipt_polls == [3, 6, 9]
    assert clock.now == pytest.approx(10)


def test_lookup_errors_keep_polling(clock, caplog):
    gateway = FakeGateway(receipts=[
        RpcError("eth_getTransactionReceipt", "503 service unavailable"),
        RpcError("eth_getTransactionReceipt", "503 service unavailable"),
        1,
    ])

    with caplog.at_level(logging.WARNING):
        state = ConfirmationWatcher(gateway, poll_interval=3).wait(TEST_TX_HASH, clock)

    assert state is ConfirmationState.SUCCEEDED
    warnings = [r for r in caplog.records if "receipt" in r.getMessage()]
    # second error falls inside the 15s suppression window
    assert len(warnings) == 1


def test_cancel_while_waiting():
    def cancel_after_two(token, seconds):
        if len(token.sleeps) == 2:
            token.cancel("stop")

    clock = SimulatedClock(on_sleep=cancel_after_two)
    gateway = FakeGateway()

    with pytest.raises(OperationCancelledError):
        ConfirmationWatcher(gateway).wait(TEST_TX_HASH, clock)
    assert len(gateway.receipt_polls) == 2
