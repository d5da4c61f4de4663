"""
Tests for CancellationToken.
"""
import threading
import time

import pytest

from autostake.cancellation import CancellationToken
from autostake.exceptions import OperationCancelledError


def test_fresh_token():
    token = CancellationToken()
    assert not token.cancelled
    assert token.reason is None
    token.raise_if_cancelled()


def test_cancel_keeps_first_reason():
    token = CancellationToken()
    token.cancel("SIGINT")
    token.cancel("SIGTERM")

    assert token.cancelled
    assert token.reason == "SIGINT"
    with pytest.raises(OperationCancelledError, match="SIGINT"):
        token.raise_if_cancelled()


def test_sleep_completes():
    token = CancellationToken()
    assert token.sleep(0.01)
    assert token.sleep(0)


def test_sleep_wakes_on_cancel():
    token = CancellationToken()
    threading.Timer(0.05, token.cancel).start()

    started = time.monotonic()
    assert token.sleep(10) is False
    assert time.monotonic() - started < 5


def test_sleep_after_cancel_returns_immediately():
    token = CancellationToken()
    token.cancel()
    assert token.sleep(10) is False
    assert token.sleep(0) is False
