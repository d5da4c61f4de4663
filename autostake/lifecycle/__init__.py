"""
Transaction lifecycle services: fee quoting, building, signing,
broadcasting and confirmation.
"""
from .broadcaster import (
    Broadcaster, BroadcastErrorKind, classify_broadcast_error, TERMINAL_ERROR_MARKERS
)
from .builder import (
    TransactionBuilder, DELEGATE_SELECTOR, encode_delegate_call, decode_delegate_call
)
from .fees import FeeGate
from .signer import Signer, sign_transaction
from .watcher import ConfirmationWatcher, ConfirmationState

__all__ = [
    'Broadcaster',
    'BroadcastErrorKind',
    'classify_broadcast_error',
    'TERMINAL_ERROR_MARKERS',
    'TransactionBuilder',
    'DELEGATE_SELECTOR',
    'encode_delegate_call',
    'decode_delegate_call',
    'FeeGate',
    'Signer',
    'sign_transaction',
    'ConfirmationWatcher',
    'ConfirmationState',
]
