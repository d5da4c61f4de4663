"""
Chain-bound transaction signing.
"""
from eth_account import Account as EthAccount
from web3 import Web3

from ..exceptions import SigningError
from ..models import PreparedTransaction, SignedTransaction


def sign_transaction(prepared: PreparedTransaction, private_key: str) -> SignedTransaction:
    """
    Sign ``prepared`` as an EIP-1559 transaction bound to its chain id.

    Args:
        prepared: Fully specified unsigned transaction
        private_key: Hex private key of the sender

    Returns:
        SignedTransaction carrying the raw bytes and hash

    Raises:
        SigningError: If the transaction or key is malformed
    """
    try:
        signed = EthAccount.sign_transaction(prepared.to_tx_dict(), private_key)
    except Exception as e:
        raise SigningError(f"Failed to sign transaction: {e}") from e

    return SignedTransaction(
        raw=bytes(signed.raw_transaction),
        tx_hash=Web3.to_hex(signed.hash),
        nonce=prepared.nonce,
    )


class Signer:
    """Stateless wrapper so the signing step can be swapped in tests."""

    def sign(self, prepared: PreparedTransaction, private_key: str) -> SignedTransaction:
        return sign_transaction(prepared, private_key)
