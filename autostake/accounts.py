"""
Private key parsing and account loading.
"""
import logging
import re
from pathlib import Path
from typing import List, Union

from eth_account import Account as EthAccount

from .exceptions import ConfigError
from .models import Account

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


def parse_private_key(hex_key: str) -> Account:
    """
    Parse a raw hex private key and derive its address.

    Args:
        hex_key: 64 hex characters, optionally prefixed with ``0x``

    Returns:
        Account with checksum address and normalised 0x-prefixed key

    Raises:
        ConfigError: If the key is malformed or not a valid secp256k1 scalar
    """
    key = hex_key.strip()
    if len(key) not in (64, 66):
        raise ConfigError("invalid private key: incorrect length")
    if len(key) == 66:
        if not key.startswith(("0x", "0X")):
            raise ConfigError("invalid private key: incorrect length")
        key = key[2:]
    if not _HEX_RE.match(key):
        raise ConfigError("invalid private key: contains non-hexadecimal characters")

    try:
        eth_account = EthAccount.from_key(bytes.fromhex(key))
    except Exception as e:
        raise ConfigError(f"invalid private key: {e}") from e

    return Account(address=eth_account.address, private_key="0x" + key.lower())


def load_accounts(path: Union[str, Path]) -> List[Account]:
    """
    Load accounts from a file holding one private key per line.

    Blank lines and lines starting with ``#`` are ignored. Errors name the
    offending line number but never echo the key.

    Raises:
        ConfigError: If the file cannot be read, holds no keys, or a key is invalid
    """
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"failed to open private keys file {path}: {e}") from e

    accounts = []
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            accounts.append(parse_private_key(line))
        except ConfigError as e:
            raise ConfigError(f"{path}:{lineno}: {e}") from e

    if not accounts:
        raise ConfigError(f"private keys file {path} contains no keys")

    logger.info(f"Loaded {len(accounts)} accounts from {path}")
    return accounts
