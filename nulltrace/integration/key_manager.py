"""nulltrace/integration/key_manager.py

Wallet key loading from the environment.

- Reads SOLANA_PRIVATE_KEY (or another variable) from the environment
- Accepts a base58 string or a JSON array of 64 byte values
- Raises KeyLoadError if the key is missing or malformed
"""

from __future__ import annotations

import json
import os
from typing import Mapping, Optional

import base58

from nulltrace.errors import InvalidArgument
from nulltrace.execution.signer import SECRET_KEY_LENGTH, KeypairSigner

PRIVATE_KEY_ENV = "SOLANA_PRIVATE_KEY"


class KeyLoadError(InvalidArgument):
    """Raised when key loading fails."""
    pass


def parse_private_key(key_str: str) -> bytes:
    """Decode a 64-byte Ed25519 secret key.

    Args:
        key_str: Base58 string or JSON array ("[12, 45, 78, ...]").

    Raises:
        KeyLoadError: If the value is neither format or has the wrong length.
    """
    key_str = key_str.strip()

    if key_str.startswith("["):
        try:
            key_array = json.loads(key_str)
        except json.JSONDecodeError as e:
            raise KeyLoadError(f"Invalid JSON key array: {e}") from e
        if not isinstance(key_array, list) or not all(
            isinstance(x, int) and 0 <= x <= 255 for x in key_array
        ):
            raise KeyLoadError("JSON key must be an array of byte values")
        key_bytes = bytes(key_array)
    else:
        try:
            key_bytes = base58.b58decode(key_str)
        except ValueError as e:
            preview = f"{key_str[:20]}..." if len(key_str) > 20 else key_str
            raise KeyLoadError(f"Invalid base58 key. Got: {preview}") from e

    if len(key_bytes) != SECRET_KEY_LENGTH:
        raise KeyLoadError(f"Expected a {SECRET_KEY_LENGTH}-byte secret key, got {len(key_bytes)} bytes")
    return key_bytes


def load_solana_private_key(env: Optional[Mapping[str, str]] = None, var: str = PRIVATE_KEY_ENV) -> bytes:
    """Load the secret key from an environment variable.

    Raises:
        KeyLoadError: If the variable is missing or the key is invalid.
    """
    environ = os.environ if env is None else env
    key_str = environ.get(var, "")
    if not key_str:
        raise KeyLoadError(f"{var} environment variable is not set")
    return parse_private_key(key_str)


def load_signer(env: Optional[Mapping[str, str]] = None, var: str = PRIVATE_KEY_ENV) -> KeypairSigner:
    """Build a KeypairSigner from the environment."""
    secret = load_solana_private_key(env, var)
    try:
        return KeypairSigner.from_secret_key(secret)
    except InvalidArgument as e:
        raise KeyLoadError(str(e)) from e


def validate_key_exists(env: Optional[Mapping[str, str]] = None) -> bool:
    """True if the key variable is set and parses."""
    try:
        load_solana_private_key(env)
        return True
    except KeyLoadError:
        return False
