"""
AgentAuth Key Material

Parses textual private keys into their canonical 64-character hex form and
generates fresh secp256k1 scalars.

Accepted forms (all followed by exactly 64 hex characters):
    aa-<hex>    AgentAuth token form
    0x<hex>     conventional EVM form
    <hex>       bare hex

Parsing is purely syntactic. Whether the scalar lies in [1, n-1] is checked
during derivation, not here.
"""

import re
import secrets

from eth_keys.constants import SECPK1_N

from .exceptions import FormatError

TOKEN_PREFIX = "aa-"
HEX_PREFIX = "0x"

PRIVATE_KEY_HEX_LENGTH = 64

_PREFIX_PATTERN = re.compile(f"^({re.escape(TOKEN_PREFIX)}|{re.escape(HEX_PREFIX)})")
_PRIVATE_KEY_PATTERN = re.compile(rf"[0-9a-fA-F]{{{PRIVATE_KEY_HEX_LENGTH}}}")


def parse_private_key(text: str) -> str:
    """
    Strip a recognised prefix and validate the remaining hex.

    At most one prefix is removed, so "aa-0x<hex>" is rejected.

    Args:
        text: Private key in aa-, 0x or bare hex form

    Returns:
        The 64-character hex private key without prefix, case preserved

    Raises:
        FormatError: If the text is not one of the accepted forms
    """
    if not isinstance(text, str):
        raise FormatError("Invalid private key format: must be 32-byte hex string")

    clean_hex = _PREFIX_PATTERN.sub("", text, count=1)

    if not _PRIVATE_KEY_PATTERN.fullmatch(clean_hex):
        raise FormatError("Invalid private key format: must be 32-byte hex string")

    return clean_hex


def private_key_bytes(text: str) -> bytes:
    """Parse a private key and return its 32 raw bytes."""
    return bytes.fromhex(parse_private_key(text))


def is_valid_scalar(key: bytes) -> bool:
    """Check that a 32-byte big-endian value is a usable secp256k1 private scalar."""
    if len(key) != 32:
        return False
    return 0 < int.from_bytes(key, "big") < SECPK1_N


def generate_private_key() -> str:
    """
    Generate a new secp256k1 private key from the OS CSPRNG.

    Draws are rejected only when they fall outside [1, n-1]. Failure of the
    random source propagates to the caller.

    Returns:
        Lowercase 64-character hex private key without prefix
    """
    while True:
        candidate = secrets.token_bytes(32)
        if is_valid_scalar(candidate):
            return candidate.hex()


def to_token(key_hex: str) -> str:
    """Render a private key in aa- token form."""
    return f"{TOKEN_PREFIX}{parse_private_key(key_hex).lower()}"
