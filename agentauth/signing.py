"""
AgentAuth Signature Engine

Recoverable secp256k1 ECDSA over Keccak-256 of the serialized payload.

Wire format of a signature (132 characters):

    "0x" + r (64 hex) + s (64 hex) + recovery id (2 hex, "00" or "01")

Nonces are derived deterministically (RFC 6979, HMAC-SHA256) so signing never
depends on fresh randomness, and s is always normalised to the lower half of
the group order.

The verifier needs only the claimed address: the public key is recovered
from (r, s, recovery id) and hashed to an address with the same rule used
for derivation.
"""

import logging
import re
from typing import Any

from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature, ValidationError as EthKeysValidationError

from .canonicalization import payload_hash
from .exceptions import AgentAuthError, FormatError, SigningError
from .identity import address_from_public_key, derive_address, is_valid_address
from .keys import private_key_bytes

logger = logging.getLogger(__name__)

SIGNATURE_HEX_LENGTH = 130
_SIGNATURE_PATTERN = re.compile(rf"0x[0-9a-fA-F]{{{SIGNATURE_HEX_LENGTH}}}")


def sign_payload(payload: Any, key_text: str) -> str:
    """
    Sign a payload with a private key.

    Args:
        payload: JSON-compatible value, normally a dict with a "timestamp"
        key_text: Private key in aa-, 0x or bare hex form

    Returns:
        0x-prefixed 65-byte hex signature (r || s || recovery id)

    Raises:
        SigningError: If the key is malformed or invalid, or the payload
            cannot be serialized
    """
    try:
        # Validates format and scalar range before touching the signer.
        derive_address(key_text)
        private_key = keys.PrivateKey(private_key_bytes(key_text))
    except (AgentAuthError, EthKeysValidationError) as err:
        raise SigningError("Failed to sign payload: The provided private key is invalid.") from err

    try:
        message_hash = payload_hash(payload)
    except (FormatError, RecursionError) as err:
        raise SigningError(f"Failed to sign payload: {err}") from err

    signature = private_key.sign_msg_hash(message_hash)
    return "0x" + signature.to_bytes().hex()


def recover_address(signature_hex: str, payload: Any) -> str:
    """
    Recover the address of whoever signed a payload.

    Returns:
        Lowercase 0x-prefixed address

    Raises:
        FormatError: If the signature is not "0x" + 130 hex characters, or
            its scalars or recovery id are out of range
        BadSignature: If no public key can be recovered
    """
    if not isinstance(signature_hex, str) or not _SIGNATURE_PATTERN.fullmatch(signature_hex):
        raise FormatError("Invalid signature format: must be 0x-prefixed 65-byte hex string")

    raw = bytes.fromhex(signature_hex[2:])
    r = int.from_bytes(raw[0:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    recovery_id = raw[64]

    if not (0 < r < SECPK1_N and 0 < s < SECPK1_N):
        raise FormatError("Invalid signature: r and s must lie in [1, n-1]")
    if recovery_id not in (0, 1):
        raise FormatError("Invalid signature: recovery id must be 0 or 1")

    try:
        signature = keys.Signature(vrs=(recovery_id, r, s))
    except EthKeysValidationError as err:
        raise FormatError("Invalid signature encoding") from err

    public_key = signature.recover_public_key_from_msg_hash(payload_hash(payload))
    return address_from_public_key(public_key.to_bytes())


def verify_signature(signature_hex: str, payload: Any, expected_address: str) -> bool:
    """
    Check that a signature over payload was produced by expected_address.

    Never raises: every malformed input and every cryptographic failure
    yields False.

    Args:
        signature_hex: 0x-prefixed 65-byte hex signature
        payload: The payload exactly as the signer held it
        expected_address: Claimed 0x-prefixed address (any case)

    Returns:
        True iff the recovered address equals expected_address, ignoring case
    """
    if not is_valid_address(expected_address):
        return False

    try:
        recovered = recover_address(signature_hex, payload)
    except (AgentAuthError, BadSignature, EthKeysValidationError, ValueError) as err:
        logger.debug("Signature recovery failed: %s", type(err).__name__)
        return False
    except Exception as err:
        logger.debug("Unexpected error during signature recovery: %s", type(err).__name__)
        return False

    return recovered.lower() == expected_address.lower()
