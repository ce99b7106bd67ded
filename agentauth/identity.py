"""
AgentAuth Identity Derivation

Private key -> address -> stable identifier.

    address    = "0x" + hex(keccak256(X || Y)[-20:])
    identifier = uuid5(AGENTAUTH_NAMESPACE, address)

where X || Y is the 64-byte uncompressed secp256k1 public key with the 0x04
format marker removed. Both steps are pure functions and are recomputed on
every call.
"""

import logging
import re
import uuid
from dataclasses import dataclass, asdict
from typing import Any, Dict

from eth_hash.auto import keccak
from eth_keys import keys
from eth_keys.exceptions import ValidationError as EthKeysValidationError

from .exceptions import DerivationError, FormatError, UnsupportedAlgorithmError
from .keys import generate_private_key, is_valid_scalar, private_key_bytes, to_token

logger = logging.getLogger(__name__)

# DO NOT CHANGE. Every agentauth_id ever issued was derived under this
# namespace; a different value silently re-keys every identity.
AGENTAUTH_NAMESPACE = uuid.UUID("2f5a5c48-c283-4231-8975-9271fe11e86c")

SUPPORTED_ALGORITHM = "secp256k1"

ADDRESS_BYTES = 20
_ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{40}")


@dataclass(frozen=True)
class GeneratedIdentity:
    """A freshly generated identity. agentauth_token is secret."""
    agentauth_token: str
    agentauth_address: str
    agentauth_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DerivedIdentity:
    """Public identity material derived from an existing token."""
    agentauth_address: str
    agentauth_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_valid_address(text: Any) -> bool:
    """Check for exactly "0x" followed by 40 hex characters (any case)."""
    return isinstance(text, str) and _ADDRESS_PATTERN.fullmatch(text) is not None


def normalize_address(text: str) -> str:
    """
    Return the canonical lowercase form of an address.

    Raises:
        FormatError: If text is not "0x" + 40 hex characters
    """
    if not is_valid_address(text):
        raise FormatError("Invalid address format: must be 0x-prefixed 20-byte hex string")
    return text.lower()


def address_from_public_key(public_key: bytes) -> str:
    """
    Compute the address for a 64-byte uncompressed public key (no 0x04 marker).

    This is the single hash-and-truncate rule shared by derivation and
    signature recovery.
    """
    if len(public_key) != 64:
        raise FormatError("Public key must be 64 bytes (uncompressed, without format marker)")
    return "0x" + keccak(public_key)[-ADDRESS_BYTES:].hex()


def derive_address(key_text: str) -> str:
    """
    Derive the lowercase 0x-prefixed address for a private key.

    Args:
        key_text: Private key in aa-, 0x or bare hex form

    Returns:
        Address string, "0x" + 40 lowercase hex characters

    Raises:
        FormatError: If the key text is malformed
        DerivationError: If the scalar is zero or not below the group order
    """
    key = private_key_bytes(key_text)

    if not is_valid_scalar(key):
        raise DerivationError("Failed to derive address: The provided private key is invalid.")

    try:
        private_key = keys.PrivateKey(key)
    except EthKeysValidationError as err:
        raise DerivationError("Failed to derive address: The provided private key is invalid.") from err

    return address_from_public_key(private_key.public_key.to_bytes())


def generate_id(address: str) -> str:
    """
    Compute the stable UUIDv5 identifier for an address.

    The string is hashed exactly as given. Callers that may receive mixed-case
    addresses should pass them through normalize_address first.
    """
    return str(uuid.uuid5(AGENTAUTH_NAMESPACE, address))


def derive_from_token(agentauth_token: str) -> DerivedIdentity:
    """Derive the address and identifier belonging to a token."""
    agentauth_address = derive_address(agentauth_token)
    return DerivedIdentity(
        agentauth_address=agentauth_address,
        agentauth_id=generate_id(agentauth_address),
    )


def generate_identity(algorithm: str = SUPPORTED_ALGORITHM) -> GeneratedIdentity:
    """
    Generate a new identity: token, address and identifier.

    Raises:
        UnsupportedAlgorithmError: For any algorithm other than secp256k1
    """
    if algorithm != SUPPORTED_ALGORITHM:
        raise UnsupportedAlgorithmError(algorithm)

    agentauth_token = to_token(generate_private_key())
    derived = derive_from_token(agentauth_token)

    logger.debug("Generated identity %s", derived.agentauth_id)

    return GeneratedIdentity(
        agentauth_token=agentauth_token,
        agentauth_address=derived.agentauth_address,
        agentauth_id=derived.agentauth_id,
    )
