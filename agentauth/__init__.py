"""
AgentAuth Reference Implementation

Version: 0.1.1
License: MIT

Self-authenticating identity for autonomous agents: no accounts, no
passwords, no server-side sessions.

An agent holds one secret, a secp256k1 private key. Everything else is
derived from it:

    token  (aa-<64 hex>)  ->  address (0x<40 hex>)  ->  agentauth_id (UUIDv5)

Requests are authenticated by signing a timestamped payload. The server
recovers the signer's address from the signature, checks the timestamp
against a freshness window, and derives the agentauth_id. No state is kept
between requests.

Usage:
    from agentauth import generate_identity, create_auth_headers, verify

    # Agent side
    identity = generate_identity()
    headers = create_auth_headers(identity.agentauth_token)

    # Server side
    result = verify(headers)
    if result.valid:
        agent_id = result.agentauth_id
"""

__version__ = "0.1.1"
__author__ = "AgentAuth Team"
__license__ = "MIT"

import logging

# Library default: no output until the application configures logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Errors
from .exceptions import (
    AgentAuthError,
    FormatError,
    DerivationError,
    SigningError,
    UnsupportedAlgorithmError,
)

# Key material
from .keys import (
    parse_private_key,
    generate_private_key,
)

# Identity derivation
from .identity import (
    AGENTAUTH_NAMESPACE,
    GeneratedIdentity,
    DerivedIdentity,
    derive_address,
    derive_from_token,
    generate_id,
    generate_identity,
    is_valid_address,
    normalize_address,
)

# Payload encoding
from .canonicalization import (
    serialize_payload,
    payload_hash,
)

# Signatures
from .signing import (
    sign_payload,
    verify_signature,
    recover_address,
)

# Request protocol
from .protocol import (
    AGENTAUTH_HEADERS,
    VerificationResult,
    create_auth_headers,
    verify,
)

__all__ = [
    # Version
    "__version__",

    # Errors
    "AgentAuthError",
    "FormatError",
    "DerivationError",
    "SigningError",
    "UnsupportedAlgorithmError",

    # Key material
    "parse_private_key",
    "generate_private_key",

    # Identity
    "AGENTAUTH_NAMESPACE",
    "GeneratedIdentity",
    "DerivedIdentity",
    "derive_address",
    "derive_from_token",
    "generate_id",
    "generate_identity",
    "is_valid_address",
    "normalize_address",

    # Payload encoding
    "serialize_payload",
    "payload_hash",

    # Signatures
    "sign_payload",
    "verify_signature",
    "recover_address",

    # Protocol
    "AGENTAUTH_HEADERS",
    "VerificationResult",
    "create_auth_headers",
    "verify",
]
