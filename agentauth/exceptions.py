"""
AgentAuth Error Types

Raised on the trusted-input path only (key parsing, derivation, signing).
The verification path converts every failure into an invalid result and
never raises one of these to its caller.
"""


class AgentAuthError(Exception):
    """Base class for all AgentAuth errors."""


class FormatError(AgentAuthError):
    """Raised when a key, address or signature has the wrong textual shape."""


class DerivationError(AgentAuthError):
    """Raised when a well-formed key is not a valid secp256k1 private scalar."""


class SigningError(AgentAuthError):
    """Raised when a payload cannot be signed with the supplied key."""


class UnsupportedAlgorithmError(AgentAuthError):
    """Raised when an identity is requested for an algorithm other than secp256k1."""

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Unsupported algorithm: {algorithm}")
