"""
AgentAuth Authentication Protocol

Stateless request verification. A request carries three headers:

    x-agentauth-address     claimed address, "0x" + 40 hex
    x-agentauth-signature   recoverable signature over the payload
    x-agentauth-payload     base64 of the JSON payload, which must hold a
                            "timestamp"

verify() runs a short-circuiting pipeline (presence, decode, signature,
freshness) and returns VerificationResult. Every failure produces the same
{"valid": False}; the rejecting stage goes to the audit log only, so a peer
cannot use the response to learn which check it tripped.

Replay protection is the freshness window alone: a request is accepted iff
|now - timestamp| < freshness. No nonce state is kept.
"""

import base64
import binascii
import json
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from . import config
from .canonicalization import serialize_payload
from .identity import derive_address, generate_id
from .logging_config import audit_log
from .signing import sign_payload, verify_signature

logger = logging.getLogger(__name__)

ADDRESS_HEADER = "x-agentauth-address"
SIGNATURE_HEADER = "x-agentauth-signature"
PAYLOAD_HEADER = "x-agentauth-payload"

AGENTAUTH_HEADERS = {
    "ADDRESS": ADDRESS_HEADER,
    "SIGNATURE": SIGNATURE_HEADER,
    "PAYLOAD": PAYLOAD_HEADER,
}

TIMESTAMP_FIELD = "timestamp"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verify(). agentauth_id is set only when valid is True."""
    valid: bool
    agentauth_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        if not self.valid:
            return {"valid": False}
        return {"valid": True, "agentauth_id": self.agentauth_id}

    @classmethod
    def success(cls, agentauth_id: str) -> 'VerificationResult':
        return cls(valid=True, agentauth_id=agentauth_id)

    @classmethod
    def invalid(cls) -> 'VerificationResult':
        return cls(valid=False)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def format_timestamp(epoch_ms: int) -> str:
    """Render epoch milliseconds as ISO 8601 UTC with millisecond precision and Z."""
    dt = _EPOCH + timedelta(milliseconds=epoch_ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> float:
    """
    Convert a payload timestamp to epoch milliseconds.

    Accepts ISO 8601 strings as datetime.fromisoformat reads them on Python
    3.11+ (Z or numeric offset with or without a colon, any number of
    fractional digits; no offset means UTC) and numbers, which are taken as
    epoch milliseconds.

    Raises:
        ValueError: If the value is missing, boolean, non-finite or unparseable
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("timestamp missing or not a time value")

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError("timestamp is not finite")
        return float(value)

    if not isinstance(value, str):
        raise ValueError("timestamp must be a string or number")

    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    # Whole milliseconds, sub-millisecond digits dropped
    return float((dt - _EPOCH) // timedelta(milliseconds=1))


def encode_payload_header(payload: Any) -> str:
    """Base64-encode the serialized payload for the payload header."""
    return base64.b64encode(serialize_payload(payload)).decode("ascii")


def decode_payload_header(value: str) -> Any:
    """
    Decode the payload header back into a JSON value.

    Both the standard and URL-safe base64 alphabets are accepted, with or
    without padding.

    Raises:
        ValueError: On bad base64, bad UTF-8 or bad JSON
    """
    text = "".join(value.split()).replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        raw = base64.b64decode(text, validate=True)
    except binascii.Error as err:
        raise ValueError("payload is not valid base64") from err
    return json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant: {name}")


def _get_header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup; non-string and empty values count as absent."""
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == name:
                value = candidate
                break
    if not isinstance(value, str) or not value:
        return None
    return value


def verify(
    request: Any,
    freshness: Optional[int] = None,
    now: Optional[Callable[[], float]] = None,
) -> VerificationResult:
    """
    Verify a signed request.

    Stateless: nothing is stored between calls. Never raises.

    Args:
        request: Mapping of headers, or any object with a .headers mapping
        freshness: Allowed |now - timestamp| in milliseconds (exclusive);
            defaults to AGENTAUTH_FRESHNESS_MS (60000)
        now: Clock returning epoch milliseconds; defaults to the system clock

    Returns:
        VerificationResult.success(agentauth_id) or VerificationResult.invalid()
    """
    try:
        return _verify(request, freshness, now)
    except Exception as err:
        audit_log.verification_failed("internal")
        logger.debug("Verification aborted: %s", type(err).__name__)
        return VerificationResult.invalid()


def _verify(
    request: Any,
    freshness: Optional[int],
    now: Optional[Callable[[], float]],
) -> VerificationResult:
    if freshness is None:
        freshness = config.DEFAULT_FRESHNESS_MS
    clock = now or now_ms

    headers = getattr(request, "headers", request)
    if not isinstance(headers, Mapping) and not hasattr(headers, "get"):
        audit_log.verification_failed("headers")
        return VerificationResult.invalid()

    address = _get_header(headers, ADDRESS_HEADER)
    signature = _get_header(headers, SIGNATURE_HEADER)
    payload_b64 = _get_header(headers, PAYLOAD_HEADER)

    if not address or not signature or not payload_b64:
        audit_log.verification_failed("missing_header", address)
        return VerificationResult.invalid()

    # 1. Decode payload
    try:
        payload = decode_payload_header(payload_b64)
    except (ValueError, UnicodeDecodeError, RecursionError):
        audit_log.verification_failed("payload_decode", address)
        return VerificationResult.invalid()

    if not isinstance(payload, dict):
        audit_log.verification_failed("payload_decode", address)
        return VerificationResult.invalid()

    # 2. Verify signature against address
    if not verify_signature(signature, payload, address):
        audit_log.verification_failed("signature", address)
        return VerificationResult.invalid()

    # 3. Check timestamp freshness
    try:
        request_timestamp = parse_timestamp(payload.get(TIMESTAMP_FIELD))
    except (ValueError, TypeError, OverflowError):
        audit_log.verification_failed("timestamp", address)
        return VerificationResult.invalid()

    if abs(clock() - request_timestamp) >= freshness:
        audit_log.verification_failed("freshness", address)
        return VerificationResult.invalid()

    # 4. Stable ID from the canonical lowercase address
    canonical_address = address.lower()
    agentauth_id = generate_id(canonical_address)

    audit_log.verification_succeeded(canonical_address, agentauth_id)
    return VerificationResult.success(agentauth_id)


def create_auth_headers(
    token: str,
    payload: Optional[Dict[str, Any]] = None,
    now: Optional[Callable[[], float]] = None,
) -> Dict[str, str]:
    """
    Build fresh authentication headers for one outgoing request.

    The payload gets a current "timestamp" (overwriting any caller value) and
    is signed with the token.

    Raises:
        FormatError, DerivationError: If the token is invalid
        SigningError: If signing fails
    """
    clock = now or now_ms
    body = dict(payload or {})
    body[TIMESTAMP_FIELD] = format_timestamp(int(clock()))

    address = derive_address(token)
    signature = sign_payload(body, token)

    return {
        ADDRESS_HEADER: address,
        SIGNATURE_HEADER: signature,
        PAYLOAD_HEADER: encode_payload_header(body),
    }

