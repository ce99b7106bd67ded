"""
AgentAuth Payload Encoding

The byte encoding that signer and verifier both hash. It is the compact JSON
text a JavaScript signer produces with JSON.stringify, so signatures made by
either side verify on the other:

- No whitespace between tokens
- Object keys in insertion order, except integer-like keys ("0", "17"),
  which come first in ascending numeric order
- UTF-8, non-ASCII characters unescaped, lone surrogates escaped
- Numbers in ECMAScript Number::toString form (1.0 -> 1, 1e21 -> 1e+21)
- NaN and Infinity rendered as null

Keys are NOT sorted. Signer and verifier must hold structurally identical
payloads; the verifier gets this for free because it hashes the payload it
decoded from the request.
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from eth_hash.auto import keccak

from .exceptions import FormatError

_ARRAY_INDEX_PATTERN = re.compile(r"0|[1-9][0-9]*")
_MAX_ARRAY_INDEX = 2 ** 32 - 2
_LONE_SURROGATE_PATTERN = re.compile("[\ud800-\udfff]")


def serialize_payload(payload: Any) -> bytes:
    """
    Encode a payload to the bytes that get signed.

    Raises:
        FormatError: If the payload holds a value JSON cannot represent
    """
    return serialize_payload_str(payload).encode("utf-8")


def serialize_payload_str(payload: Any) -> str:
    """Return the payload encoding as text."""
    return _serialize_value(payload)


def payload_hash(payload: Any) -> bytes:
    """Keccak-256 digest of the serialized payload."""
    return keccak(serialize_payload(payload))


class _Literal:
    """Already-encoded text queued on the serializer stack."""
    __slots__ = ("text", "closes")

    def __init__(self, text: str, closes: Optional[int] = None):
        self.text = text
        # id of the container this literal closes, if any
        self.closes = closes


def _serialize_value(root: Any) -> str:
    """
    Serialize a value with an explicit work stack.

    Nesting depth is bounded by memory, not the interpreter recursion limit,
    so any document json.loads accepts can be re-encoded.
    """
    parts: List[str] = []
    stack: List[Any] = [root]
    open_containers: Set[int] = set()

    while stack:
        item = stack.pop()
        if isinstance(item, _Literal):
            parts.append(item.text)
            if item.closes is not None:
                open_containers.discard(item.closes)
        elif isinstance(item, dict):
            _enter(item, open_containers)
            members = _ordered_members(item)
            stack.append(_Literal("}", id(item)))
            for i in reversed(range(len(members))):
                key, value = members[i]
                stack.append(value)
                stack.append(_Literal(("," if i else "") + _serialize_string(key) + ":"))
            stack.append(_Literal("{"))
        elif isinstance(item, (list, tuple)):
            _enter(item, open_containers)
            # Arrays keep their order.
            stack.append(_Literal("]", id(item)))
            for i in reversed(range(len(item))):
                stack.append(item[i])
                if i:
                    stack.append(_Literal(","))
            stack.append(_Literal("["))
        else:
            parts.append(_serialize_scalar(item))

    return "".join(parts)


def _enter(container: Any, open_containers: Set[int]) -> None:
    if id(container) in open_containers:
        raise FormatError("Cannot serialize circular structure")
    open_containers.add(id(container))


def _serialize_scalar(value: Any) -> str:
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, int):
        return str(value)
    elif isinstance(value, float):
        return _serialize_number(value)
    elif isinstance(value, str):
        return _serialize_string(value)
    else:
        raise FormatError(f"Cannot serialize type: {type(value).__name__}")


def _serialize_string(value: str) -> str:
    text = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE_PATTERN.sub(lambda m: "\\u%04x" % ord(m.group()), text)


def _serialize_number(value: float) -> str:
    """
    Format a float the way ECMAScript Number::toString does.

    Both languages emit the shortest round-tripping digits; only the
    placement of the decimal point and exponent differs.
    """
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0")
    exponent += len(digit_tuple) - len(digits)

    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"

    return sign + body


def _ordered_members(obj: Dict[Any, Any]) -> List[Tuple[str, Any]]:
    """Object members in JavaScript enumeration order."""
    members = [(str(k), v) for k, v in obj.items()]

    index_keys = sorted(
        (m for m in members if _is_array_index(m[0])),
        key=lambda m: int(m[0]),
    )
    other_keys = [m for m in members if not _is_array_index(m[0])]
    return index_keys + other_keys


def _is_array_index(key: str) -> bool:
    return _ARRAY_INDEX_PATTERN.fullmatch(key) is not None and int(key) <= _MAX_ARRAY_INDEX
