"""
AgentAuth Signature Engine Tests

Round trips, determinism, wire format and tamper sensitivity.
"""

import copy
import unittest

from eth_keys.constants import SECPK1_N

from agentauth import (
    FormatError,
    SigningError,
    derive_address,
    generate_identity,
    recover_address,
    sign_payload,
    verify_signature,
)
from agentauth.signing import SIGNATURE_HEX_LENGTH

SAMPLE_KEY = "aa-2e6bea4b9180e920e209973473ce4b6d362e564e869917907a00bb1a50dddfca"


def flip_hex_char(signature: str, index: int) -> str:
    """Flip the low bit of the hex digit at index (0 is the first digit after 0x)."""
    pos = index + 2
    flipped = format(int(signature[pos], 16) ^ 1, "x")
    return signature[:pos] + flipped + signature[pos + 1:]


class TestSignPayload(unittest.TestCase):

    def setUp(self):
        self.payload = {"data": "hello, world", "timestamp": "2025-01-01T00:00:00.000Z"}

    def test_signature_format(self):
        signature = sign_payload(self.payload, SAMPLE_KEY)
        self.assertEqual(len(signature), 2 + SIGNATURE_HEX_LENGTH)
        self.assertRegex(signature, r"^0x[0-9a-f]{130}$")
        self.assertIn(signature[-2:], ("00", "01"))

    def test_deterministic(self):
        """RFC 6979 nonces: same key and payload give the same signature."""
        self.assertEqual(sign_payload(self.payload, SAMPLE_KEY), sign_payload(self.payload, SAMPLE_KEY))

    def test_low_s(self):
        signature = sign_payload(self.payload, SAMPLE_KEY)
        s = int(signature[66:130], 16)
        self.assertLessEqual(s, SECPK1_N // 2)

    def test_key_forms_sign_identically(self):
        raw = SAMPLE_KEY[3:]
        self.assertEqual(sign_payload(self.payload, raw), sign_payload(self.payload, f"0x{raw}"))

    def test_malformed_key(self):
        with self.assertRaises(SigningError):
            sign_payload(self.payload, "invalid")

    def test_zero_key(self):
        with self.assertRaises(SigningError):
            sign_payload(self.payload, "0" * 64)

    def test_unserializable_payload(self):
        with self.assertRaises(SigningError):
            sign_payload({"x": object()}, SAMPLE_KEY)

    def test_error_chained(self):
        with self.assertRaises(SigningError) as ctx:
            sign_payload(self.payload, "0x123")
        self.assertIsInstance(ctx.exception.__cause__, FormatError)

    def test_deeply_nested_payload(self):
        payload = {"timestamp": "2025-01-01T00:00:00.000Z"}
        for _ in range(1000):
            payload = {"nested": payload}
        signature = sign_payload(payload, SAMPLE_KEY)
        self.assertTrue(verify_signature(signature, payload, derive_address(SAMPLE_KEY)))

    def test_circular_payload(self):
        payload = {"timestamp": "2025-01-01T00:00:00.000Z"}
        payload["self"] = payload
        with self.assertRaises(SigningError):
            sign_payload(payload, SAMPLE_KEY)


class TestVerifySignature(unittest.TestCase):

    def setUp(self):
        self.identity = generate_identity()
        self.payload = {"msg": "hello"}
        self.signature = sign_payload(self.payload, self.identity.agentauth_token)

    def test_round_trip(self):
        self.assertTrue(verify_signature(self.signature, self.payload, self.identity.agentauth_address))

    def test_round_trip_fixed_key(self):
        payload = {"msg": "hello"}
        signature = sign_payload(payload, SAMPLE_KEY)
        self.assertTrue(verify_signature(signature, payload, derive_address(SAMPLE_KEY)))
        self.assertFalse(verify_signature(signature, {"msg": "tampered"}, derive_address(SAMPLE_KEY)))

    def test_address_case_insensitive(self):
        self.assertTrue(verify_signature(self.signature, self.payload, self.identity.agentauth_address.upper().replace("0X", "0x")))

    def test_recover_address(self):
        self.assertEqual(recover_address(self.signature, self.payload), self.identity.agentauth_address)

    def test_wrong_address(self):
        self.assertFalse(verify_signature(self.signature, self.payload, "0x1234567890123456789012345678901234567890"))

    def test_other_identity(self):
        other = generate_identity()
        self.assertFalse(verify_signature(self.signature, self.payload, other.agentauth_address))

    def test_tampered_payload_field(self):
        for key, value in (("msg", "tampered"), ("extra", 1)):
            tampered = copy.deepcopy(self.payload)
            tampered[key] = value
            with self.subTest(field=key):
                self.assertFalse(verify_signature(self.signature, tampered, self.identity.agentauth_address))

    def test_every_signature_digit_is_bound(self):
        """Flipping one bit anywhere in r, s or the recovery id invalidates the signature."""
        for index in list(range(0, 128, 7)) + [127, 128, 129]:
            with self.subTest(index=index):
                tampered = flip_hex_char(self.signature, index)
                self.assertFalse(verify_signature(tampered, self.payload, self.identity.agentauth_address))

    def test_tampered_address(self):
        address = self.identity.agentauth_address
        tampered = address[:-1] + ("0" if address[-1] != "0" else "1")
        self.assertFalse(verify_signature(self.signature, self.payload, tampered))

    def test_malformed_addresses(self):
        for address in (
            "",
            "0x1234",
            self.identity.agentauth_address[2:],
            self.identity.agentauth_address + "00",
            "0x" + "z" * 40,
            None,
            42,
        ):
            with self.subTest(address=address):
                self.assertFalse(verify_signature(self.signature, self.payload, address))

    def test_malformed_signatures(self):
        address = self.identity.agentauth_address
        for signature in (
            "",
            "0x",
            self.signature[:-2],
            self.signature + "00",
            self.signature[2:],
            "0X" + self.signature[2:],
            "0x" + "zz" * 65,
            None,
            b"\x00" * 65,
        ):
            with self.subTest(signature=signature):
                self.assertFalse(verify_signature(signature, self.payload, address))

    def test_out_of_range_components(self):
        address = self.identity.agentauth_address
        r, s, v = self.signature[2:66], self.signature[66:130], self.signature[130:]
        zero = "00" * 32
        order = format(SECPK1_N, "064x")
        for signature in (
            "0x" + zero + s + v,
            "0x" + r + zero + v,
            "0x" + order + s + v,
            "0x" + r + order + v,
            "0x" + r + s + "1b",
            "0x" + r + s + "02",
            "0x" + r + s + "ff",
        ):
            with self.subTest(signature=signature):
                self.assertFalse(verify_signature(signature, self.payload, address))

    def test_recover_rejects_bad_recovery_id(self):
        with self.assertRaises(FormatError):
            recover_address(self.signature[:-2] + "1c", self.payload)

    def test_unserializable_payload_is_false(self):
        self.assertFalse(verify_signature(self.signature, {"x": object()}, self.identity.agentauth_address))


if __name__ == "__main__":
    unittest.main()
