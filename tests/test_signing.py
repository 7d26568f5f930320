"""Ed25519 signing and agent key handling."""

import unittest

from deepkey import KeyPair, is_agent_key, sign_data, verify_signature
from deepkey.util import b64d, b64e, try_b64d

from tests.fixtures import alias_of


class TestSigning(unittest.TestCase):

    def setUp(self):
        self.keypair = KeyPair.generate()
        self.message = b'{"authorized_signers":[],"sigs_required":1}'

    def test_sign_and_verify(self):
        signature = self.keypair.sign(self.message)

        self.assertTrue(verify_signature(self.keypair.agent, signature, self.message))

    def test_tampered_message_fails(self):
        signature = self.keypair.sign(self.message)

        self.assertFalse(verify_signature(self.keypair.agent, signature, self.message + b" "))

    def test_other_key_fails(self):
        signature = self.keypair.sign(self.message)
        other = KeyPair.generate()

        self.assertFalse(verify_signature(other.agent, signature, self.message))

    def test_malformed_inputs_are_not_valid(self):
        signature = self.keypair.sign(self.message)

        self.assertFalse(verify_signature("not base64!", signature, self.message))
        self.assertFalse(verify_signature(self.keypair.agent, "not base64!", self.message))
        self.assertFalse(verify_signature(b64e(b"\x00" * 31), signature, self.message))
        self.assertFalse(verify_signature(self.keypair.agent, b64e(b"\x00" * 63), self.message))

    def test_non_canonical_encodings_are_not_valid(self):
        signature = self.keypair.sign(self.message)
        aliased = alias_of(self.keypair.agent)

        self.assertNotEqual(aliased, self.keypair.agent)
        self.assertEqual(b64d(aliased), b64d(self.keypair.agent))
        self.assertFalse(is_agent_key(aliased))
        self.assertFalse(verify_signature(aliased, signature, self.message))
        self.assertIsNone(try_b64d(aliased, 32))
        self.assertEqual(try_b64d(self.keypair.agent, 32), b64d(self.keypair.agent))

    def test_raw_helpers(self):
        signature = sign_data(self.message, self.keypair.signing_key)

        self.assertEqual(len(signature), 64)
        self.assertTrue(verify_signature(b64e(self.keypair.verify_key), b64e(signature), self.message))

    def test_keypair_round_trip(self):
        restored = KeyPair.from_dict(self.keypair.to_dict())

        self.assertEqual(restored.agent, self.keypair.agent)
        signature = restored.sign(self.message)
        self.assertTrue(verify_signature(self.keypair.agent, signature, self.message))

    def test_is_agent_key(self):
        self.assertTrue(is_agent_key(self.keypair.agent))
        self.assertFalse(is_agent_key(b64e(b"\x01" * 16)))
        self.assertFalse(is_agent_key("sha256:" + "a" * 64))
        self.assertFalse(is_agent_key(None))


if __name__ == "__main__":
    unittest.main()
