"""
Deepkey Cryptographic Signing

Uses Ed25519 (RFC 8032) through PyNaCl. An agent's identity is the base64
text of its raw 32-byte verify key, so a signer listed in a ChangeRule can be
checked directly without a separate key registry.
"""

from dataclasses import dataclass
from typing import Any, Dict

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .util import b64d, b64e, try_b64d


PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


@dataclass
class KeyPair:
    """Ed25519 key pair for an agent or a throwaway root key."""
    signing_key: bytes
    verify_key: bytes
    algorithm: str = "Ed25519"

    @classmethod
    def generate(cls) -> 'KeyPair':
        """Generate a new random key pair."""
        signing_key = SigningKey.generate()
        return cls(
            signing_key=bytes(signing_key),
            verify_key=bytes(signing_key.verify_key),
        )

    @property
    def agent(self) -> str:
        """The agent identity (base64 of the raw verify key)."""
        return b64e(self.verify_key)

    def sign(self, data: bytes) -> str:
        """Sign data and return the base64 signature."""
        return b64e(sign_data(data, self.signing_key))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "agent": self.agent,
            "private_key_b64": b64e(self.signing_key),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KeyPair':
        """Rebuild a key pair from its stored form."""
        signing_key = SigningKey(b64d(data["private_key_b64"]))
        return cls(
            signing_key=bytes(signing_key),
            verify_key=bytes(signing_key.verify_key),
        )


def sign_data(data: bytes, signing_key: bytes) -> bytes:
    """Sign data with Ed25519 signing key."""
    key = SigningKey(signing_key)
    return key.sign(data).signature


def verify_signature(public_key: str, signature: str, message: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        public_key: Base64 agent key / root public key
        signature: Base64 signature
        message: The signed bytes

    Returns:
        True only if both encodings are well formed and the signature
        verifies; a malformed key or signature is simply not valid.
    """
    key_bytes = try_b64d(public_key, PUBLIC_KEY_LENGTH)
    sig_bytes = try_b64d(signature, SIGNATURE_LENGTH)
    if key_bytes is None or sig_bytes is None:
        return False

    try:
        VerifyKey(key_bytes).verify(message, sig_bytes)
        return True
    except (BadSignatureError, CryptoError):
        return False


def is_agent_key(value: Any) -> bool:
    """Check that a value is a well-formed agent identity."""
    return try_b64d(value, PUBLIC_KEY_LENGTH) is not None
