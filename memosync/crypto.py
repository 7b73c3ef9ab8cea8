"""
Password-based encryption for memosync snapshots.

Provides the primitives used by the encrypted-blob adapter:
- PBKDF2-HMAC-SHA256 key derivation (100,000 iterations, 256-bit key)
- AES-GCM encryption with a fresh salt and nonce per call
- SHA-256 checksums for display
"""

import base64
import binascii
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from memosync.errors import CryptoError, DecryptionError

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # bytes, AES-256
SALT_LENGTH = 16
NONCE_LENGTH = 12


@dataclass
class EncryptedPayload:
    """Self-contained ciphertext: decrypting needs only this and the password.

    Attributes:
        ciphertext: Base64 AES-GCM output (ciphertext with the tag appended)
        salt: Base64 16-byte PBKDF2 salt
        iv: Base64 12-byte GCM nonce
    """

    ciphertext: str
    salt: str
    iv: str

    def to_dict(self) -> Dict[str, str]:
        return {"ciphertext": self.ciphertext, "salt": self.salt, "iv": self.iv}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedPayload":
        """Parse the wire form.

        Raises:
            DecryptionError: If a field is missing or not a string.
        """
        if not isinstance(data, dict):
            raise DecryptionError()
        try:
            fields = {name: data[name] for name in ("ciphertext", "salt", "iv")}
        except KeyError as e:
            raise DecryptionError() from e
        if not all(isinstance(v, str) for v in fields.values()):
            raise DecryptionError()
        return cls(**fields)


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def derive_key(password: str, salt: bytes) -> AESGCM:
    """Derive an AES-GCM cipher from a password.

    The raw key bytes never leave this function; callers only get a cipher
    object able to encrypt and decrypt.

    Args:
        password: Passphrase, encoded as UTF-8
        salt: Random salt (16 bytes when produced by ``encrypt``)

    Returns:
        AESGCM instance keyed with the derived 256-bit key
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return AESGCM(kdf.derive(password.encode("utf-8")))


def encrypt(plaintext: str, password: str) -> EncryptedPayload:
    """Encrypt a UTF-8 string under a password.

    A new salt and nonce are drawn for every call, so encrypting the same
    plaintext twice yields different payloads.

    Raises:
        CryptoError: If encryption fails
    """
    salt = os.urandom(SALT_LENGTH)
    nonce = os.urandom(NONCE_LENGTH)
    try:
        cipher = derive_key(password, salt)
        ciphertext = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
    except (TypeError, ValueError, UnicodeEncodeError) as e:
        logger.error(f"Encryption failed: {type(e).__name__}")
        raise CryptoError(f"Failed to encrypt payload: {e}") from e

    return EncryptedPayload(
        ciphertext=_b64encode(ciphertext),
        salt=_b64encode(salt),
        iv=_b64encode(nonce),
    )


def decrypt(payload: EncryptedPayload, password: str) -> str:
    """Decrypt a payload produced by ``encrypt``.

    Every failure mode (bad base64, wrong password, flipped bit, truncated
    tag, invalid UTF-8) raises the same ``DecryptionError`` so callers cannot
    tell a wrong password from corrupted data.

    Raises:
        DecryptionError: If the payload cannot be authenticated and decoded
    """
    try:
        salt = base64.b64decode(payload.salt, validate=True)
        nonce = base64.b64decode(payload.iv, validate=True)
        ciphertext = base64.b64decode(payload.ciphertext, validate=True)
        cipher = derive_key(password, salt)
        plaintext = cipher.decrypt(nonce, ciphertext, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, binascii.Error, ValueError, TypeError) as e:
        logger.debug("Decryption failed: %s", type(e).__name__)
        raise DecryptionError() from None


def compute_checksum(data: str) -> str:
    """SHA-256 hex digest of a UTF-8 string.

    For integrity display only; never use it to decide whether to trust data.
    """
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
