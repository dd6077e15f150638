"""
TOTP Secret Encryption Module

Encrypts TOTP shared secrets for storage at rest with:
- PBKDF2-HMAC-SHA512 key derivation (100,000 iterations)
- Random salt and IV per encryption
- AES-256-GCM authenticated encryption

Security features:
- The master key is never used directly; every blob has its own derived key
- Tag verification happens during decryption (fails closed)
- No salt or IV is reused across calls

Blob Format (base64):
    [salt (64) | iv (16) | tag (16) | ciphertext (n)]
"""

import base64
import binascii
import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import SecretIntegrityError


logger = logging.getLogger(__name__)


# Constants
SALT_SIZE = 64              # 512-bit salt
IV_SIZE = 16                # 128-bit IV
TAG_SIZE = 16               # 128-bit GCM tag
KEY_SIZE = 32               # AES-256

# Fixed blob offsets
TAG_POSITION = SALT_SIZE + IV_SIZE
CIPHERTEXT_POSITION = TAG_POSITION + TAG_SIZE

# PBKDF2 configuration
PBKDF2_ITERATIONS = 100_000
PBKDF2_ALGORITHM = hashes.SHA512()


def derive_key(master_key: str, salt: bytes,
               iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Derive a per-blob encryption key from the master key.

    Args:
        master_key: Long-lived master key
        salt: Random salt (64 bytes)
        iterations: PBKDF2 iteration count

    Returns:
        32-byte derived key
    """
    kdf = PBKDF2HMAC(
        algorithm=PBKDF2_ALGORITHM,
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
        backend=default_backend()
    )
    return kdf.derive(master_key.encode('utf-8'))


class SecretCipher:
    """
    AES-256-GCM cipher for TOTP secrets at rest.

    Example:
        >>> cipher = SecretCipher("master-key")
        >>> blob = cipher.encrypt("JBSWY3DPEHPK3PXP")
        >>> cipher.decrypt(blob)
        'JBSWY3DPEHPK3PXP'
    """

    def __init__(self, master_key: str, iterations: int = PBKDF2_ITERATIONS):
        """
        Initialize the cipher.

        Args:
            master_key: Master key the per-blob keys are derived from
            iterations: PBKDF2 iteration count
        """
        if not master_key:
            raise ValueError("master_key must not be empty")
        self._master_key = master_key
        self._iterations = iterations

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret for storage.

        Args:
            plaintext: Secret to encrypt (UTF-8 text)

        Returns:
            Base64 blob of salt + iv + tag + ciphertext
        """
        salt = secrets.token_bytes(SALT_SIZE)
        iv = secrets.token_bytes(IV_SIZE)
        key = derive_key(self._master_key, salt, self._iterations)

        ciphertext_with_tag = AESGCM(key).encrypt(iv, plaintext.encode('utf-8'), None)
        ciphertext = ciphertext_with_tag[:-TAG_SIZE]
        tag = ciphertext_with_tag[-TAG_SIZE:]

        return base64.b64encode(salt + iv + tag + ciphertext).decode('ascii')

    def decrypt(self, blob: str) -> str:
        """
        Decrypt a stored secret.

        Args:
            blob: Base64 blob produced by encrypt()

        Returns:
            The original plaintext

        Raises:
            SecretIntegrityError: If the blob is malformed, was tampered
                with, or was encrypted under a different master key
        """
        try:
            data = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise SecretIntegrityError("Encrypted secret is not valid base64") from e

        if len(data) < CIPHERTEXT_POSITION:
            raise SecretIntegrityError("Encrypted secret is truncated")

        salt = data[:SALT_SIZE]
        iv = data[SALT_SIZE:TAG_POSITION]
        tag = data[TAG_POSITION:CIPHERTEXT_POSITION]
        ciphertext = data[CIPHERTEXT_POSITION:]

        key = derive_key(self._master_key, salt, self._iterations)
        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            logger.error("Secret authentication tag mismatch")
            raise SecretIntegrityError("Encrypted secret failed authentication") from e

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise SecretIntegrityError("Decrypted secret is not valid UTF-8") from e
