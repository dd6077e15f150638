# Crypto Module
"""
Encryption of secrets at rest (AES-256-GCM with PBKDF2-derived keys).
"""

from .secret_cipher import (
    SecretCipher,
    derive_key,
    PBKDF2_ITERATIONS,
)

__all__ = [
    'SecretCipher',
    'derive_key',
    'PBKDF2_ITERATIONS',
]
