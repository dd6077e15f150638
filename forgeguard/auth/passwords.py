"""
Account Password Module

Argon2id hashing and the strength policy for CRM account passwords.

Features:
- Argon2id hashes; argon2-cffi embeds salt and cost in the encoded string
- Policy check with per-rule messages and a 0-100 score
- Dummy verification so unknown accounts cost the same as known ones

Security considerations:
- Plaintext passwords are never stored or logged
- Any malformed stored hash verifies as False
"""

import re
from typing import Dict, List, Tuple

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError


# Argon2id cost. Tests lower these through build_argon2_hasher overrides.
ARGON2_CONFIG = {
    'time_cost': 3,
    'memory_cost': 64 * 1024,   # KiB
    'parallelism': 4,
    'hash_len': 32,
    'salt_len': 16,
    'type': Type.ID,
}


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 72
SPECIAL_CHARACTERS = r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]"""

# (pattern, message) pairs; each must match somewhere in the password
_CHARACTER_RULES: List[Tuple[str, str]] = [
    (r'[A-Z]', "Password must contain at least one uppercase letter"),
    (r'[a-z]', "Password must contain at least one lowercase letter"),
    (r'[0-9]', "Password must contain at least one number"),
    (SPECIAL_CHARACTERS, "Password must contain at least one special character (!@#$%^&* etc.)"),
]

PASSWORD_REQUIREMENTS = [
    f'{PASSWORD_MIN_LENGTH} to {PASSWORD_MAX_LENGTH} characters',
    'An uppercase letter (A-Z)',
    'A lowercase letter (a-z)',
    'A number (0-9)',
    'A special character (!@#$%^&* etc.)',
]

_WEAK_PATTERNS = [
    re.compile(r'(.)\1{2,}'),                                # aaa, 111
    re.compile(r'012|123|234|345|456|567|678|789'),
    re.compile(r'abc|bcd|cde|def|efg|qwe|asd', re.IGNORECASE),
    re.compile(r'password|forge|admin', re.IGNORECASE),
]


def build_argon2_hasher(**overrides) -> PasswordHasher:
    """Argon2id hasher from ARGON2_CONFIG, with any entry overridden."""
    params = dict(ARGON2_CONFIG, **overrides)
    return PasswordHasher(**params)


class AccountPasswordHasher:
    """
    Hashes and checks account passwords.

    Example:
        >>> hasher = AccountPasswordHasher()
        >>> stored = hasher.hash_password("Quarterly#Leads9")
        >>> hasher.verify_password("Quarterly#Leads9", stored)
        True
    """

    def __init__(self, **kwargs):
        """
        Args:
            **kwargs: Argon2 cost overrides (time_cost, memory_cost, parallelism)
        """
        self._hasher = build_argon2_hasher(**kwargs)
        # Verified against when an account does not exist
        self._dummy_hash = self._hasher.hash("forgeguard-dummy-password")

    @property
    def hasher(self) -> PasswordHasher:
        """Underlying argon2 hasher, shared with the backup-code vault."""
        return self._hasher

    def hash_password(self, password: str) -> str:
        """
        Check the policy, then hash.

        Raises:
            ValueError: If the password fails the policy
        """
        result = validate_password_strength(password)
        if not result['valid']:
            raise ValueError("Password does not meet requirements: " + "; ".join(result['errors']))
        return self._hasher.hash(password)

    def verify_password(self, password: str, hash_str: str) -> bool:
        """
        Compare a password with a stored hash.

        Returns:
            True on match; False on mismatch, empty input or a malformed hash
        """
        if not password or not hash_str:
            return False
        try:
            return self._hasher.verify(hash_str, password)
        except (VerificationError, InvalidHashError):
            # VerifyMismatchError is a VerificationError
            return False

    def verify_dummy(self, password: str) -> bool:
        """Spend one verification on a throwaway hash; always False."""
        self.verify_password(password or "", self._dummy_hash)
        return False

    def needs_rehash(self, hash_str: str) -> bool:
        """True if the hash was made with different cost parameters."""
        return self._hasher.check_needs_rehash(hash_str)


def validate_password_strength(password: str) -> Dict:
    """
    Check a password against the account policy.

    Args:
        password: Candidate password

    Returns:
        {'valid': bool, 'errors': [messages], 'score': 0-100}
    """
    password = password or ""
    errors = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    elif len(password) > PASSWORD_MAX_LENGTH:
        errors.append(f"Password must be at most {PASSWORD_MAX_LENGTH} characters long")

    errors.extend(message for pattern, message in _CHARACTER_RULES if not re.search(pattern, password))

    return {
        'valid': not errors,
        'errors': errors,
        'score': calculate_password_score(password),
    }


def calculate_password_score(password: str) -> int:
    """
    Rough strength score for UI feedback, 0 (weak) to 100 (strong).

    Length earns up to 50, each satisfied character rule 10, and each
    weak pattern found costs 10.
    """
    length_points = min(len(password) * 2, 30)
    if len(password) >= 12:
        length_points += 10
    if len(password) >= 16:
        length_points += 10

    variety_points = 10 * sum(1 for pattern, _ in _CHARACTER_RULES if re.search(pattern, password))
    penalty = 10 * sum(1 for pattern in _WEAK_PATTERNS if pattern.search(password))

    return max(0, min(100, length_points + variety_points - penalty))
