"""
Backup Code Module

One-time recovery codes that stand in for a TOTP code when the
authenticator device is unavailable.

Features:
- 8 codes per enrollment, 8 characters each, formatted XXXX-XXXX
- Codes drawn with the `secrets` CSPRNG
- Independently salted Argon2id hash per code
- Hashing and matching run on a worker pool

Security considerations:
- Raw codes are shown once and never stored or logged
- consume() checks every stored hash, not just up to the first match
- Removing the consumed hash is the caller's job and must be atomic
"""

import logging
import re
import secrets
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from .passwords import build_argon2_hasher


logger = logging.getLogger(__name__)


BACKUP_CODE_COUNT = 8
BACKUP_CODE_LENGTH = 8
BACKUP_CODE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
BACKUP_CODE_SEPARATOR = '-'
BACKUP_CODE_GROUP = 4

NOT_FOUND = -1

_WHITESPACE = re.compile(r'\s+')


def generate_backup_code() -> str:
    """Generate a single XXXX-XXXX code."""
    raw = ''.join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
    return raw[:BACKUP_CODE_GROUP] + BACKUP_CODE_SEPARATOR + raw[BACKUP_CODE_GROUP:]


def normalize_backup_code(code: str) -> str:
    """Strip whitespace and uppercase a user-entered code."""
    return _WHITESPACE.sub('', code or '').upper()


class BackupCodeVault:
    """
    Generate, hash and match backup codes.

    The vault owns a thread pool so the slow hashes for a batch run
    in parallel and off the calling thread's critical path.

    Example:
        >>> vault = BackupCodeVault()
        >>> codes = vault.generate()
        >>> hashes = vault.hash_all(codes)
        >>> vault.consume(hashes, codes[3].lower())
        3
    """

    def __init__(self, hasher: Optional[PasswordHasher] = None,
                 max_workers: int = 4):
        """
        Initialize the vault.

        Args:
            hasher: argon2 PasswordHasher (ARGON2_CONFIG defaults if None)
            max_workers: Size of the hashing thread pool
        """
        self._hasher = hasher or build_argon2_hasher()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    def _pool(self) -> ThreadPoolExecutor:
        """Hashing pool, created on first use and again after shutdown()."""
        with self._pool_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix='forgeguard-hash'
                )
            return self._executor

    def generate(self, count: int = BACKUP_CODE_COUNT) -> List[str]:
        """
        Generate a batch of backup codes.

        Args:
            count: Number of codes (8 per enrollment)

        Returns:
            List of XXXX-XXXX codes
        """
        return [generate_backup_code() for _ in range(count)]

    normalize = staticmethod(normalize_backup_code)

    def hash_all(self, codes: Sequence[str]) -> List[str]:
        """
        Hash every code with its own salt.

        Args:
            codes: Raw codes as shown to the user

        Returns:
            Argon2id hashes, same order as the input
        """
        normalized = [normalize_backup_code(code) for code in codes]
        return list(self._pool().map(self._hasher.hash, normalized))

    def _matches(self, stored_hash: str, candidate: str) -> bool:
        try:
            return self._hasher.verify(stored_hash, candidate)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError):
            logger.warning("Skipping malformed backup code hash")
            return False

    def consume(self, stored_hashes: Sequence[str], candidate: str) -> int:
        """
        Find the stored hash matching a candidate code.

        Every stored hash is verified so the cost does not depend on
        where (or whether) the match sits in the list.

        Args:
            stored_hashes: Hashes currently stored for the account
            candidate: Code entered by the user

        Returns:
            Index of the first matching hash, or NOT_FOUND
        """
        normalized = normalize_backup_code(candidate)
        if not normalized or not stored_hashes:
            return NOT_FOUND

        results = list(self._pool().map(
            lambda stored: self._matches(stored, normalized),
            stored_hashes
        ))

        for index, matched in enumerate(results):
            if matched:
                return index
        return NOT_FOUND

    def shutdown(self) -> None:
        """Stop the hashing pool. The next hash or consume starts a new one."""
        with self._pool_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
