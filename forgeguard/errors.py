"""
Exception types raised by the authentication core.

Policy denials and authentication failures are NOT exceptions; they are
returned as decision objects. Exceptions are reserved for bad input,
tampered or corrupted data, and storage faults.
"""


class ForgeGuardError(Exception):
    """Base class for all ForgeGuard errors."""
    pass


class ValidationError(ForgeGuardError):
    """Raised when caller-supplied input is missing or malformed."""
    pass


class SecretIntegrityError(ForgeGuardError):
    """Raised when an encrypted secret cannot be authenticated or decoded."""
    pass


class StorageError(ForgeGuardError):
    """Raised when the backing store is unavailable or a write fails."""
    pass


class AccountNotFoundError(ForgeGuardError):
    """Raised when an operation targets an account id that does not exist."""
    pass
