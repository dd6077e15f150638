"""
ForgeGuard - authentication and account-security core for The Forge CRM.

Modules:
- crypto: AES-256-GCM encryption of stored TOTP secrets
- auth: passwords, TOTP, backup codes, rate limiting, login decisions
- integration: hash-chained audit trail
- storage: SQLAlchemy persistence for accounts and audit entries
"""

__version__ = "1.0.0"

from .auth.authenticator import (
    CredentialAuthenticator,
    LoginRequest,
    LoginDecision,
    RequestContext,
    EnrollmentMaterial,
    SecondFactorResult,
)
from .config import Settings, get_settings, configure_logging
from .errors import (
    ForgeGuardError,
    ValidationError,
    SecretIntegrityError,
    StorageError,
    AccountNotFoundError,
)

__all__ = [
    'CredentialAuthenticator',
    'LoginRequest',
    'LoginDecision',
    'RequestContext',
    'EnrollmentMaterial',
    'SecondFactorResult',
    'Settings',
    'get_settings',
    'configure_logging',
    'ForgeGuardError',
    'ValidationError',
    'SecretIntegrityError',
    'StorageError',
    'AccountNotFoundError',
]
