# Authentication Module
"""
Authentication implementations including:
- Password hashing and policy (Argon2id) - passwords.py
- TOTP/HOTP (2FA, RFC 6238) - totp.py
- Single-use backup codes - backup_codes.py
- Rate limiting with lockout - rate_limit.py
- Login decisions and 2FA enrollment - authenticator.py

Security features:
- Argon2id for password and backup-code hashing
- Constant-time comparison for OTP verification
- Cryptographically secure random secrets and codes
- Rate limiting against brute-force attacks
"""

from .passwords import (
    AccountPasswordHasher,
    build_argon2_hasher,
    validate_password_strength,
    calculate_password_score,
    PASSWORD_REQUIREMENTS,
)

from .totp import (
    TOTPEngine,
    totp,
    verify_totp,
    hotp,
    generate_secret,
    secret_to_base32,
    base32_to_secret,
)

from .backup_codes import (
    BackupCodeVault,
    generate_backup_code,
    normalize_backup_code,
    NOT_FOUND,
)

from .rate_limit import (
    RateLimiter,
    RateLimitPolicy,
    RateLimitPresets,
    RateLimitVerdict,
)

from .authenticator import (
    CredentialAuthenticator,
    LoginRequest,
    LoginDecision,
    RequestContext,
    EnrollmentMaterial,
    SecondFactorResult,
    INVALID_CREDENTIALS,
    TOO_MANY_ATTEMPTS,
    SECOND_FACTOR_REQUIRED,
    SECOND_FACTOR_UNAVAILABLE,
)

__all__ = [
    # Passwords
    'AccountPasswordHasher',
    'build_argon2_hasher',
    'validate_password_strength',
    'calculate_password_score',
    'PASSWORD_REQUIREMENTS',
    # TOTP
    'TOTPEngine',
    'totp',
    'verify_totp',
    'hotp',
    'generate_secret',
    'secret_to_base32',
    'base32_to_secret',
    # Backup codes
    'BackupCodeVault',
    'generate_backup_code',
    'normalize_backup_code',
    'NOT_FOUND',
    # Rate limiting
    'RateLimiter',
    'RateLimitPolicy',
    'RateLimitPresets',
    'RateLimitVerdict',
    # Authenticator
    'CredentialAuthenticator',
    'LoginRequest',
    'LoginDecision',
    'RequestContext',
    'EnrollmentMaterial',
    'SecondFactorResult',
    'INVALID_CREDENTIALS',
    'TOO_MANY_ATTEMPTS',
    'SECOND_FACTOR_REQUIRED',
    'SECOND_FACTOR_UNAVAILABLE',
]
