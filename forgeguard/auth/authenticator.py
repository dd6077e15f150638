"""
Credential Authenticator

Composition root of the authentication core. Combines the password
check, the TOTP / backup-code second factor, rate limiting and audit
logging into single decisions, and owns the 2FA enrollment and disable
flows.

Security considerations:
- The rate-limit gate runs before any password work
- Unknown account, wrong password, wrong TOTP and wrong backup code
  produce byte-identical denials
- "Second factor required" is only reachable after the password verified
- A stored secret that fails decryption fails closed
- Backup codes are consumed with compare-and-set, so each works once
- Secrets, passwords and raw codes never reach logs or audit details

All public methods are thread-safe. Hosts with an async request loop
should dispatch them to worker threads, since password and backup-code
hashing is deliberately slow.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from sqlalchemy.engine import Engine

from ..config import Settings, get_settings
from ..crypto.secret_cipher import SecretCipher
from ..errors import AccountNotFoundError, SecretIntegrityError, ValidationError
from ..integration.audit_log import AuditLog
from ..integration.events import (
    SYSTEM_ACTOR,
    Actor,
    Anomaly,
    AuditAction,
    AuditEntry,
    AuditFilter,
    ResourceType,
    Severity,
)
from ..storage.db import create_engine_from_settings, init_db, session_factory
from ..storage.repositories import AccountRecord, AccountRepository, AuditRepository
from .backup_codes import BACKUP_CODE_COUNT, NOT_FOUND, BackupCodeVault, normalize_backup_code
from .passwords import AccountPasswordHasher, validate_password_strength
from .rate_limit import DEFAULT_SWEEP_INTERVAL, RateLimitPolicy, RateLimitPresets, RateLimiter, RateLimitVerdict
from .totp import TOTPEngine


logger = logging.getLogger(__name__)


# Decision reasons
INVALID_CREDENTIALS = "invalid_credentials"
TOO_MANY_ATTEMPTS = "too_many_attempts"
SECOND_FACTOR_REQUIRED = "second_factor_required"
SECOND_FACTOR_UNAVAILABLE = "second_factor_unavailable"
INVALID_CODE = "invalid_code"

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
SECOND_FACTOR_REQUIRED_MESSAGE = "Two-factor authentication code required"
SECOND_FACTOR_UNAVAILABLE_MESSAGE = (
    "Two-factor authentication is unavailable for this account. Please contact support."
)

# Compare-and-set attempts when two logins race on the backup-code list
MAX_BACKUP_CODE_CAS_ATTEMPTS = 3

_BACKUP_CODE_SHAPE = re.compile(r'^[A-Z0-9]{4}-?[A-Z0-9]{4}$')


@dataclass(frozen=True)
class RequestContext:
    """Client details passed through to the audit trail."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class LoginRequest:
    email: str
    password: str
    totp_code: Optional[str] = None
    backup_code: Optional[str] = None

    def __repr__(self) -> str:
        return f"LoginRequest(email={self.email!r})"


@dataclass(frozen=True)
class LoginDecision:
    """
    Result of a login attempt.

    Session issuance is the caller's job once `allow` is True.
    """
    allow: bool
    reason: Optional[str] = None
    message: str = ""
    retry_after: int = 0
    user_id: Optional[int] = None
    backup_codes_remaining: Optional[int] = None


@dataclass(frozen=True)
class EnrollmentMaterial:
    """
    What setup hands the client, and what the client sends back to confirm.

    Only `secret` and `backup_codes` are needed for confirmation.
    """
    secret: str
    backup_codes: List[str]
    provisioning_uri: Optional[str] = None
    qr_code: Optional[str] = None

    def __repr__(self) -> str:
        return "EnrollmentMaterial(<redacted>)"


@dataclass(frozen=True)
class SecondFactorResult:
    """Outcome of an enrollment, confirmation, disable or password change."""
    success: bool
    reason: Optional[str] = None
    message: str = ""
    retry_after: int = 0
    material: Optional[EnrollmentMaterial] = field(default=None, repr=False)

    def __bool__(self) -> bool:
        return self.success


class CredentialAuthenticator:
    """
    Single entry point for login decisions and 2FA management.

    Example:
        >>> auth = CredentialAuthenticator.from_settings()
        >>> decision = auth.authenticate(LoginRequest("a@forge.test", "Secr3t!pass"),
        ...                              RequestContext(ip_address="10.0.0.7"))
        >>> decision.allow
        True
    """

    def __init__(self, accounts: AccountRepository,
                 audit_log: AuditLog,
                 rate_limiter: RateLimiter,
                 cipher: SecretCipher,
                 totp_engine: TOTPEngine,
                 backup_vault: BackupCodeVault,
                 password_hasher: AccountPasswordHasher,
                 clock: Callable[[], float] = time.time,
                 sweep_interval: float = DEFAULT_SWEEP_INTERVAL):
        self._accounts = accounts
        self._audit = audit_log
        self._limiter = rate_limiter
        self._cipher = cipher
        self._totp = totp_engine
        self._vault = backup_vault
        self._passwords = password_hasher
        self._clock = clock
        self._sweep_interval = sweep_interval

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None,
                      engine: Optional[Engine] = None,
                      clock: Callable[[], float] = time.time) -> 'CredentialAuthenticator':
        """
        Build the full component graph from configuration.

        Args:
            settings: Settings (loaded from the environment if None)
            engine: SQLAlchemy engine (built from settings if None)
            clock: Time source shared by the limiter and audit log
        """
        settings = settings or get_settings()
        engine = engine or create_engine_from_settings(settings)
        init_db(engine)
        sessions = session_factory(engine)

        argon2_costs = dict(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )
        password_hasher = AccountPasswordHasher(**argon2_costs)

        return cls(
            accounts=AccountRepository(sessions),
            audit_log=AuditLog(AuditRepository(sessions), clock=clock),
            rate_limiter=RateLimiter(clock=clock),
            cipher=SecretCipher(
                settings.totp_encryption_key.get_secret_value(),
                iterations=settings.kdf_iterations,
            ),
            totp_engine=TOTPEngine(issuer=settings.totp_issuer),
            backup_vault=BackupCodeVault(
                hasher=password_hasher.hasher,
                max_workers=settings.hash_workers,
            ),
            password_hasher=password_hasher,
            clock=clock,
            sweep_interval=settings.rate_limit_sweep_interval,
        )

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self, sweep_interval: Optional[float] = None) -> None:
        """Start background housekeeping (rate-limit sweeper)."""
        self._limiter.start(sweep_interval or self._sweep_interval)

    def stop(self) -> None:
        """
        Stop background housekeeping and the hashing pool.

        Not terminal: start() restarts the sweeper and the vault builds a
        fresh pool on its next hash.
        """
        self._limiter.stop()
        self._vault.shutdown()

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def accounts(self) -> AccountRepository:
        return self._accounts

    # ========================================================================
    # Helpers
    # ========================================================================

    def _audit_event(self, action: AuditAction, ctx: RequestContext,
                     actor: Actor = SYSTEM_ACTOR,
                     severity: Severity = Severity.INFO,
                     resource_type: ResourceType = ResourceType.TWO_FACTOR,
                     details: Optional[dict] = None) -> None:
        self._audit.record(
            action,
            resource_type,
            actor=actor,
            severity=severity,
            details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )

    def _retry_after(self, verdict: RateLimitVerdict) -> int:
        return verdict.retry_after(self._clock())

    @staticmethod
    def _minutes(seconds: int) -> int:
        return max(1, -(-seconds // 60))

    def _require_account(self, user_id: int) -> AccountRecord:
        account = self._accounts.get_by_id(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    def _deny(self, email: str, account: Optional[AccountRecord], stage: str,
              ctx: RequestContext) -> LoginDecision:
        actor = account.actor if account else Actor(user_id=None, email=email)
        self._audit_event(
            AuditAction.LOGIN_FAILED,
            ctx,
            actor=actor,
            severity=Severity.WARNING,
            resource_type=ResourceType.SYSTEM,
            details={'email': email, 'stage': stage},
        )
        logger.info("Login denied (%s)", stage)
        return LoginDecision(
            allow=False,
            reason=INVALID_CREDENTIALS,
            message=INVALID_CREDENTIALS_MESSAGE,
        )

    def _login_keys(self, email: str, ctx: RequestContext) -> List[str]:
        keys = [f"login:email:{email}"]
        if ctx.ip_address:
            keys.insert(0, f"login:ip:{ctx.ip_address}")
        return keys

    # ========================================================================
    # Login
    # ========================================================================

    def authenticate(self, request: LoginRequest,
                     ctx: RequestContext = RequestContext()) -> LoginDecision:
        """
        Decide a login attempt.

        Args:
            request: Submitted credentials and optional second factor
            ctx: Client IP and user agent

        Returns:
            LoginDecision

        Raises:
            ValidationError: If email or password is missing
        """
        email = (request.email or '').strip().lower()
        if not email or not request.password:
            raise ValidationError("Email and password are required")

        keys = self._login_keys(email, ctx)
        verdict = self._limiter.check_all(keys, RateLimitPresets.LOGIN)
        if not verdict.allowed:
            retry_after = self._retry_after(verdict)
            self._audit_event(
                AuditAction.LOGIN_RATE_LIMITED,
                ctx,
                actor=Actor(user_id=None, email=email),
                severity=Severity.WARNING,
                resource_type=ResourceType.SYSTEM,
                details={'email': email, 'retry_after': retry_after},
            )
            return LoginDecision(
                allow=False,
                reason=TOO_MANY_ATTEMPTS,
                message=(
                    "Too many failed login attempts. "
                    f"Please try again in {self._minutes(retry_after)} minutes."
                ),
                retry_after=retry_after,
            )

        account = self._accounts.get_by_email(email)
        if account is None or not account.password_hash:
            self._passwords.verify_dummy(request.password)
            return self._deny(email, account, 'unknown_account', ctx)

        if not self._passwords.verify_password(request.password, account.password_hash):
            return self._deny(email, account, 'password', ctx)

        if not account.two_factor_enabled:
            return self._allow(account, keys, ctx, method='password')

        if request.totp_code:
            return self._second_factor_totp(account, request.totp_code, keys, ctx)
        if request.backup_code:
            return self._second_factor_backup(account, request.backup_code, keys, ctx)

        return LoginDecision(
            allow=False,
            reason=SECOND_FACTOR_REQUIRED,
            message=SECOND_FACTOR_REQUIRED_MESSAGE,
        )

    def _allow(self, account: AccountRecord, keys: List[str], ctx: RequestContext,
               method: str, backup_codes_remaining: Optional[int] = None) -> LoginDecision:
        for key in keys:
            self._limiter.reset(key)

        details = {'email': account.email, 'method': method}
        if backup_codes_remaining is not None:
            details['codes_remaining'] = backup_codes_remaining
        self._audit_event(
            AuditAction.LOGIN_SUCCESS,
            ctx,
            actor=account.actor,
            resource_type=ResourceType.SYSTEM,
            details=details,
        )
        logger.info("Login succeeded for user %s via %s", account.id, method)
        return LoginDecision(
            allow=True,
            user_id=account.id,
            backup_codes_remaining=backup_codes_remaining,
        )

    def _unavailable(self, account: AccountRecord, ctx: RequestContext) -> LoginDecision:
        self._audit_event(
            AuditAction.TWO_FACTOR_SECRET_CORRUPT,
            ctx,
            actor=account.actor,
            severity=Severity.CRITICAL,
            details={'message': 'Stored TOTP secret failed integrity check'},
        )
        logger.critical("Stored TOTP secret for user %s failed integrity check", account.id)
        return LoginDecision(
            allow=False,
            reason=SECOND_FACTOR_UNAVAILABLE,
            message=SECOND_FACTOR_UNAVAILABLE_MESSAGE,
        )

    def _second_factor_totp(self, account: AccountRecord, code: str,
                            keys: List[str], ctx: RequestContext) -> LoginDecision:
        if not account.two_factor_secret:
            return self._unavailable(account, ctx)
        try:
            secret = self._cipher.decrypt(account.two_factor_secret)
        except SecretIntegrityError:
            return self._unavailable(account, ctx)

        if not self._totp.validate(secret, code, self._clock()):
            return self._deny(account.email, account, 'totp', ctx)
        return self._allow(account, keys, ctx, method='totp')

    def _second_factor_backup(self, account: AccountRecord, code: str,
                              keys: List[str], ctx: RequestContext) -> LoginDecision:
        current = account
        for _ in range(MAX_BACKUP_CODE_CAS_ATTEMPTS):
            stored = list(current.backup_codes)
            index = self._vault.consume(stored, code)
            if index == NOT_FOUND:
                break

            remaining = stored[:index] + stored[index + 1:]
            if self._accounts.replace_backup_codes(current.id, stored, remaining):
                self._audit_event(
                    AuditAction.TWO_FACTOR_BACKUP_CODE_USED,
                    ctx,
                    actor=current.actor,
                    severity=Severity.WARNING,
                    details={'codes_remaining': len(remaining)},
                )
                return self._allow(
                    current, keys, ctx,
                    method='backup_code',
                    backup_codes_remaining=len(remaining),
                )

            # Another request changed the list first; re-read and retry
            logger.info("Backup code list changed concurrently for user %s", current.id)
            current = self._accounts.get_by_id(current.id)
            if current is None or not current.two_factor_enabled:
                break

        return self._deny(account.email, account, 'backup_code', ctx)

    def requires_second_factor(self, email: str, password: str,
                               ctx: RequestContext = RequestContext()) -> bool:
        """
        Pre-login check: should the login form ask for a code?

        True only when the password is correct and 2FA is enabled, so the
        answer never reveals whether an account exists.
        """
        email = (email or '').strip().lower()
        if not email or not password:
            return False

        keys = [f"check-2fa:email:{email}"]
        if ctx.ip_address:
            keys.append(f"check-2fa:ip:{ctx.ip_address}")
        if not self._limiter.check_all(keys, RateLimitPresets.LOGIN).allowed:
            return False

        account = self._accounts.get_by_email(email)
        if account is None or not account.password_hash:
            self._passwords.verify_dummy(password)
            return False
        if not self._passwords.verify_password(password, account.password_hash):
            return False
        return account.two_factor_enabled

    # ========================================================================
    # 2FA enrollment
    # ========================================================================

    def setup_second_factor(self, user_id: int,
                            ctx: RequestContext = RequestContext()) -> SecondFactorResult:
        """
        Start 2FA enrollment. Nothing is persisted.

        Args:
            user_id: Authenticated user
            ctx: Client IP and user agent

        Returns:
            SecondFactorResult carrying EnrollmentMaterial on success

        Raises:
            AccountNotFoundError: If the user does not exist
            ValidationError: If 2FA is already enabled
        """
        account = self._require_account(user_id)

        verdict = self._limiter.check_policy(f"2fa-setup:{user_id}", RateLimitPresets.TWO_FACTOR_SETUP)
        if not verdict.allowed:
            retry_after = self._retry_after(verdict)
            minutes = self._minutes(retry_after)
            self._audit_event(
                AuditAction.TWO_FACTOR_SETUP_RATE_LIMIT,
                ctx,
                actor=account.actor,
                severity=Severity.WARNING,
                details={'message': f'Rate limit exceeded - blocked for {minutes} minutes'},
            )
            return SecondFactorResult(
                success=False,
                reason=TOO_MANY_ATTEMPTS,
                message=f"Too many 2FA setup attempts. Please try again in {minutes} minutes.",
                retry_after=retry_after,
            )

        if account.two_factor_enabled:
            raise ValidationError("Two-factor authentication is already enabled")

        secret = self._totp.generate_secret()
        uri = self._totp.provisioning_uri(secret, account.email)
        material = EnrollmentMaterial(
            secret=secret,
            backup_codes=self._vault.generate(),
            provisioning_uri=uri,
            qr_code=self._totp.qr_code_data_url(uri),
        )

        self._audit_event(
            AuditAction.TWO_FACTOR_SETUP_INITIATED,
            ctx,
            actor=account.actor,
            details={'message': '2FA setup process started'},
        )
        return SecondFactorResult(success=True, material=material)

    def confirm_second_factor(self, user_id: int, material: EnrollmentMaterial,
                              code: str,
                              ctx: RequestContext = RequestContext()) -> SecondFactorResult:
        """
        Finish enrollment once the user proves their app produces codes.

        Only on a valid code is the secret encrypted, the backup codes
        hashed, and both persisted with the enabled flag.

        Args:
            user_id: Authenticated user
            material: Secret and backup codes returned by setup
            code: Current code from the authenticator app
            ctx: Client IP and user agent

        Raises:
            AccountNotFoundError: If the user does not exist
            ValidationError: If 2FA is already enabled, or fields are
                missing or malformed
        """
        account = self._require_account(user_id)

        verdict = self._limiter.check_policy(f"2fa-verify:{user_id}", RateLimitPresets.TWO_FACTOR_VERIFY)
        if not verdict.allowed:
            retry_after = self._retry_after(verdict)
            minutes = self._minutes(retry_after)
            self._audit_event(
                AuditAction.TWO_FACTOR_VERIFY_RATE_LIMIT,
                ctx,
                actor=account.actor,
                severity=Severity.WARNING,
                details={'message': f'Rate limit exceeded - blocked for {minutes} minutes'},
            )
            return SecondFactorResult(
                success=False,
                reason=TOO_MANY_ATTEMPTS,
                message=f"Too many verification attempts. Please try again in {minutes} minutes.",
                retry_after=retry_after,
            )

        # Re-enrollment goes through disable_second_factor (password) first
        if account.two_factor_enabled:
            raise ValidationError("Two-factor authentication is already enabled")

        if material is None or not material.secret or not code or not material.backup_codes:
            raise ValidationError("Missing required fields")
        if len(material.backup_codes) != BACKUP_CODE_COUNT or not all(
            _BACKUP_CODE_SHAPE.match(normalize_backup_code(c) if isinstance(c, str) else '')
            for c in material.backup_codes
        ):
            raise ValidationError(f"Expected {BACKUP_CODE_COUNT} backup codes in XXXX-XXXX format")

        if not self._totp.validate(material.secret, code, self._clock()):
            self._audit_event(
                AuditAction.TWO_FACTOR_VERIFY_FAILED,
                ctx,
                actor=account.actor,
                severity=Severity.WARNING,
                details={'message': 'Invalid TOTP token provided'},
            )
            return SecondFactorResult(
                success=False,
                reason=INVALID_CODE,
                message="Invalid verification code",
            )

        encrypted = self._cipher.encrypt(material.secret)
        hashes = self._vault.hash_all(material.backup_codes)
        self._accounts.enable_two_factor(user_id, encrypted, hashes)
        self._limiter.reset(f"2fa-verify:{user_id}")

        self._audit_event(
            AuditAction.TWO_FACTOR_ENABLED,
            ctx,
            actor=account.actor,
            details={'message': 'Two-factor authentication enabled successfully'},
        )
        logger.info("2FA enabled for user %s", user_id)
        return SecondFactorResult(
            success=True,
            message="Two-factor authentication enabled successfully",
        )

    def disable_second_factor(self, user_id: int, password: str,
                              ctx: RequestContext = RequestContext()) -> SecondFactorResult:
        """
        Turn 2FA off after re-checking the current password.

        Both outcomes are audited at warning severity.

        Raises:
            AccountNotFoundError: If the user does not exist
            ValidationError: If the password is missing or 2FA is not enabled
        """
        if not password:
            raise ValidationError("Password is required to disable 2FA")

        account = self._require_account(user_id)
        if not account.two_factor_enabled:
            raise ValidationError("Two-factor authentication is not enabled")

        verdict = self._limiter.check_policy(f"2fa-disable:{user_id}", RateLimitPresets.TWO_FACTOR_VERIFY)
        if not verdict.allowed:
            retry_after = self._retry_after(verdict)
            return SecondFactorResult(
                success=False,
                reason=TOO_MANY_ATTEMPTS,
                message=f"Too many attempts. Please try again in {self._minutes(retry_after)} minutes.",
                retry_after=retry_after,
            )

        if not self._passwords.verify_password(password, account.password_hash):
            self._audit_event(
                AuditAction.TWO_FACTOR_DISABLE_FAILED,
                ctx,
                actor=account.actor,
                severity=Severity.WARNING,
                details={'message': 'Invalid password provided when attempting to disable 2FA'},
            )
            return SecondFactorResult(success=False, reason=INVALID_CREDENTIALS, message="Invalid password")

        self._accounts.disable_two_factor(user_id)
        self._limiter.reset(f"2fa-disable:{user_id}")

        self._audit_event(
            AuditAction.TWO_FACTOR_DISABLED,
            ctx,
            actor=account.actor,
            severity=Severity.WARNING,
            details={'message': 'Two-factor authentication disabled'},
        )
        logger.info("2FA disabled for user %s", user_id)
        return SecondFactorResult(
            success=True,
            message="Two-factor authentication disabled successfully",
        )

    # ========================================================================
    # Accounts and passwords
    # ========================================================================

    def register_account(self, email: str, password: str,
                         name: Optional[str] = None, role: str = "agent",
                         actor: Actor = SYSTEM_ACTOR,
                         ctx: RequestContext = RequestContext()) -> AccountRecord:
        """
        Create an account with a policy-checked password.

        Raises:
            ValidationError: If the email is taken or the password is weak
        """
        if not email or not password:
            raise ValidationError("Email and password are required")
        try:
            password_hash = self._passwords.hash_password(password)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        account = self._accounts.create(email, password_hash, name=name, role=role)
        self._audit.record(
            AuditAction.USER_CREATE,
            ResourceType.USER,
            actor=actor,
            resource_id=account.id,
            details={'email': account.email, 'role': role},
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        return account

    def change_password(self, user_id: int, current_password: str, new_password: str,
                        ctx: RequestContext = RequestContext()) -> SecondFactorResult:
        """
        Replace a password after verifying the current one.

        Raises:
            AccountNotFoundError: If the user does not exist
            ValidationError: If a field is missing or the new password is weak
        """
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")

        account = self._require_account(user_id)

        verdict = self._limiter.check_policy(f"password-reset:{user_id}", RateLimitPresets.PASSWORD_RESET)
        if not verdict.allowed:
            retry_after = self._retry_after(verdict)
            return SecondFactorResult(
                success=False,
                reason=TOO_MANY_ATTEMPTS,
                message=f"Too many attempts. Please try again in {self._minutes(retry_after)} minutes.",
                retry_after=retry_after,
            )

        if not self._passwords.verify_password(current_password, account.password_hash):
            self._audit.record(
                AuditAction.PASSWORD_RESET_FAILED,
                ResourceType.USER,
                actor=account.actor,
                severity=Severity.WARNING,
                resource_id=account.id,
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent,
            )
            return SecondFactorResult(success=False, reason=INVALID_CREDENTIALS, message="Invalid password")

        validation = validate_password_strength(new_password)
        if not validation['valid']:
            raise ValidationError('; '.join(validation['errors']))

        self._accounts.update_password_hash(user_id, self._passwords.hash_password(new_password))
        self._audit.record(
            AuditAction.PASSWORD_RESET,
            ResourceType.USER,
            actor=account.actor,
            resource_id=account.id,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        return SecondFactorResult(success=True, message="Password changed successfully")

    # ========================================================================
    # Pass-through surface for the CRUD layer
    # ========================================================================

    def check_rate_limit(self, key: str,
                         preset: Union[str, RateLimitPolicy]) -> RateLimitVerdict:
        """Count an attempt for an arbitrary key under a preset policy."""
        policy = RateLimitPresets.get(preset) if isinstance(preset, str) else preset
        return self._limiter.check_policy(key, policy)

    def reset_rate_limit(self, key: str) -> None:
        self._limiter.reset(key)

    def audit(self, entry: AuditEntry) -> None:
        """Fire-and-forget audit append."""
        self._audit.append(entry)

    def query_audit_log(self, audit_filter: Optional[AuditFilter] = None) -> List[AuditEntry]:
        return self._audit.query(audit_filter)

    def count_audit_log(self, audit_filter: Optional[AuditFilter] = None) -> int:
        return self._audit.count(audit_filter)

    def suspicious_activity(self, hours: float = 24) -> List[Anomaly]:
        return self._audit.suspicious_activity(hours)

    def verify_audit_integrity(self) -> bool:
        return self._audit.verify_integrity()
