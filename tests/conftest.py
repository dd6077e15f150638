"""
Shared fixtures.

Hashing costs and KDF iterations are lowered so the suite runs quickly;
the algorithms are the production ones.
"""

import pytest

from forgeguard.auth.authenticator import (
    CredentialAuthenticator,
    RequestContext,
)
from forgeguard.auth.backup_codes import BackupCodeVault
from forgeguard.auth.passwords import AccountPasswordHasher
from forgeguard.auth.rate_limit import RateLimiter
from forgeguard.auth.totp import TOTPEngine
from forgeguard.crypto.secret_cipher import SecretCipher
from forgeguard.integration.audit_log import AuditLog
from forgeguard.storage.db import init_db, make_engine, session_factory
from forgeguard.storage.repositories import AccountRepository, AuditRepository


FAST_ARGON2 = dict(time_cost=1, memory_cost=1024, parallelism=1)
TEST_MASTER_KEY = "test-master-key-not-for-production"
TEST_KDF_ITERATIONS = 1000

USER_EMAIL = "agent@forge.test"
USER_PASSWORD = "Corr3ct!Horse"
CLIENT = RequestContext(ip_address="203.0.113.7", user_agent="pytest-agent/1.0")


class FakeClock:
    """Controllable epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_010.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def build_sessions(url: str = "sqlite://"):
    engine = make_engine(url)
    init_db(engine)
    return engine, session_factory(engine)


@pytest.fixture
def sessions():
    engine, factory = build_sessions()
    yield factory
    engine.dispose()


@pytest.fixture
def accounts(sessions):
    return AccountRepository(sessions)


@pytest.fixture
def audit_repo(sessions):
    return AuditRepository(sessions)


@pytest.fixture
def audit_log(audit_repo, clock):
    return AuditLog(audit_repo, clock=clock)


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def cipher():
    return SecretCipher(TEST_MASTER_KEY, iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def totp_engine():
    return TOTPEngine()


@pytest.fixture
def password_hasher():
    return AccountPasswordHasher(**FAST_ARGON2)


@pytest.fixture
def vault(password_hasher):
    vault = BackupCodeVault(hasher=password_hasher.hasher, max_workers=2)
    yield vault
    vault.shutdown()


def build_authenticator(sessions, clock, cipher, totp_engine, vault, password_hasher):
    return CredentialAuthenticator(
        accounts=AccountRepository(sessions),
        audit_log=AuditLog(AuditRepository(sessions), clock=clock),
        rate_limiter=RateLimiter(clock=clock),
        cipher=cipher,
        totp_engine=totp_engine,
        backup_vault=vault,
        password_hasher=password_hasher,
        clock=clock,
    )


@pytest.fixture
def authenticator(sessions, clock, cipher, totp_engine, vault, password_hasher):
    return build_authenticator(sessions, clock, cipher, totp_engine, vault, password_hasher)


@pytest.fixture
def user(authenticator):
    """Registered account without 2FA."""
    return authenticator.register_account(USER_EMAIL, USER_PASSWORD, name="Test Agent")


@pytest.fixture
def enrolled(authenticator, user, totp_engine, clock):
    """Registered account with 2FA confirmed. Returns (account, material)."""
    material = authenticator.setup_second_factor(user.id, CLIENT).material
    code = totp_engine.generate(material.secret, clock())
    assert authenticator.confirm_second_factor(user.id, material, code, CLIENT)
    return authenticator.accounts.get_by_id(user.id), material
