"""
Unit tests for Authentication module.

Tests:
- TOTP (RFC 4226 / RFC 6238 vectors, drift window, invalid codes)
- Backup codes (generation, hashing, single match)
- Password hashing (Argon2id) and strength policy
- Rate limiting with lockout
"""

import base64
import re
import threading

import pyotp
import pytest
from argon2 import PasswordHasher

from forgeguard.auth.backup_codes import (
    BACKUP_CODE_COUNT,
    NOT_FOUND,
    BackupCodeVault,
    generate_backup_code,
    normalize_backup_code,
)
from forgeguard.auth.passwords import (
    AccountPasswordHasher,
    calculate_password_score,
    validate_password_strength,
)
from forgeguard.auth.rate_limit import (
    RateLimitPolicy,
    RateLimitPresets,
    RateLimiter,
)
from forgeguard.auth.totp import (
    TOTP_TIME_STEP,
    TOTPEngine,
    base32_to_secret,
    generate_secret,
    hotp,
    totp,
    verify_totp,
)


RFC_SECRET = b"12345678901234567890"
ALIGNED = 1_700_000_010  # start of a 30-second step


class TestHOTP:
    """RFC 4226 Appendix D test vectors."""

    @pytest.mark.parametrize("counter,expected", list(enumerate([
        "755224", "287082", "359152", "969429", "338314",
        "254676", "287922", "162583", "399871", "520489",
    ])))
    def test_rfc4226_vectors(self, counter, expected):
        """HOTP matches the published values."""
        assert hotp(RFC_SECRET, counter) == expected


class TestTOTP:
    """Unit tests for TOTP."""

    @pytest.mark.parametrize("timestamp,expected", [
        (59, "94287082"),
        (1111111109, "07081804"),
        (1111111111, "14050471"),
        (1234567890, "89005924"),
        (2000000000, "69279037"),
    ])
    def test_rfc6238_sha1_vectors(self, timestamp, expected):
        """TOTP matches RFC 6238 Appendix B (SHA1, 8 digits)."""
        assert totp(RFC_SECRET, timestamp, digits=8) == expected

    def test_generated_secret_is_base32(self):
        """Secrets are base32 and decode to 20 bytes."""
        secret = generate_secret()
        assert re.fullmatch(r"[A-Z2-7]+", secret)
        assert len(base32_to_secret(secret)) == 20

    def test_secrets_unique(self):
        """Each secret is random."""
        assert len({generate_secret() for _ in range(20)}) == 20

    def test_base32_tolerates_formatting(self):
        """Lowercase, spaced, unpadded secrets decode."""
        secret = generate_secret()
        messy = ' '.join(secret[i:i + 4] for i in range(0, len(secret), 4)).lower()
        assert base32_to_secret(messy) == base32_to_secret(secret)

    def test_current_code_accepted(self):
        """Code for the current step is valid."""
        code = totp(RFC_SECRET, ALIGNED)
        assert verify_totp(RFC_SECRET, code, ALIGNED)

    @pytest.mark.parametrize("offset", [-TOTP_TIME_STEP, TOTP_TIME_STEP])
    def test_adjacent_step_accepted(self, offset):
        """Codes one step early or late are valid."""
        code = totp(RFC_SECRET, ALIGNED + offset)
        assert verify_totp(RFC_SECRET, code, ALIGNED)

    @pytest.mark.parametrize("offset", [-2 * TOTP_TIME_STEP, 2 * TOTP_TIME_STEP])
    def test_two_steps_rejected(self, offset):
        """Codes two steps away are invalid."""
        code = totp(RFC_SECRET, ALIGNED + offset)
        assert not verify_totp(RFC_SECRET, code, ALIGNED)

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", "12ab56", "１２３４５６"])
    def test_malformed_codes_rejected(self, code):
        """Wrong length, letters and non-ASCII digits are invalid."""
        assert not verify_totp(RFC_SECRET, code, ALIGNED)

    def test_whitespace_in_code_ignored(self):
        """'123 456' style entry is accepted."""
        code = totp(RFC_SECRET, ALIGNED)
        assert verify_totp(RFC_SECRET, f" {code[:3]} {code[3:]} ", ALIGNED)


class TestTOTPEngine:
    """Tests for TOTPEngine."""

    def test_matches_pyotp(self):
        """Codes agree with an independent implementation."""
        engine = TOTPEngine()
        secret = engine.generate_secret()
        reference = pyotp.TOTP(secret)
        for ts in (ALIGNED, ALIGNED + 29, ALIGNED + 30, ALIGNED + 3600):
            assert engine.generate(secret, ts) == reference.at(ts)

    def test_validates_pyotp_codes(self):
        """Codes from an authenticator app are accepted."""
        engine = TOTPEngine()
        secret = engine.generate_secret()
        assert engine.validate(secret, pyotp.TOTP(secret).at(ALIGNED), ALIGNED)

    def test_provisioning_uri(self):
        """URI carries issuer, label and parameters."""
        engine = TOTPEngine(issuer="The Forge CRM")
        secret = engine.generate_secret()
        uri = engine.provisioning_uri(secret, "agent@forge.test")

        assert uri.startswith("otpauth://totp/The%20Forge%20CRM%3Aagent%40forge.test?")
        assert f"secret={secret}" in uri
        assert "issuer=The%20Forge%20CRM" in uri
        assert "algorithm=SHA1" in uri
        assert "digits=6" in uri
        assert "period=30" in uri

    def test_provisioning_uri_parses_in_pyotp(self):
        """Authenticator apps can read the URI."""
        engine = TOTPEngine()
        secret = engine.generate_secret()
        parsed = pyotp.parse_uri(engine.provisioning_uri(secret, "agent@forge.test"))
        assert parsed.secret == secret
        assert parsed.issuer == "The Forge CRM"
        assert parsed.at(ALIGNED) == engine.generate(secret, ALIGNED)

    def test_qr_code_data_url(self):
        """QR code is a PNG data URL."""
        engine = TOTPEngine()
        url = engine.qr_code_data_url(engine.provisioning_uri(engine.generate_secret(), "a@b.c"))
        prefix = "data:image/png;base64,"
        assert url.startswith(prefix)
        assert base64.b64decode(url[len(prefix):]).startswith(b"\x89PNG")

    @pytest.mark.parametrize("secret", ["", "not base32!!", "0189"])
    def test_malformed_secret_is_invalid(self, secret):
        """A bad secret never validates and never raises."""
        assert not TOTPEngine().validate(secret, "123456", ALIGNED)

    def test_none_code_is_invalid(self):
        """Missing code is invalid."""
        engine = TOTPEngine()
        assert not engine.validate(engine.generate_secret(), None, ALIGNED)

    def test_remaining_seconds(self):
        """Seconds until the next step."""
        engine = TOTPEngine()
        assert engine.remaining_seconds(ALIGNED) == 30
        assert engine.remaining_seconds(ALIGNED + 25) == 5


class TestBackupCodes:
    """Tests for backup code generation and matching."""

    def test_code_format(self):
        """Codes are XXXX-XXXX from uppercase letters and digits."""
        for _ in range(50):
            assert re.fullmatch(r"[A-Z0-9]{4}-[A-Z0-9]{4}", generate_backup_code())

    def test_batch_size_and_uniqueness(self, vault):
        """Eight distinct codes per batch."""
        codes = vault.generate()
        assert len(codes) == BACKUP_CODE_COUNT
        assert len(set(codes)) == BACKUP_CODE_COUNT

    def test_normalize(self):
        """Whitespace is stripped and case folded."""
        assert normalize_backup_code(" ab12-cd34\n") == "AB12-CD34"
        assert BackupCodeVault.normalize("ab12 cd34") == "AB12CD34"

    def test_hashes_hide_codes(self, vault):
        """Hashes do not contain the codes and are salted."""
        codes = ["AAAA-BBBB", "AAAA-BBBB"]
        hashes = vault.hash_all(codes)
        assert hashes[0] != hashes[1]
        assert all("AAAA" not in h for h in hashes)

    def test_consume_finds_index(self, vault):
        """Matching code returns its position."""
        codes = vault.generate()
        hashes = vault.hash_all(codes)
        assert vault.consume(hashes, codes[5]) == 5

    def test_consume_case_insensitive(self, vault):
        """User may type the code in lowercase with spaces."""
        codes = vault.generate(3)
        hashes = vault.hash_all(codes)
        assert vault.consume(hashes, f" {codes[1].lower()} ") == 1

    def test_consume_wrong_code(self, vault):
        """Unknown code is not found."""
        hashes = vault.hash_all(vault.generate(3))
        assert vault.consume(hashes, "ZZZZ-ZZZZ") == NOT_FOUND

    def test_consume_empty_inputs(self, vault):
        """Empty candidate or list is not found."""
        assert vault.consume([], "AAAA-BBBB") == NOT_FOUND
        assert vault.consume(vault.hash_all(["AAAA-BBBB"]), "") == NOT_FOUND

    def test_malformed_hash_skipped(self, vault):
        """A corrupt stored hash does not stop the search."""
        hashes = ["not-a-hash"] + vault.hash_all(["AAAA-BBBB"])
        assert vault.consume(hashes, "AAAA-BBBB") == 1

    def test_injected_hasher(self):
        """Vault hashes with the argon2 hasher it is given."""
        vault = BackupCodeVault(hasher=PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1))
        try:
            assert vault.consume(vault.hash_all(["AAAA-BBBB"]), "aaaa-bbbb") == 0
        finally:
            vault.shutdown()

    def test_usable_after_shutdown(self, vault):
        """Shutdown releases the pool; the next call builds a new one."""
        hashes = vault.hash_all(["AAAA-BBBB"])
        vault.shutdown()
        assert vault.consume(hashes, "AAAA-BBBB") == 0
        vault.shutdown()
        vault.shutdown()


class TestPasswordHashing:
    """Unit tests for password hashing."""

    def test_hash_and_verify(self, password_hasher):
        """Correct password should verify."""
        stored = password_hasher.hash_password("MySecurePassword123!")
        assert stored.startswith("$argon2id$")
        assert password_hasher.verify_password("MySecurePassword123!", stored)

    def test_wrong_password(self, password_hasher):
        """Wrong password should fail verification."""
        stored = password_hasher.hash_password("SecureP@ss123!Correct")
        assert not password_hasher.verify_password("SecureP@ss123!Wrong", stored)

    def test_same_password_different_hashes(self, password_hasher):
        """Same password should have different hashes (random salt)."""
        assert password_hasher.hash_password("SecureP@ss123!") != password_hasher.hash_password("SecureP@ss123!")

    def test_weak_password_rejected(self, password_hasher):
        """Weak password cannot be hashed."""
        with pytest.raises(ValueError):
            password_hasher.hash_password("weak")

    @pytest.mark.parametrize("password,stored", [("", "$argon2id$x"), ("pw", ""), ("pw", "garbage")])
    def test_bad_inputs_fail_closed(self, password_hasher, password, stored):
        """Empty or malformed inputs never verify."""
        assert not password_hasher.verify_password(password, stored)

    def test_dummy_verify(self, password_hasher):
        """Dummy verification always fails."""
        assert password_hasher.verify_dummy("forgeguard-dummy-password") is False

    def test_needs_rehash_on_cost_change(self):
        """Hashes made with weaker parameters need rehashing."""
        weak = AccountPasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)
        strong = AccountPasswordHasher(time_cost=2, memory_cost=1024, parallelism=1)
        assert strong.needs_rehash(weak.hash_password("SecureP@ss123!"))


class TestPasswordStrength:
    """Tests for password strength validation."""

    def test_strong_password(self):
        """Strong password passes every rule."""
        result = validate_password_strength("SecureP@ss123!")
        assert result['valid']
        assert result['errors'] == []

    @pytest.mark.parametrize("password", [
        "Sh0rt!",
        "alllowercase1!",
        "ALLUPPERCASE1!",
        "NoDigitsHere!",
        "NoSpecials123",
        "A1!" + "a" * 80,
    ])
    def test_weak_passwords(self, password):
        """Each missing rule is reported."""
        result = validate_password_strength(password)
        assert not result['valid']
        assert result['errors']

    def test_score_increases_with_strength(self):
        """Longer, more varied passwords score higher."""
        assert calculate_password_score("SecureP@ss123!Longer") > calculate_password_score("abc")


class TestRateLimiter:
    """Unit tests for rate limiting."""

    def test_allows_up_to_limit(self, limiter):
        """Attempts up to the limit are allowed."""
        for i in range(5):
            verdict = limiter.check("k", max_attempts=5, window=60, block_duration=120)
            assert verdict.allowed
            assert verdict.remaining == 4 - i

    def test_blocks_after_limit(self, limiter, clock):
        """Attempt past the limit is denied with a lockout."""
        for _ in range(5):
            limiter.check("k", 5, 60, 120)
        verdict = limiter.check("k", 5, 60, 120)
        assert not verdict.allowed
        assert verdict.blocked_until == clock() + 120
        assert verdict.retry_after(clock()) == 120

    def test_blocked_attempts_not_counted(self, limiter, clock):
        """Denied attempts during a lockout do not extend it."""
        for _ in range(6):
            limiter.check("k", 5, 60, 120)
        first = limiter.check("k", 5, 60, 120).blocked_until
        clock.advance(60)
        assert limiter.check("k", 5, 60, 120).blocked_until == first

    def test_lockout_expires(self, limiter, clock):
        """After the lockout a fresh window starts."""
        for _ in range(6):
            limiter.check("k", 5, 60, 120)
        clock.advance(121)
        verdict = limiter.check("k", 5, 60, 120)
        assert verdict.allowed
        assert verdict.remaining == 4

    def test_window_expires(self, limiter, clock):
        """Count resets when the window passes."""
        for _ in range(4):
            limiter.check("k", 5, 60, 120)
        clock.advance(61)
        assert limiter.check("k", 5, 60, 120).remaining == 4

    def test_keys_independent(self, limiter):
        """Limits are per key."""
        for _ in range(6):
            limiter.check("a", 5, 60, 60)
        assert limiter.check("b", 5, 60, 60).allowed

    def test_reset(self, limiter):
        """Reset clears a lockout."""
        for _ in range(6):
            limiter.check("k", 5, 60, 60)
        limiter.reset("k")
        verdict = limiter.check("k", 5, 60, 60)
        assert verdict.allowed
        assert verdict.remaining == 4
        assert verdict.blocked_until is None

    def test_check_all_denies_if_any(self, limiter):
        """Combined check fails when one key is locked."""
        policy = RateLimitPolicy(max_attempts=2, window=60, block_duration=60)
        for _ in range(3):
            limiter.check_policy("ip", policy)
        verdict = limiter.check_all(["ip", "email"], policy)
        assert not verdict.allowed
        assert verdict.blocked_until is not None
        # The other key still counted the attempt
        assert limiter.status("email", 2).remaining == 1

    def test_check_all_requires_keys(self, limiter):
        """At least one key is needed."""
        with pytest.raises(ValueError):
            limiter.check_all([], RateLimitPresets.LOGIN)

    def test_status_does_not_count(self, limiter):
        """Status is read-only."""
        limiter.check("k", 5, 60, 60)
        limiter.status("k", 5)
        assert limiter.status("k", 5).remaining == 4

    def test_sweep(self, limiter, clock):
        """Expired records are evicted; locked ones are kept."""
        limiter.check("old", 5, 60, 60)
        for _ in range(6):
            limiter.check("locked", 5, 10, 600)
        clock.advance(120)
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_concurrent_attempts_respect_limit(self):
        """No more than max attempts succeed under contention."""
        limiter = RateLimiter()
        allowed = []
        barrier = threading.Barrier(20)

        def attempt():
            barrier.wait()
            allowed.append(limiter.check("shared", 5, 60, 60).allowed)

        threads = [threading.Thread(target=attempt) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert allowed.count(True) == 5

    def test_sweeper_start_stop(self, limiter):
        """Background sweeper starts and stops explicitly."""
        limiter.start(interval=0.01)
        assert limiter.running
        limiter.stop()
        assert not limiter.running


class TestRateLimitPresets:
    """Tests for preset policies."""

    def test_login_preset(self):
        """Login allows 5 attempts per 15 minutes."""
        assert RateLimitPresets.LOGIN == RateLimitPolicy(5, 900, 900)

    def test_lookup_by_name(self):
        """Presets can be looked up case-insensitively."""
        assert RateLimitPresets.get("export") is RateLimitPresets.EXPORT
        assert RateLimitPresets.get("TWO_FACTOR_VERIFY").max_attempts == 5

    def test_unknown_preset(self):
        """Unknown names raise KeyError."""
        with pytest.raises(KeyError):
            RateLimitPresets.get("nope")
