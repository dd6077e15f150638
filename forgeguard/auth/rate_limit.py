"""
Rate Limiter Module

Fixed-window attempt counting with lockout, keyed by arbitrary strings
(client IP, email, "2fa-verify:<user id>", ...).

Features:
- Lockout once a window's attempts exceed the limit
- Combined checks over several keys (deny if any key denies)
- Policy presets for login, API, export, password reset and 2FA flows
- Explicit start()/stop() for the background sweeper

State is process-local and is rebuilt empty on restart.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional


logger = logging.getLogger(__name__)


DEFAULT_SWEEP_INTERVAL = 300.0  # 5 minutes


@dataclass(frozen=True)
class RateLimitPolicy:
    """Attempt budget for one kind of action. Durations are in seconds."""
    max_attempts: int
    window: float
    block_duration: float


class RateLimitPresets:
    """Preset policies used by the CRM."""
    # 5 attempts per 15 minutes, block for 15 minutes
    LOGIN = RateLimitPolicy(max_attempts=5, window=15 * 60, block_duration=15 * 60)
    # 100 requests per minute
    API = RateLimitPolicy(max_attempts=100, window=60, block_duration=60)
    # 10 data exports per hour
    EXPORT = RateLimitPolicy(max_attempts=10, window=60 * 60, block_duration=60 * 60)
    PASSWORD_RESET = RateLimitPolicy(max_attempts=3, window=60 * 60, block_duration=60 * 60)
    TWO_FACTOR_SETUP = RateLimitPolicy(max_attempts=10, window=60 * 60, block_duration=60 * 60)
    TWO_FACTOR_VERIFY = RateLimitPolicy(max_attempts=5, window=15 * 60, block_duration=15 * 60)

    @classmethod
    def get(cls, name: str) -> RateLimitPolicy:
        """Look up a preset by name, e.g. 'login' or 'TWO_FACTOR_VERIFY'."""
        policy = getattr(cls, name.upper(), None)
        if not isinstance(policy, RateLimitPolicy):
            raise KeyError(f"Unknown rate limit preset: {name}")
        return policy


@dataclass
class RateLimitRecord:
    """Attempt counter for one key."""
    count: int
    reset_at: float
    blocked_until: Optional[float] = None

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and self.blocked_until > now

    def is_expired(self, now: float) -> bool:
        return self.reset_at <= now and not self.is_blocked(now)


@dataclass(frozen=True)
class RateLimitVerdict:
    """Outcome of a rate-limit check."""
    allowed: bool
    remaining: int
    reset_at: float
    blocked_until: Optional[float] = None

    def retry_after(self, now: float = None) -> int:
        """Whole seconds until the caller may try again (0 if allowed)."""
        if self.allowed or self.blocked_until is None:
            return 0
        if now is None:
            now = time.time()
        return max(0, int(self.blocked_until - now + 0.999))


class RateLimiter:
    """
    Fixed-window rate limiter with lockout.

    One instance is owned by the composition root and shared by all
    request handlers. All record access happens under a single lock,
    so two concurrent attempts can never both see the last free slot.

    Example:
        >>> limiter = RateLimiter()
        >>> limiter.check("login:ip:10.0.0.1", 5, 900, 900).allowed
        True
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize rate limiter.

        Args:
            clock: Returns the current time as epoch seconds
        """
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None
        self._sweeper: Optional[threading.Thread] = None

    def check(self, key: str, max_attempts: int = 5,
              window: float = 15 * 60,
              block_duration: float = 15 * 60) -> RateLimitVerdict:
        """
        Count an attempt for a key and decide whether it may proceed.

        Args:
            key: Identifier being limited
            max_attempts: Attempts allowed per window
            window: Window length in seconds
            block_duration: Lockout length in seconds once exceeded

        Returns:
            RateLimitVerdict for this attempt
        """
        with self._lock:
            now = self._clock()
            record = self._records.get(key)

            # Active lockout: deny without counting
            if record is not None and record.is_blocked(now):
                return RateLimitVerdict(
                    allowed=False,
                    remaining=0,
                    reset_at=record.reset_at,
                    blocked_until=record.blocked_until,
                )

            if record is None or record.reset_at <= now:
                record = RateLimitRecord(count=1, reset_at=now + window)
                self._records[key] = record
                return RateLimitVerdict(
                    allowed=True,
                    remaining=max(0, max_attempts - 1),
                    reset_at=record.reset_at,
                )

            record.count += 1

            if record.count > max_attempts:
                record.blocked_until = now + block_duration
                logger.warning("Rate limit exceeded for key %s", key)
                return RateLimitVerdict(
                    allowed=False,
                    remaining=0,
                    reset_at=record.reset_at,
                    blocked_until=record.blocked_until,
                )

            return RateLimitVerdict(
                allowed=True,
                remaining=max_attempts - record.count,
                reset_at=record.reset_at,
            )

    def check_policy(self, key: str, policy: RateLimitPolicy) -> RateLimitVerdict:
        """Check a key against a preset policy."""
        return self.check(key, policy.max_attempts, policy.window, policy.block_duration)

    def check_all(self, keys: Iterable[str], policy: RateLimitPolicy) -> RateLimitVerdict:
        """
        Check several keys for one attempt.

        Every key is counted. The attempt is denied if any key denies;
        the combined verdict reports the lowest remaining count and the
        latest reset and lockout times.

        Args:
            keys: Keys to check (e.g. by IP and by email)
            policy: Policy applied to each key

        Returns:
            Combined RateLimitVerdict
        """
        verdicts = [self.check_policy(key, policy) for key in keys]
        if not verdicts:
            raise ValueError("check_all requires at least one key")

        blocked = [v.blocked_until for v in verdicts if v.blocked_until is not None]
        return RateLimitVerdict(
            allowed=all(v.allowed for v in verdicts),
            remaining=min(v.remaining for v in verdicts),
            reset_at=max(v.reset_at for v in verdicts),
            blocked_until=max(blocked) if blocked else None,
        )

    def status(self, key: str, max_attempts: int = 5) -> RateLimitVerdict:
        """
        Current state of a key without counting an attempt.

        Args:
            key: Identifier to inspect
            max_attempts: Limit used to compute remaining attempts
        """
        with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is None:
                return RateLimitVerdict(allowed=True, remaining=max_attempts, reset_at=now)
            if record.is_blocked(now):
                return RateLimitVerdict(
                    allowed=False,
                    remaining=0,
                    reset_at=record.reset_at,
                    blocked_until=record.blocked_until,
                )
            if record.reset_at <= now:
                return RateLimitVerdict(allowed=True, remaining=max_attempts, reset_at=now)
            return RateLimitVerdict(
                allowed=True,
                remaining=max(0, max_attempts - record.count),
                reset_at=record.reset_at,
            )

    def reset(self, key: str) -> None:
        """Forget all attempts for a key (e.g. after a successful login)."""
        with self._lock:
            self._records.pop(key, None)

    def sweep(self) -> int:
        """
        Evict records whose window and lockout have both expired.

        Returns:
            Number of records removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug("Rate limiter swept %d expired records", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ========================================================================
    # Sweeper lifecycle
    # ========================================================================

    def start(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        """
        Start the background sweeper thread.

        Args:
            interval: Seconds between sweeps
        """
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        stop_event = threading.Event()

        def run() -> None:
            while not stop_event.wait(interval):
                try:
                    self.sweep()
                except Exception:
                    logger.exception("Rate limiter sweep failed")

        self._stop_event = stop_event
        self._sweeper = threading.Thread(target=run, name='forgeguard-rate-sweeper', daemon=True)
        self._sweeper.start()

    def stop(self) -> None:
        """Stop the background sweeper and wait for it to exit."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join()
        self._stop_event = None
        self._sweeper = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()
