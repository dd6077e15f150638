"""
Audit Log Module

Append-only, tamper-evident audit trail for security events and CRM
operations.

Features:
- Best-effort appends: a failed write is logged locally and never
  propagates to the operation being audited
- SHA-256 hash chain across entries (each entry commits to the previous)
- Filtered, paginated queries, newest first
- Suspicious-activity report by frequency threshold

Privacy:
- Detail keys that look like passwords, secrets, tokens or codes are
  redacted before anything is stored
"""

import json
import logging
import re
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError
from ..storage.repositories import AuditRepository
from .events import (
    GENESIS_HASH,
    SUSPICIOUS_THRESHOLD,
    SYSTEM_ACTOR,
    WATCHED_ACTIONS,
    Actor,
    Anomaly,
    AuditAction,
    AuditEntry,
    AuditFilter,
    ResourceType,
    Severity,
)


logger = logging.getLogger(__name__)


REDACTED = "[REDACTED]"
# Matched against whole words of the snake_cased key, so passenger_count
# or footprint pass through untouched
SENSITIVE_KEY = re.compile(r'(^|_)(pass(word|wd)?|secret|token|otp|totp|otpauth|backup_?codes?)(_|$)')
_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')
_KEY_SEPARATORS = re.compile(r'[\s.\-]+')
MAX_USER_AGENT_LENGTH = 512


def is_sensitive_key(key: str) -> bool:
    """True if a details key names a credential (camelCase or snake_case)."""
    words = _KEY_SEPARATORS.sub('_', _CAMEL_BOUNDARY.sub('_', key)).lower()
    return bool(SENSITIVE_KEY.search(words))


def redact_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Make a details map safe to persist.

    Sensitive keys are masked at any depth and values are coerced to
    JSON types (anything else becomes its string form).

    Args:
        details: Caller-supplied structured details

    Returns:
        A new JSON-compatible dict
    """
    if not details:
        return {}

    def scrub(value):
        if isinstance(value, dict):
            return {
                str(k): REDACTED if is_sensitive_key(str(k)) else scrub(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [scrub(v) for v in value]
        return value

    return json.loads(json.dumps(scrub(details), default=str))


class AuditLog:
    """
    Audit trail backed by the audit_logs table.

    Appends are serialized by a lock so each entry links to the one
    written before it.

    Example:
        >>> audit = AuditLog(AuditRepository(sessions))
        >>> audit.record(AuditAction.LOGIN_SUCCESS, ResourceType.SYSTEM, actor=user)
    """

    def __init__(self, repository: AuditRepository,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the audit log.

        Args:
            repository: Storage for entries
            clock: Returns the current time as epoch seconds
        """
        self._repository = repository
        self._clock = clock
        self._lock = threading.Lock()

    # ========================================================================
    # Writing
    # ========================================================================

    def append(self, entry: AuditEntry) -> Optional[AuditEntry]:
        """
        Append an entry. Never raises.

        Args:
            entry: Entry built by the caller (id/timestamp/hashes are ignored)

        Returns:
            The stored entry, or None if the write failed
        """
        try:
            with self._lock:
                prev_hash = self._repository.latest_hash() or GENESIS_HASH
                user_agent = entry.user_agent[:MAX_USER_AGENT_LENGTH] if entry.user_agent else None
                stored = replace(
                    entry,
                    action=AuditAction(entry.action),
                    resource_type=ResourceType(entry.resource_type),
                    severity=Severity(entry.severity),
                    details=redact_details(entry.details),
                    user_agent=user_agent,
                    id=None,
                    timestamp=self._clock(),
                    prev_hash=prev_hash,
                    entry_hash=None,
                )
                stored = replace(stored, entry_hash=stored.compute_hash())
                return self._repository.insert(stored)
        except Exception as e:
            # Message only: driver errors can echo statement parameters
            logger.error("Audit log write failed (%s): %s", getattr(entry, 'action', '?'), type(e).__name__)
            return None

    def record(self, action: AuditAction, resource_type: ResourceType,
               actor: Actor = SYSTEM_ACTOR,
               severity: Severity = Severity.INFO,
               resource_id: Optional[int] = None,
               details: Optional[Dict[str, Any]] = None,
               ip_address: Optional[str] = None,
               user_agent: Optional[str] = None) -> Optional[AuditEntry]:
        """Build and append an entry in one call."""
        return self.append(AuditEntry(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            severity=severity,
            actor=actor,
            ip_address=ip_address,
            user_agent=user_agent,
        ))

    # ========================================================================
    # Reading
    # ========================================================================

    def query(self, audit_filter: Optional[AuditFilter] = None) -> List[AuditEntry]:
        """
        Entries matching a filter, newest first.

        Raises:
            StorageError: If the audit table cannot be read
        """
        try:
            return self._repository.select(audit_filter or AuditFilter())
        except SQLAlchemyError as e:
            raise StorageError("Audit log query failed") from e

    def count(self, audit_filter: Optional[AuditFilter] = None) -> int:
        """Number of entries matching a filter (ignores limit/offset)."""
        try:
            return self._repository.count(audit_filter or AuditFilter())
        except SQLAlchemyError as e:
            raise StorageError("Audit log count failed") from e

    def suspicious_activity(self, hours: float = 24) -> List[Anomaly]:
        """
        Frequent failed logins, bulk deletes, exports and critical events.

        Entries from the last `hours` are grouped by (actor email, action);
        groups with more than SUSPICIOUS_THRESHOLD entries are returned,
        most frequent first, then most recent.

        Args:
            hours: Look-back window

        Returns:
            List of Anomaly rows
        """
        since = self._clock() - hours * 60 * 60
        try:
            return self._repository.suspicious(since, list(WATCHED_ACTIONS), SUSPICIOUS_THRESHOLD)
        except SQLAlchemyError as e:
            raise StorageError("Suspicious activity query failed") from e

    def verify_integrity(self) -> bool:
        """
        Recompute the hash chain over every entry.

        Returns:
            True if no entry was altered, removed or reordered
        """
        expected_prev = GENESIS_HASH
        try:
            for entry in self._repository.iter_chain():
                if entry.prev_hash != expected_prev or entry.compute_hash() != entry.entry_hash:
                    logger.critical("Audit chain broken at entry %s", entry.id)
                    return False
                expected_prev = entry.entry_hash
        except (SQLAlchemyError, ValueError) as e:
            logger.critical("Audit chain unreadable: %s", type(e).__name__)
            return False
        return True
