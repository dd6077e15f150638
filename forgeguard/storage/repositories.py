"""
Repositories for accounts and the audit trail.

Every method opens its own short session. SQLAlchemy errors surface as
StorageError so callers never see driver-specific exceptions.

Backup-code consumption is a compare-and-set: the UPDATE only applies
if the stored list is still the one the caller read.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import AccountNotFoundError, StorageError, ValidationError
from ..integration.events import (
    Actor,
    Anomaly,
    AuditAction,
    AuditEntry,
    AuditFilter,
    ResourceType,
    Severity,
)
from .models import Account, AuditLogRecord


logger = logging.getLogger(__name__)


def encode_codes(codes: List[str]) -> str:
    """Serialize a backup-code hash list. All writes go through here."""
    return json.dumps(list(codes))


def decode_codes(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        codes = json.loads(raw)
    except ValueError:
        logger.error("Stored backup codes are not valid JSON")
        return []
    return [c for c in codes if isinstance(c, str)]


@dataclass(frozen=True)
class AccountRecord:
    """Detached snapshot of an account row."""
    id: int
    email: str
    name: Optional[str]
    role: str
    password_hash: Optional[str]
    two_factor_enabled: bool
    two_factor_secret: Optional[str]
    backup_codes: List[str] = field(default_factory=list)

    @property
    def actor(self) -> Actor:
        return Actor(user_id=self.id, email=self.email, name=self.name, role=self.role)

    @classmethod
    def from_model(cls, account: Account) -> 'AccountRecord':
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            password_hash=account.password_hash,
            two_factor_enabled=bool(account.two_factor_enabled),
            two_factor_secret=account.two_factor_secret,
            backup_codes=decode_codes(account.backup_codes),
        )


# ============================================================================
# Accounts
# ============================================================================

class AccountRepository:
    """Account lookups and the 2FA state transitions."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions

    def get_by_email(self, email: str) -> Optional[AccountRecord]:
        """Case-insensitive lookup by email."""
        if not email:
            return None
        try:
            with self._sessions() as session:
                account = session.scalars(
                    select(Account).where(func.lower(Account.email) == email.strip().lower())
                ).first()
                return AccountRecord.from_model(account) if account else None
        except SQLAlchemyError as e:
            raise StorageError("Account lookup failed") from e

    def get_by_id(self, user_id: int) -> Optional[AccountRecord]:
        try:
            with self._sessions() as session:
                account = session.get(Account, user_id)
                return AccountRecord.from_model(account) if account else None
        except SQLAlchemyError as e:
            raise StorageError("Account lookup failed") from e

    def create(self, email: str, password_hash: Optional[str],
               name: Optional[str] = None, role: str = "agent") -> AccountRecord:
        """
        Insert a new account with 2FA disabled.

        Raises:
            ValidationError: If the email is already registered
        """
        try:
            with self._sessions() as session:
                account = Account(
                    email=email.strip().lower(),
                    name=name,
                    role=role,
                    password_hash=password_hash,
                    two_factor_enabled=False,
                )
                session.add(account)
                session.commit()
                return AccountRecord.from_model(account)
        except IntegrityError as e:
            raise ValidationError("An account with this email already exists") from e
        except SQLAlchemyError as e:
            raise StorageError("Account creation failed") from e

    def _update(self, user_id: int, *conditions, **values) -> bool:
        try:
            with self._sessions() as session:
                result = session.execute(
                    update(Account)
                    .where(Account.id == user_id, *conditions)
                    .values(updated_at=func.now(), **values)
                )
                session.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            raise StorageError("Account update failed") from e

    def update_password_hash(self, user_id: int, password_hash: str) -> None:
        if not self._update(user_id, password_hash=password_hash):
            raise AccountNotFoundError(user_id)

    def enable_two_factor(self, user_id: int, encrypted_secret: str,
                          backup_code_hashes: List[str]) -> None:
        """Store the encrypted secret and code hashes and flip the flag together."""
        if not encrypted_secret or not backup_code_hashes:
            raise ValidationError("Secret and backup codes are both required to enable 2FA")
        updated = self._update(
            user_id,
            two_factor_enabled=True,
            two_factor_secret=encrypted_secret,
            backup_codes=encode_codes(backup_code_hashes),
        )
        if not updated:
            raise AccountNotFoundError(user_id)

    def disable_two_factor(self, user_id: int) -> None:
        updated = self._update(
            user_id,
            two_factor_enabled=False,
            two_factor_secret=None,
            backup_codes=None,
        )
        if not updated:
            raise AccountNotFoundError(user_id)

    def replace_backup_codes(self, user_id: int, expected: List[str],
                             remaining: List[str]) -> bool:
        """
        Compare-and-set the stored backup-code list.

        Args:
            user_id: Account id
            expected: List the caller read before consuming a code
            remaining: List with the consumed hash removed

        Returns:
            True if the swap applied, False if the list changed meanwhile
        """
        return self._update(
            user_id,
            Account.two_factor_enabled.is_(True),
            Account.backup_codes == encode_codes(expected),
            backup_codes=encode_codes(remaining),
        )


# ============================================================================
# Audit trail
# ============================================================================

def _to_entry(row: AuditLogRecord) -> AuditEntry:
    details = {}
    if row.details:
        try:
            details = json.loads(row.details)
        except ValueError:
            details = {'_raw': row.details}
    return AuditEntry(
        id=row.id,
        timestamp=row.timestamp,
        actor=Actor(
            user_id=row.user_id,
            email=row.user_email,
            name=row.user_name,
            role=row.user_role,
        ),
        action=AuditAction(row.action),
        resource_type=ResourceType(row.resource_type),
        resource_id=row.resource_id,
        details=details,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        severity=Severity(row.severity),
        prev_hash=row.prev_hash,
        entry_hash=row.entry_hash,
    )


def _apply_filter(stmt, audit_filter: AuditFilter):
    if audit_filter.user_id is not None:
        stmt = stmt.where(AuditLogRecord.user_id == audit_filter.user_id)
    if audit_filter.user_email is not None:
        stmt = stmt.where(AuditLogRecord.user_email == audit_filter.user_email)
    if audit_filter.action is not None:
        stmt = stmt.where(AuditLogRecord.action == audit_filter.action.value)
    if audit_filter.resource_type is not None:
        stmt = stmt.where(AuditLogRecord.resource_type == audit_filter.resource_type.value)
    if audit_filter.resource_id is not None:
        stmt = stmt.where(AuditLogRecord.resource_id == audit_filter.resource_id)
    if audit_filter.severity is not None:
        stmt = stmt.where(AuditLogRecord.severity == audit_filter.severity.value)
    if audit_filter.since is not None:
        stmt = stmt.where(AuditLogRecord.timestamp >= audit_filter.since)
    if audit_filter.until is not None:
        stmt = stmt.where(AuditLogRecord.timestamp <= audit_filter.until)
    return stmt


class AuditRepository:
    """Insert-and-read access to the audit_logs table. No update or delete."""

    def __init__(self, sessions: sessionmaker):
        self._sessions = sessions

    def latest_hash(self) -> Optional[str]:
        """Hash of the most recently appended entry, or None if empty."""
        with self._sessions() as session:
            return session.scalars(
                select(AuditLogRecord.entry_hash).order_by(AuditLogRecord.id.desc()).limit(1)
            ).first()

    def insert(self, entry: AuditEntry) -> AuditEntry:
        """Persist a fully populated entry and return it with its id."""
        with self._sessions() as session:
            row = AuditLogRecord(
                timestamp=entry.timestamp,
                user_id=entry.actor.user_id,
                user_email=entry.actor.email,
                user_name=entry.actor.name,
                user_role=entry.actor.role,
                action=entry.action.value,
                resource_type=entry.resource_type.value,
                resource_id=entry.resource_id,
                details=json.dumps(entry.details) if entry.details else None,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
                severity=entry.severity.value,
                prev_hash=entry.prev_hash,
                entry_hash=entry.entry_hash,
            )
            session.add(row)
            session.commit()
            return _to_entry(row)

    def select(self, audit_filter: AuditFilter) -> List[AuditEntry]:
        stmt = _apply_filter(select(AuditLogRecord), audit_filter)
        stmt = stmt.order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id.desc())
        if audit_filter.offset:
            stmt = stmt.offset(audit_filter.offset)
        if audit_filter.limit is not None:
            stmt = stmt.limit(audit_filter.limit)
        with self._sessions() as session:
            return [_to_entry(row) for row in session.scalars(stmt)]

    def count(self, audit_filter: AuditFilter) -> int:
        stmt = _apply_filter(select(func.count(AuditLogRecord.id)), audit_filter)
        with self._sessions() as session:
            return session.scalar(stmt) or 0

    def suspicious(self, since: float, actions: List[AuditAction],
                   threshold: int) -> List[Anomaly]:
        """Group watched or critical entries by (actor email, action)."""
        occurrences = func.count(AuditLogRecord.id).label('occurrences')
        last_seen = func.max(AuditLogRecord.timestamp).label('last_seen')
        stmt = (
            select(AuditLogRecord.user_email, AuditLogRecord.action, occurrences, last_seen)
            .where(AuditLogRecord.timestamp >= since)
            .where(or_(
                AuditLogRecord.action.in_([a.value for a in actions]),
                AuditLogRecord.severity == Severity.CRITICAL.value,
            ))
            .group_by(AuditLogRecord.user_email, AuditLogRecord.action)
            .having(occurrences > threshold)
            .order_by(occurrences.desc(), last_seen.desc())
        )
        with self._sessions() as session:
            return [
                Anomaly(
                    actor_email=row.user_email,
                    action=AuditAction(row.action),
                    count=row.occurrences,
                    last_seen=row.last_seen,
                )
                for row in session.execute(stmt)
            ]

    def iter_chain(self, batch_size: int = 500) -> Iterator[AuditEntry]:
        """All entries in append order."""
        last_id = 0
        while True:
            with self._sessions() as session:
                rows = session.scalars(
                    select(AuditLogRecord)
                    .where(AuditLogRecord.id > last_id)
                    .order_by(AuditLogRecord.id)
                    .limit(batch_size)
                ).all()
                entries = [_to_entry(row) for row in rows]
            if not entries:
                return
            yield from entries
            last_id = entries[-1].id
