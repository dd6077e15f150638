"""
Audit Event Types

Closed vocabularies and record shapes for the CRM audit trail.

Every entry names its actor explicitly. Unauthenticated contexts use
SYSTEM_ACTOR rather than an implicit fallback.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================================
# Vocabularies
# ============================================================================

class AuditAction(Enum):
    """Actions that can be recorded in the audit log."""

    # Authentication
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_RATE_LIMITED = "login_rate_limited"
    LOGOUT = "logout"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_FAILED = "password_reset_failed"

    # 2FA operations
    TWO_FACTOR_SETUP_INITIATED = "2fa_setup_initiated"
    TWO_FACTOR_SETUP_RATE_LIMIT = "2fa_setup_rate_limit"
    TWO_FACTOR_VERIFY_FAILED = "2fa_verify_failed"
    TWO_FACTOR_VERIFY_RATE_LIMIT = "2fa_verify_rate_limit"
    TWO_FACTOR_ENABLED = "2fa_enabled"
    TWO_FACTOR_DISABLED = "2fa_disabled"
    TWO_FACTOR_DISABLE_FAILED = "2fa_disable_failed"
    TWO_FACTOR_BACKUP_CODE_USED = "2fa_backup_code_used"
    TWO_FACTOR_SECRET_CORRUPT = "2fa_secret_corrupt"

    # Image uploads
    IMAGE_UPLOAD = "image_upload"
    IMAGE_UPLOAD_REJECTED = "image_upload_rejected"
    IMAGE_UPLOAD_RATE_LIMIT = "image_upload_rate_limit"

    # Lead operations
    LEAD_VIEW = "lead_view"
    LEAD_VIEW_DETAILS = "lead_view_details"
    LEAD_CREATE = "lead_create"
    LEAD_UPDATE = "lead_update"
    LEAD_DELETE = "lead_delete"
    LEAD_BULK_DELETE = "lead_bulk_delete"
    LEAD_EXPORT = "lead_export"
    LEAD_MERGE = "lead_merge"

    # Activities, notes, policies
    ACTIVITY_CREATE = "activity_create"
    ACTIVITY_DELETE = "activity_delete"
    NOTE_CREATE = "note_create"
    NOTE_UPDATE = "note_update"
    NOTE_DELETE = "note_delete"
    POLICY_CREATE = "policy_create"
    POLICY_UPDATE = "policy_update"
    POLICY_DELETE = "policy_delete"
    POLICY_ISSUE = "policy_issue"

    # Email
    EMAIL_SEND = "email_send"
    EMAIL_CAMPAIGN_CREATE = "email_campaign_create"
    EMAIL_BULK_SEND = "email_bulk_send"

    # Users
    USER_CREATE = "user_create"
    USER_UPDATE = "user_update"
    USER_DELETE = "user_delete"
    USER_ROLE_CHANGE = "user_role_change"

    # System
    SETTINGS_UPDATE = "settings_update"
    DATA_IMPORT = "data_import"
    DATA_EXPORT = "data_export"


class ResourceType(Enum):
    LEAD = "lead"
    ACTIVITY = "activity"
    NOTE = "note"
    POLICY = "policy"
    USER = "user"
    EMAIL = "email"
    CAMPAIGN = "campaign"
    SYSTEM = "system"
    TWO_FACTOR = "2fa"
    IMAGE = "image"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# Actions that feed the suspicious-activity report
WATCHED_ACTIONS = (
    AuditAction.LOGIN_FAILED,
    AuditAction.LEAD_BULK_DELETE,
    AuditAction.LEAD_EXPORT,
    AuditAction.DATA_EXPORT,
)
SUSPICIOUS_THRESHOLD = 5  # groups must exceed this count

GENESIS_HASH = "0" * 64


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class Actor:
    """Who performed an action."""
    user_id: Optional[int]
    email: str
    name: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_system(self) -> bool:
        return self.user_id is None and self.email == SYSTEM_ACTOR.email


SYSTEM_ACTOR = Actor(user_id=None, email="system", name="System", role="system")


@dataclass(frozen=True)
class AuditEntry:
    """
    A single audit record.

    Callers build entries with the action, resource and context fields;
    id, timestamp and the chain hashes are filled in when the entry is
    persisted.
    """
    action: AuditAction
    resource_type: ResourceType
    resource_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.INFO
    actor: Actor = SYSTEM_ACTOR
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    id: Optional[int] = None
    timestamp: Optional[float] = None
    prev_hash: Optional[str] = None
    entry_hash: Optional[str] = None

    def canonical(self) -> str:
        """Stable JSON of the hashed fields."""
        return json.dumps({
            'timestamp': self.timestamp,
            'user_id': self.actor.user_id,
            'user_email': self.actor.email,
            'user_name': self.actor.name,
            'user_role': self.actor.role,
            'action': self.action.value,
            'resource_type': self.resource_type.value,
            'resource_id': self.resource_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'severity': self.severity.value,
            'prev_hash': self.prev_hash,
        }, sort_keys=True, separators=(',', ':'))

    def compute_hash(self) -> str:
        return hashlib.sha256(self.canonical().encode('utf-8')).hexdigest()

    def __str__(self) -> str:
        when = '-'
        if self.timestamp is not None:
            when = datetime.fromtimestamp(self.timestamp, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S')
        return f"[{when}] {self.action.value} | {self.severity.value} | actor:{self.actor.email}"


@dataclass
class AuditFilter:
    """Query parameters for the audit log. Unset fields do not filter."""
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action: Optional[AuditAction] = None
    resource_type: Optional[ResourceType] = None
    resource_id: Optional[int] = None
    severity: Optional[Severity] = None
    since: Optional[float] = None   # epoch seconds, inclusive
    until: Optional[float] = None   # epoch seconds, inclusive
    limit: Optional[int] = None
    offset: int = 0


@dataclass(frozen=True)
class Anomaly:
    """One row of the suspicious-activity report."""
    actor_email: str
    action: AuditAction
    count: int
    last_seen: float
