# Storage Module
"""
SQLAlchemy persistence for accounts and the audit trail.

Rate-limit state is deliberately not persisted.
"""

from .db import (
    Base,
    make_engine,
    create_engine_from_settings,
    session_factory,
    init_db,
)

from .models import Account, AuditLogRecord

from .repositories import (
    AccountRecord,
    AccountRepository,
    AuditRepository,
)

__all__ = [
    'Base',
    'make_engine',
    'create_engine_from_settings',
    'session_factory',
    'init_db',
    'Account',
    'AuditLogRecord',
    'AccountRecord',
    'AccountRepository',
    'AuditRepository',
]
