# Integration Module
"""
Audit trail for security events and CRM operations.

Entries are hash-chained so tampering with stored rows is detectable.
"""

# Lazy imports so storage can import the event types without a cycle
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    from . import audit_log, events
    if hasattr(events, name):
        return getattr(events, name)
    return getattr(audit_log, name)

__all__ = [
    'AuditAction',
    'ResourceType',
    'Severity',
    'Actor',
    'SYSTEM_ACTOR',
    'AuditEntry',
    'AuditFilter',
    'Anomaly',
    'AuditLog',
    'redact_details',
]
