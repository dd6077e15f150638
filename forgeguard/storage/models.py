from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.sql import func

from .db import Base


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="agent")

    # Argon2id hash; NULL for accounts that have never set a password
    password_hash = Column(String(255), nullable=True)

    # secret and backup_codes are set iff two_factor_enabled
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_secret = Column(Text, nullable=True)   # SecretCipher blob
    backup_codes = Column(Text, nullable=True)        # JSON list of argon2 hashes

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AuditLogRecord(Base):
    """Append-only; rows are never updated or deleted by the application."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(Float, nullable=False)  # epoch seconds

    user_id = Column(Integer, nullable=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=True)
    user_role = Column(String(32), nullable=True)

    action = Column(String(64), nullable=False)
    resource_type = Column(String(32), nullable=False)
    resource_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)  # JSON

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    severity = Column(String(16), nullable=False, default="info")

    prev_hash = Column(String(64), nullable=False)
    entry_hash = Column(String(64), nullable=False)

    __table_args__ = (
        Index("idx_audit_timestamp", "timestamp"),
        Index("idx_audit_user", "user_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
    )
