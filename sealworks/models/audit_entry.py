"""
audit_entry.py - Append-only audit trail.

Rows are inserted once per state transition and never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index

from sealworks.core.clock import utcnow
from sealworks.database import Base


class AuditEntry(Base):
    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(100), nullable=False)
    action = Column(String(100), nullable=False, index=True)
    actor = Column(String(100), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_audit_entries_entity", "entity_type", "entity_id"),
    )
