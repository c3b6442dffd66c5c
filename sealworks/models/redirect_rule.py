"""
redirect_rule.py - Scan redirect rules.

A rule is scoped to an entity (entity_type + entity_id), to a label-template
version (version_id), or is the single system-wide fallback.
"""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Index, text
from sealworks.core.clock import utcnow
from sealworks.database import Base


class RedirectRule(Base):
    __tablename__ = "redirect_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Scope
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(100), nullable=True)
    version_id = Column(String(100), nullable=True)
    is_fallback = Column(Boolean, nullable=False, default=False)

    redirect_url = Column(String(2048), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    reason = Column(String(500), nullable=True)

    # Active window, both bounds optional
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    deactivated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_redirect_rules_entity", "entity_type", "entity_id"),
        Index("ix_redirect_rules_version", "version_id"),
        Index(
            "uq_redirect_rules_single_fallback",
            "is_fallback",
            unique=True,
            postgresql_where=text("is_fallback = true"),
            sqlite_where=text("is_fallback = 1"),
        ),
    )

    def in_window(self, now) -> bool:
        """Both bounds are inclusive."""
        if self.starts_at is not None and now < self.starts_at:
            return False
        if self.ends_at is not None and now > self.ends_at:
            return False
        return True
