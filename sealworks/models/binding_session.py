"""
binding_session.py - Partner-scoped, time-boxed scanning session.

CRITICAL: At most one ACTIVE session per partner (partial unique index).
scan_count only moves through an in-place SQL increment.
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from sealworks.core.clock import utcnow
from sealworks.database import Base
from .enums import BindingSessionStatus


class BindingSession(Base):
    __tablename__ = "binding_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    status = Column(String(20), nullable=False, default=BindingSessionStatus.ACTIVE.value)
    scan_count = Column(Integer, nullable=False, default=0)

    started_by = Column(String(100), nullable=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)

    # Relationships
    product = relationship("Product")

    __table_args__ = (
        Index(
            "uq_binding_sessions_active_partner",
            "partner_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )
