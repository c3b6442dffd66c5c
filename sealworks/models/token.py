"""
token.py - Seal token model.

CRITICAL INVARIANTS:
- token is globally unique (DB constraint)
- entity_type/entity_id are the nominal mint-time label; binding activity never updates them
- version_id (label template version) is fixed at mint time
- REVOKED is terminal
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from sealworks.core.clock import utcnow
from sealworks.database import Base
from .enums import TokenStatus


class Token(Base):
    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(64), nullable=False, unique=True)

    # Nominal entity at mint time (a label, not a live binding)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(100), nullable=False)
    version_id = Column(String(100), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=TokenStatus.UNBOUND.value)
    scan_count = Column(Integer, nullable=False, default=0)
    last_scanned_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(String(500), nullable=True)

    sheet_id = Column(String(36), ForeignKey("seal_sheets.id"), nullable=True, index=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    sheet = relationship("SealSheet", back_populates="tokens")
    binding = relationship("Binding", back_populates="token", uselist=False)

    __table_args__ = (
        Index("ix_tokens_entity", "entity_type", "entity_id"),
    )

    def is_expired(self, now=None) -> bool:
        if self.status == TokenStatus.EXPIRED.value:
            return True
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())
