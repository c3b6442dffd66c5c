"""
seal_sheet.py - Physical print batch model.

CRITICAL INVARIANTS:
- Created in the same transaction that links its tokens
- tokens_hash == sha256("|".join(sorted(linked tokens))) at all times
- REVOKED is terminal and always carries a reason
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from sealworks.core.clock import utcnow
from sealworks.database import Base
from .enums import SheetStatus


class SealSheet(Base):
    __tablename__ = "seal_sheets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String(20), nullable=False, default=SheetStatus.UNASSIGNED.value, index=True)

    token_count = Column(Integer, nullable=False)
    tokens_hash = Column(String(64), nullable=False)
    seal_version = Column(String(50), nullable=False)
    render_config = Column(JSON, nullable=True)

    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=True, index=True)
    assigned_at = Column(DateTime, nullable=True)
    assigned_by = Column(String(100), nullable=True)

    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(String(100), nullable=True)
    revoke_reason = Column(String(500), nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    tokens = relationship("Token", back_populates="sheet", order_by="Token.token")
    partner = relationship("Partner")

    __table_args__ = (
        CheckConstraint("token_count >= 0", name="seal_sheet_token_count_non_negative"),
    )
