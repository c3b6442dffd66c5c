"""
binding.py - Current token-to-product binding.

CRITICAL INVARIANTS:
- At most one row per token (unique token_id); "current binding" is a single-row lookup
- Rows are never updated: a rebind deletes the old row and inserts a new one
- previous_binding_id points at the deleted predecessor (lineage), so it is not a foreign key
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from sealworks.core.clock import utcnow
from sealworks.database import Base


class Binding(Base):
    __tablename__ = "bindings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token_id = Column(Integer, ForeignKey("tokens.id"), nullable=False, unique=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("binding_sessions.id"), nullable=True, index=True)

    is_rebind = Column(Boolean, nullable=False, default=False)
    previous_binding_id = Column(String(36), nullable=True)

    bound_by = Column(String(100), nullable=True)
    bound_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    token = relationship("Token", back_populates="binding")
    product = relationship("Product")
