from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from sealworks.core.clock import utcnow
from sealworks.database import Base


class Partner(Base):
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    products = relationship("Product", back_populates="partner")


class Product(Base):
    """Binding target. Only name and SKU are read here; the catalog lives elsewhere."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    sku = Column(String(100), nullable=True)

    partner = relationship("Partner", back_populates="products")

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "sku": self.sku}
