"""Inventory and product variant models."""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id

# Exactly one of branch_id / warehouse_id is set on a stock row.
ONE_LOCATION = (
    "(branch_id IS NOT NULL AND warehouse_id IS NULL) OR "
    "(branch_id IS NULL AND warehouse_id IS NOT NULL)"
)


class VariantType(str, enum.Enum):
    """Variant type enum."""
    COLOR = "color"
    SHAPE = "shape"


class Inventory(Base):
    """Inventory model - quantity of a product at one location."""
    __tablename__ = "inventory"
    __table_args__ = (CheckConstraint(ONE_LOCATION, name="ck_inventory_one_location"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=True)
    quantity = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship("Product")


class ProductVariant(Base):
    """Product variant model - a named sub-quantity at one location."""
    __tablename__ = "product_variants"
    __table_args__ = (CheckConstraint(ONE_LOCATION, name="ck_variant_one_location"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=True)
    variant_type = Column(String(20), default=VariantType.COLOR.value, nullable=False)
    name = Column(String(100), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    value = Column(Text, nullable=True)  # JSON: {"color": "#hex", "image": url, ...}
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
