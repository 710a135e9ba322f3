"""Location models - branches and warehouses."""
from sqlalchemy import Column, String, Text, DateTime, Boolean
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class Branch(Base):
    """Branch model - a selling location with tills."""
    __tablename__ = "branches"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Warehouse(Base):
    """Warehouse model - a stock-only location."""
    __tablename__ = "warehouses"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
