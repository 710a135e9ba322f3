"""Customer and supplier models."""
from sqlalchemy import Column, String, Text, DateTime, Boolean, Float
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class Customer(Base):
    """Customer model."""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    account_balance = Column(Float, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Supplier(Base):
    """Supplier model."""
    __tablename__ = "suppliers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    account_balance = Column(Float, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
