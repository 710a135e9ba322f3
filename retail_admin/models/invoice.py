"""Sales and purchase invoice models."""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey, Float, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class InvoiceType(str, enum.Enum):
    """Invoice type enum, persisted as these literal strings."""
    SALE_INVOICE = "Sale Invoice"
    SALE_RETURN = "Sale Return"
    PURCHASE_INVOICE = "Purchase Invoice"
    PURCHASE_RETURN = "Purchase Return"


class Sale(Base):
    """Sales invoice header. Returns store negated amounts."""
    __tablename__ = "sales"

    id = Column(String(36), primary_key=True, default=generate_id)
    invoice_number = Column(String(60), unique=True, index=True, nullable=False)
    invoice_type = Column(String(30), default=InvoiceType.SALE_INVOICE.value, nullable=False)
    total_amount = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, default=0)
    discount_amount = Column(Float, default=0)
    profit = Column(Float, default=0)
    paid_amount = Column(Float, nullable=True)
    payment_method = Column(String(50), default="cash", nullable=False)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    record_id = Column(String(36), ForeignKey("records.id"), nullable=True)
    order_number = Column(String(50), nullable=True)  # Set when raised from an order
    notes = Column(Text, nullable=True)
    time = Column(String(8), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sale_items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")
    branch = relationship("Branch")
    record = relationship("Record")
    customer = relationship("Customer")


class SaleItem(Base):
    """Sales invoice line."""
    __tablename__ = "sale_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    sale_id = Column(String(36), ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    cost_price = Column(Float, default=0, nullable=False)
    discount = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sale = relationship("Sale", back_populates="sale_items")
    product = relationship("Product")


class PurchaseInvoice(Base):
    """Purchase invoice header; also carries transfer invoices."""
    __tablename__ = "purchase_invoices"

    id = Column(String(36), primary_key=True, default=generate_id)
    invoice_number = Column(String(60), unique=True, index=True, nullable=False)
    invoice_type = Column(String(30), default=InvoiceType.PURCHASE_INVOICE.value, nullable=False)
    invoice_date = Column(Date, nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=True)
    total_amount = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, default=0)
    discount_amount = Column(Float, default=0)
    net_amount = Column(Float, nullable=False, default=0)
    payment_status = Column(String(20), default="pending")
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id"), nullable=True)
    record_id = Column(String(36), ForeignKey("records.id"), nullable=True)
    notes = Column(Text, nullable=True)
    time = Column(String(8), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    purchase_invoice_items = relationship(
        "PurchaseInvoiceItem", back_populates="purchase_invoice", cascade="all, delete-orphan"
    )


class PurchaseInvoiceItem(Base):
    """Purchase invoice line."""
    __tablename__ = "purchase_invoice_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    purchase_invoice_id = Column(String(36), ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_purchase_price = Column(Float, nullable=False, default=0)
    total_price = Column(Float, nullable=False, default=0)
    discount_amount = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    purchase_invoice = relationship("PurchaseInvoice", back_populates="purchase_invoice_items")
    product = relationship("Product")
