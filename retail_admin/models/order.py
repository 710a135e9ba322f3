"""Order model."""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Float, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    PENDING = "pending"
    PROCESSING = "processing"
    READY_FOR_PICKUP = "ready_for_pickup"
    READY_FOR_SHIPPING = "ready_for_shipping"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    ISSUE = "issue"


class DeliveryType(str, enum.Enum):
    """Delivery type enum."""
    PICKUP = "pickup"
    DELIVERY = "delivery"


STATUS_LABELS = {
    OrderStatus.PENDING.value: "معلق",
    OrderStatus.PROCESSING.value: "يتم التحضير",
    OrderStatus.READY_FOR_PICKUP.value: "جاهز للاستلام",
    OrderStatus.READY_FOR_SHIPPING.value: "جاهز للشحن",
    OrderStatus.SHIPPED.value: "مع شركة الشحن",
    OrderStatus.DELIVERED.value: "تم التسليم",
    OrderStatus.CANCELLED.value: "ملغي",
    OrderStatus.ISSUE.value: "مشكله",
}


class Order(Base):
    """Order model - one customer purchase intent.

    ``updated_at`` anchors the time-driven rules, so it is written
    explicitly on every status change rather than left to ``onupdate``.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    customer_name = Column(String(100), nullable=False)  # Snapshot for display
    customer_phone = Column(String(50), nullable=True)
    customer_address = Column(Text, nullable=True)
    delivery_type = Column(String(20), nullable=True)
    status = Column(String(30), default=OrderStatus.PENDING.value, nullable=False, index=True)
    total_amount = Column(Float, default=0, nullable=False)
    subtotal_amount = Column(Float, nullable=True)
    shipping_amount = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order_items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Order item model - one product line within an order."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True)  # Nullable in case product is deleted
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Float, nullable=False, default=0)  # Price at time of order
    notes = Column(Text, nullable=True)
    is_prepared = Column(Boolean, default=False, nullable=False)
    prepared_by = Column(String(100), nullable=True)
    prepared_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="order_items")
    product = relationship("Product")
