"""Product model."""
from sqlalchemy import Column, String, Text, DateTime, Float, Boolean
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class Product(Base):
    """Product model - catalog entry.

    ``description`` may hold a JSON object with a ``colors`` array and
    ``video_url`` a JSON array of extra image URLs; both are legacy
    encodings read by variant discovery and treated as plain text when
    they do not parse.
    """
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    barcode = Column(String(100), index=True, nullable=True)
    price = Column(Float, nullable=False, default=0)
    cost_price = Column(Float, nullable=False, default=0)
    description = Column(Text, nullable=True)
    main_image_url = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
