"""Record model - tills/registers invoices are filed under."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func

from retail_admin.database import Base, generate_id


class Record(Base):
    """A till or ledger bucket.

    One record is the main record; every invoice filed elsewhere is
    mirrored into it. Primary records cannot be deleted.
    """
    __tablename__ = "records"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    is_primary = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
