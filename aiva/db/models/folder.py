from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Index, func
from sqlalchemy.orm import relationship
from aiva.db.base import Base, utcnow
import uuid

class Folder(Base):
    __tablename__ = "folders"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    tenant = relationship("Tenant", back_populates="folders")
    assets = relationship("Asset", back_populates="folder")

    # Folder names are unique per tenant, ignoring case
    __table_args__ = (
        Index("uq_folders_tenant_lower_name", "tenant_id", func.lower(name), unique=True),
    )
