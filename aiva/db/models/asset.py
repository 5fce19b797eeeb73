from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Integer, JSON, Index
from sqlalchemy.orm import relationship
from aiva.core.config import settings
from aiva.db.base import Base, utcnow
import uuid

class Asset(Base):
    __tablename__ = "assets"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    folder_id = Column(String, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    owner_id = Column(String, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    file_path = Column(String, nullable=False)  # object storage key
    file_type = Column(String, nullable=False, default="application/octet-stream")
    file_size = Column(Integer, nullable=False, default=0)
    tags = Column(JSON(none_as_null=True), nullable=True)
    embedding = Column(Vector(settings.EMBEDDING_DIMENSIONS), nullable=True)  # caption embedding
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    tenant = relationship("Tenant", back_populates="assets")
    folder = relationship("Folder", back_populates="assets")

    # Composite index for common query pattern: tenant_id + folder_id
    __table_args__ = (
        Index('idx_assets_tenant_folder', 'tenant_id', 'folder_id'),
    )
