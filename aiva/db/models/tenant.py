from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from aiva.db.base import Base, utcnow
import uuid

class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    profiles = relationship("Profile", back_populates="tenant")
    folders = relationship("Folder", back_populates="tenant")
    assets = relationship("Asset", back_populates="tenant")
