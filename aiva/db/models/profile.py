from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from aiva.db.base import Base, utcnow


class Profile(Base):
    """Application profile of an authenticated user; binds the user to a tenant."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)  # identity-provider user id
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    tenant = relationship("Tenant", back_populates="profiles")
