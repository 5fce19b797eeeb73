from sqlalchemy import Column, String, Text, ForeignKey, DateTime, Float, Boolean, JSON
from aiva.db.base import Base, utcnow
import uuid


class VerificationResult(Base):
    __tablename__ = "verification_results"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    content_type = Column(String, nullable=False)
    content_url = Column(Text, nullable=True)
    content_text = Column(Text, nullable=True)
    analysis_result = Column(JSON, nullable=False)
    confidence_score = Column(Float, nullable=False)
    is_fake = Column(Boolean, nullable=False)
    detected_issues = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
