from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Index
from aiva.db.base import Base, utcnow
import enum, uuid

class EventType(str, enum.Enum):
    view = "view"
    download = "download"
    upload = "upload"

class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_id = Column(String, ForeignKey("assets.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(Enum(EventType), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    # Composite index for common query pattern: tenant_id + event_type
    __table_args__ = (
        Index('idx_analytics_events_tenant_type', 'tenant_id', 'event_type'),
    )
