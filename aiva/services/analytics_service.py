from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.exceptions import ContentValidationError
from aiva.db.base import as_utc, utcnow
from aiva.db.models.analytics_event import AnalyticsEvent, EventType
from aiva.db.models.asset import Asset
from aiva.db.models.folder import Folder
from aiva.utils.logger import get_logger, log_database_operation
from aiva.utils import metrics

logger = get_logger("services.analytics_service")

TOP_ASSETS_LIMIT = 5
DAILY_WINDOW_DAYS = 7


def percent_change(recent: int, previous: int) -> int:
    if previous <= 0:
        return 0
    return round((recent - previous) / previous * 100)


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_event(
        self,
        tenant_id: str,
        event_type: str,
        asset_id: Optional[str] = None,
        commit: bool = True,
    ) -> AnalyticsEvent:
        try:
            kind = EventType(event_type)
        except ValueError:
            raise ContentValidationError(f"Unknown event type: {event_type}")

        event = AnalyticsEvent(tenant_id=tenant_id, asset_id=asset_id, event_type=kind)
        self.db.add(event)
        if commit:
            await self.db.commit()

        metrics.analytics_events_recorded.labels(event_type=kind.value).inc()
        log_database_operation(logger, "INSERT", "analytics_events", asset_id)
        return event

    async def overview(self, tenant_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()

        totals = {kind.value: 0 for kind in EventType}
        result = await self.db.execute(
            select(AnalyticsEvent.event_type, func.count(AnalyticsEvent.id))
            .where(AnalyticsEvent.tenant_id == tenant_id)
            .group_by(AnalyticsEvent.event_type)
        )
        for kind, count in result.all():
            totals[EventType(kind).value] = int(count)

        # Last 14 days cover both the trend windows and the daily chart
        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)
        result = await self.db.execute(
            select(AnalyticsEvent.event_type, AnalyticsEvent.created_at).where(
                AnalyticsEvent.tenant_id == tenant_id,
                AnalyticsEvent.created_at > two_weeks_ago,
            )
        )
        recent_events = [(EventType(kind), as_utc(created)) for kind, created in result.all()]

        recent = sum(1 for _, created in recent_events if created > week_ago)
        previous = sum(1 for _, created in recent_events if two_weeks_ago < created <= week_ago)

        return {
            "total_views": totals[EventType.view.value],
            "total_downloads": totals[EventType.download.value],
            "total_uploads": totals[EventType.upload.value],
            "trend": percent_change(recent, previous),
            "top_assets": await self.top_assets(tenant_id),
            "daily_stats": self._daily_stats(recent_events, now),
        }

    async def top_assets(self, tenant_id: str, limit: int = TOP_ASSETS_LIMIT) -> list:
        """Assets ranked by combined view and download events."""
        interactions = func.count(AnalyticsEvent.id).label("count")
        result = await self.db.execute(
            select(AnalyticsEvent.asset_id, Asset.name, interactions)
            .outerjoin(Asset, Asset.id == AnalyticsEvent.asset_id)
            .where(
                AnalyticsEvent.tenant_id == tenant_id,
                AnalyticsEvent.asset_id.is_not(None),
                AnalyticsEvent.event_type.in_([EventType.view, EventType.download]),
            )
            .group_by(AnalyticsEvent.asset_id, Asset.name)
            .order_by(interactions.desc())
            .limit(limit)
        )
        return [
            {"asset_id": asset_id, "name": name or "Unknown Asset", "count": int(count)}
            for asset_id, name, count in result.all()
        ]

    @staticmethod
    def _daily_stats(events, now: datetime) -> list:
        today = now.date()
        days = [today - timedelta(days=offset) for offset in range(DAILY_WINDOW_DAYS - 1, -1, -1)]
        buckets = {day: {"views": 0, "downloads": 0, "uploads": 0} for day in days}

        for kind, created in events:
            bucket = buckets.get(created.date())
            if bucket is not None:
                bucket[f"{kind.value}s"] += 1

        return [
            {"date": f"{day:%b} {day.day}", **buckets[day]}
            for day in days
        ]

    async def dashboard(self, tenant_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        total_assets = await self.db.scalar(
            select(func.count(Asset.id)).where(Asset.tenant_id == tenant_id)
        )
        total_folders = await self.db.scalar(
            select(func.count(Folder.id)).where(Folder.tenant_id == tenant_id)
        )
        recent_uploads = await self.db.scalar(
            select(func.count(Asset.id)).where(
                Asset.tenant_id == tenant_id,
                Asset.created_at >= now - timedelta(days=7),
            )
        )
        return {
            "total_assets": int(total_assets or 0),
            "total_folders": int(total_folders or 0),
            "recent_uploads": int(recent_uploads or 0),
        }
