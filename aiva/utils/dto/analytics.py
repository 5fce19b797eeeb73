from typing import List, Literal, Optional
from pydantic import BaseModel


class AnalyticsEventCreate(BaseModel):
    event_type: Literal["view", "download", "upload"]
    asset_id: Optional[str] = None


class AnalyticsEventResponse(BaseModel):
    id: str
    event_type: str
    asset_id: Optional[str] = None


class TopAsset(BaseModel):
    asset_id: str
    name: str
    count: int


class DailyStat(BaseModel):
    date: str
    views: int
    downloads: int
    uploads: int


class AnalyticsOverview(BaseModel):
    total_views: int
    total_downloads: int
    total_uploads: int
    trend: int
    top_assets: List[TopAsset]
    daily_stats: List[DailyStat]


class DashboardStats(BaseModel):
    total_assets: int
    total_folders: int
    recent_uploads: int
