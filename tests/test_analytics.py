from datetime import datetime, timedelta, timezone

import pytest

from aiva.core.exceptions import ContentValidationError
from aiva.db.models.analytics_event import AnalyticsEvent, EventType
from aiva.db.models.asset import Asset
from aiva.services.analytics_service import AnalyticsService, percent_change

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def event(tenant_id, kind, days_ago, asset_id=None):
    return AnalyticsEvent(
        tenant_id=tenant_id,
        asset_id=asset_id,
        event_type=kind,
        created_at=NOW - timedelta(days=days_ago),
    )


def test_percent_change():
    assert percent_change(6, 4) == 50
    assert percent_change(1, 4) == -75
    assert percent_change(3, 0) == 0


async def test_overview_totals_trend_and_daily_stats(db, user):
    asset = Asset(tenant_id=user.tenant_id, name="logo.png", file_path="k/logo.png", file_type="image/png", file_size=1)
    db.add(asset)
    await db.flush()
    db.add_all([
        event(user.tenant_id, EventType.view, 0, asset.id),
        event(user.tenant_id, EventType.view, 1, asset.id),
        event(user.tenant_id, EventType.download, 2, asset.id),
        event(user.tenant_id, EventType.upload, 3, asset.id),
        event(user.tenant_id, EventType.view, 9),
        event(user.tenant_id, EventType.view, 10),
        event(user.tenant_id, EventType.view, 30),
    ])
    await db.commit()

    overview = await AnalyticsService(db).overview(user.tenant_id, now=NOW)

    assert overview["total_views"] == 5
    assert overview["total_downloads"] == 1
    assert overview["total_uploads"] == 1
    # 4 events this week against 2 the week before
    assert overview["trend"] == 100
    assert overview["top_assets"] == [{"asset_id": asset.id, "name": "logo.png", "count": 3}]

    daily = overview["daily_stats"]
    assert len(daily) == 7
    assert daily[-1] == {"date": "Oct 19", "views": 1, "downloads": 0, "uploads": 0}
    assert daily[0]["date"] == "Oct 13"


async def test_unknown_event_type_is_rejected(db, user):
    with pytest.raises(ContentValidationError):
        await AnalyticsService(db).record_event(user.tenant_id, "share")


async def test_signed_url_requests_are_counted(client, auth_headers):
    uploaded = await client.post(
        "/api/v1/assets/",
        files={"file": ("a.txt", b"abc", "text/plain")},
        headers=auth_headers,
    )
    asset_id = uploaded.json()["asset"]["id"]
    await client.get(f"/api/v1/assets/{asset_id}/url", headers=auth_headers)
    await client.get(f"/api/v1/assets/{asset_id}/url", params={"action": "download"}, headers=auth_headers)
    await client.get(f"/api/v1/assets/{asset_id}/url", params={"action": "thumbnail"}, headers=auth_headers)

    overview = (await client.get("/api/v1/analytics/overview", headers=auth_headers)).json()
    assert (overview["total_views"], overview["total_downloads"], overview["total_uploads"]) == (1, 1, 1)

    dashboard = (await client.get("/api/v1/analytics/dashboard", headers=auth_headers)).json()
    assert dashboard == {"total_assets": 1, "total_folders": 0, "recent_uploads": 1}


async def test_events_endpoint(client, auth_headers):
    response = await client.post("/api/v1/analytics/events", json={"event_type": "view"}, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["event_type"] == "view"

    invalid = await client.post("/api/v1/analytics/events", json={"event_type": "like"}, headers=auth_headers)
    assert invalid.status_code == 422
