from urllib.parse import urlparse

import pytest
from conftest import FakeAnalyzer
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError

from aiva.api.deps import get_content_analyzer
from aiva.core.config import settings
from aiva.core.exceptions import NotConfiguredError, NotFoundError, PartialDeletionError, StorageError
from aiva.main import app
from aiva.services.asset_service import AssetService
from aiva.services.folder_service import FolderService
from aiva.services.search_service import SearchService, clamp_limit, semantic_query


async def upload(client, headers, name="report.pdf", data=b"%PDF-1.4", content_type="application/pdf", **form):
    response = await client.post(
        "/api/v1/assets/",
        files={"file": (name, data, content_type)},
        data=form,
        headers=headers,
    )
    return response


async def test_upload_list_and_fetch(client, auth_headers, storage):
    folder = (await client.post("/api/v1/folders/", json={"name": "Docs"}, headers=auth_headers)).json()

    response = await upload(client, auth_headers, folder_id=folder["id"], tags="q3, finance")
    assert response.status_code == 201
    asset = response.json()["asset"]
    assert asset["tags"] == ["q3", "finance"]
    assert asset["file_size"] == len(b"%PDF-1.4")
    assert response.json()["embedding_scheduled"] is False
    assert storage.exists(asset["file_path"])

    listing = await client.get("/api/v1/assets/", params={"folder_name": "docs"}, headers=auth_headers)
    assert [(a["name"], a["folder_name"]) for a in listing.json()] == [("report.pdf", "Docs")]

    in_folder = await client.get(f"/api/v1/folders/{folder['id']}/assets", headers=auth_headers)
    assert len(in_folder.json()) == 1

    fetched = await client.get(f"/api/v1/assets/{asset['id']}", headers=auth_headers)
    assert fetched.json()["id"] == asset["id"]


async def test_image_upload_is_verified_and_embedded(client, auth_headers, analyzer):
    response = await upload(client, auth_headers, name="cat.png", data=b"\x89PNG", content_type="image/png")

    assert response.status_code == 201
    assert response.json()["embedding_scheduled"] is True
    assert len(analyzer.calls) == 1

    asset_id = response.json()["asset"]["id"]
    fetched = await client.get(f"/api/v1/assets/{asset_id}", headers=auth_headers)
    assert fetched.json()["has_embedding"] is True


async def test_restricted_image_is_blocked(client, auth_headers, storage):
    app.dependency_overrides[get_content_analyzer] = lambda: FakeAnalyzer({
        "is_fake": False,
        "confidence_score": 10,
        "detected_issues": ["Graphic violence"],
        "analysis_summary": "",
        "recommendations": "",
    })

    response = await upload(client, auth_headers, name="x.jpg", data=b"jpeg", content_type="image/jpeg")

    assert response.status_code == 422
    assert response.json() == {
        "error": "Content contains restricted material and cannot be uploaded",
        "detected_issues": ["Graphic violence"],
    }
    listing = await client.get("/api/v1/assets/", headers=auth_headers)
    assert listing.json() == []


async def test_upload_proceeds_when_verifier_unavailable(client, auth_headers):
    app.dependency_overrides[get_content_analyzer] = lambda: FakeAnalyzer(
        error=NotConfiguredError("GEMINI_API_KEY is not configured")
    )

    response = await upload(client, auth_headers, name="x.png", data=b"png", content_type="image/png")

    assert response.status_code == 201
    assert response.json()["warnings"] == ["Could not verify content. Upload will proceed with caution."]


async def test_update_and_delete(client, auth_headers, storage):
    asset = (await upload(client, auth_headers)).json()["asset"]

    updated = await client.patch(
        f"/api/v1/assets/{asset['id']}",
        json={"name": "  Q3 report.pdf ", "tags": ["q3"]},
        headers=auth_headers,
    )
    assert updated.json()["name"] == "Q3 report.pdf"
    assert updated.json()["description"] is None

    deleted = await client.delete(f"/api/v1/assets/{asset['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    assert not storage.exists(asset["file_path"])

    missing = await client.get(f"/api/v1/assets/{asset['id']}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Asset not found"}


async def test_assets_are_tenant_scoped(db, user, other_user, storage):
    service = AssetService(db, storage)
    asset = await service.upload_asset(user.tenant_id, user.user_id, "a.txt", "text/plain", b"hello")

    with pytest.raises(NotFoundError):
        await service.get_asset(other_user.tenant_id, asset.id)
    assert await service.list_assets(other_user.tenant_id) == []


async def test_row_failure_after_object_removal_is_partial(db, user, storage, monkeypatch):
    service = AssetService(db, storage)
    asset = await service.upload_asset(user.tenant_id, user.user_id, "a.txt", "text/plain", b"hello")
    asset_id, file_path = asset.id, asset.file_path

    async def failing_commit():
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PartialDeletionError) as exc_info:
        await service.delete_asset(user.tenant_id, asset_id)

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "File deleted from storage but failed to remove database record"
    assert not storage.exists(file_path)


async def test_storage_failure_keeps_the_row(db, user, storage, monkeypatch):
    service = AssetService(db, storage)
    asset = await service.upload_asset(user.tenant_id, user.user_id, "a.txt", "text/plain", b"hello")
    asset_id, file_path = asset.id, asset.file_path

    async def failing_remove(key):
        raise StorageError("Failed to delete file from storage: disk unavailable")

    monkeypatch.setattr(storage, "remove", failing_remove)

    with pytest.raises(StorageError):
        await service.delete_asset(user.tenant_id, asset_id)

    kept = await service.get_asset(user.tenant_id, asset_id)
    assert kept.file_path == file_path
    assert storage.exists(file_path)


async def test_failed_insert_returns_staged_file(db, user, storage, monkeypatch):
    service = AssetService(db, storage)
    await FolderService(db).create_folder(user.tenant_id, user.user_id, "Inbox")
    staged = await service.stage_upload(user.tenant_id, "cat.png", "image/png", b"\x89PNG cat")

    async def failing_flush(*args, **kwargs):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(db, "flush", failing_flush)

    with pytest.raises(StorageError):
        await service.place_staged_upload(user.tenant_id, user.user_id, staged["path"], folder_name="Inbox")

    assert storage.exists(staged["path"])
    assert await storage.download(staged["path"]) == b"\x89PNG cat"


async def test_signed_url_serves_the_object(client, auth_headers):
    asset = (await upload(client, auth_headers, name="notes.txt", data=b"hello world", content_type="text/plain")).json()["asset"]

    link = await client.get(f"/api/v1/assets/{asset['id']}/url", params={"action": "download"}, headers=auth_headers)
    assert link.json()["expires_in"] == 3600
    url = urlparse(link.json()["url"])

    served = await client.get(f"{url.path}?{url.query}")
    assert served.status_code == 200
    assert served.content == b"hello world"

    tampered = await client.get(f"{url.path}?{url.query.replace('signature=', 'signature=0')}")
    assert tampered.status_code == 403
    assert tampered.json() == {"error": "Invalid or expired link"}


async def test_keyword_search_matches_tags_exactly(db, user, storage):
    service = AssetService(db, storage)
    await service.upload_asset(user.tenant_id, None, "beach.jpg", "image/jpeg", b"1", tags=["Summer"])
    await service.upload_asset(user.tenant_id, None, "notes.txt", "text/plain", b"2", description="summer plans")
    await service.upload_asset(user.tenant_id, None, "other.txt", "text/plain", b"3", tags=["summertime"])

    outcome = await SearchService(db).search_assets(user.tenant_id, "summer")

    assert outcome["mode"] == "keyword"
    assert sorted(match["asset"].name for match in outcome["results"]) == ["beach.jpg", "notes.txt"]


async def test_semantic_matches_are_returned_with_similarity(client, auth_headers, monkeypatch):
    await upload(client, auth_headers, name="one.png", data=b"cat-bytes", content_type="image/png")
    await upload(client, auth_headers, name="two.png", data=b"dog-bytes", content_type="image/png")
    calls = []

    async def ranked(self, tenant_id, query_embedding, limit=10, threshold=None):
        calls.append((len(query_embedding), limit))
        rows = await AssetService(self.db, None).list_assets(tenant_id, search="one")
        return [{"asset": asset, "similarity": 0.91} for asset, _ in rows]

    monkeypatch.setattr(SearchService, "semantic_search", ranked)

    response = await client.get("/api/v1/assets/search", params={"q": "cat", "limit": 5}, headers=auth_headers)

    body = response.json()
    assert body["mode"] == "semantic"
    assert [r["asset"]["name"] for r in body["results"]] == ["one.png"]
    assert body["results"][0]["similarity"] == pytest.approx(0.91)
    assert calls == [(settings.EMBEDDING_DIMENSIONS, 5)]


async def test_no_semantic_match_falls_back_to_keywords(db, user, storage, embeddings, monkeypatch):
    await AssetService(db, storage).upload_asset(user.tenant_id, None, "cat.png", "image/png", b"1")

    async def nothing(self, *args, **kwargs):
        return []

    monkeypatch.setattr(SearchService, "semantic_search", nothing)

    outcome = await SearchService(db, embeddings).search_assets(user.tenant_id, "cat")

    assert outcome["mode"] == "keyword"
    assert [match["asset"].name for match in outcome["results"]] == ["cat.png"]


def test_semantic_query_ranks_by_cosine_distance_in_sql():
    stmt = semantic_query("t1", [0.5] * settings.EMBEDDING_DIMENSIONS, limit=5, threshold=0.3)
    compiled = stmt.compile(dialect=postgresql.dialect())
    sql = str(compiled)

    assert sql.count("<=>") >= 2
    assert "<=>" in sql.split("ORDER BY")[1]
    assert "LIMIT" in sql
    assert "assets.tenant_id =" in sql
    assert 0.3 in compiled.params.values()
    assert 5 in compiled.params.values()


async def test_query_embedding_of_wrong_size_skips_semantic_search(db, user):
    assert await SearchService(db).semantic_search(user.tenant_id, [1.0, 0.0]) == []


def test_search_limits_are_clamped():
    assert clamp_limit(None) == 10
    assert clamp_limit("7") == 7
    assert clamp_limit(500) == 50
    assert clamp_limit(0) == 1
