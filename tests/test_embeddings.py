import pytest
from conftest import FakeEmbeddings

from aiva.core.exceptions import NotFoundError, ProviderError
from aiva.services.asset_embedding_service import AssetEmbeddingService
from aiva.services.asset_service import AssetService


async def test_generate_skips_non_images(db, user, storage, embeddings):
    asset = await AssetService(db, storage).upload_asset(user.tenant_id, None, "a.txt", "text/plain", b"hi")
    result = await AssetEmbeddingService(db, storage, embeddings).generate_for_asset(user.tenant_id, asset.id)
    assert result == {"success": False, "message": "Not an image"}


async def test_generate_for_missing_asset(db, user, storage, embeddings):
    with pytest.raises(NotFoundError):
        await AssetEmbeddingService(db, storage, embeddings).generate_for_asset(user.tenant_id, "nope")


async def test_generate_failure_is_reported(db, user, storage):
    asset = await AssetService(db, storage).upload_asset(user.tenant_id, None, "a.png", "image/png", b"png")
    service = AssetEmbeddingService(db, storage, FakeEmbeddings(fail=True))

    with pytest.raises(ProviderError) as exc_info:
        await service.generate_for_asset(user.tenant_id, asset.id)
    assert exc_info.value.message == "Failed to generate embedding"
    assert exc_info.value.status_code == 500


async def test_backfill_embeds_only_missing_images(db, user, storage, embeddings):
    assets = AssetService(db, storage)
    first = await assets.upload_asset(user.tenant_id, None, "a.png", "image/png", b"a")
    await assets.upload_asset(user.tenant_id, None, "b.jpg", "image/jpeg", b"b")
    await assets.upload_asset(user.tenant_id, None, "c.txt", "text/plain", b"c")
    service = AssetEmbeddingService(db, storage, embeddings)
    await service.generate_for_asset(user.tenant_id, first.id)

    result = await service.backfill(user.tenant_id)

    assert result == {
        "success": True,
        "total": 1,
        "processed": 1,
        "failed": 0,
        "message": "Processed 1 assets, 0 failed",
    }
    assert await service.backfill(user.tenant_id) == {
        "success": True,
        "message": "No assets to process",
        "processed": 0,
    }


async def test_backfill_counts_failures(db, user, storage):
    assets = AssetService(db, storage)
    await assets.upload_asset(user.tenant_id, None, "a.png", "image/png", b"a")
    await assets.upload_asset(user.tenant_id, None, "b.png", "image/png", b"b")

    result = await AssetEmbeddingService(db, storage, FakeEmbeddings(fail=True)).backfill(user.tenant_id)

    assert (result["processed"], result["failed"]) == (0, 2)
    assert result["message"] == "Processed 0 assets, 2 failed"


async def test_embedding_endpoints(client, auth_headers):
    uploaded = await client.post(
        "/api/v1/assets/",
        files={"file": ("a.txt", b"abc", "text/plain")},
        headers=auth_headers,
    )
    asset_id = uploaded.json()["asset"]["id"]

    generated = await client.post("/api/v1/embeddings/generate", json={"assetId": asset_id}, headers=auth_headers)
    assert generated.json() == {"success": False, "message": "Not an image"}

    backfill = await client.post("/api/v1/embeddings/backfill", headers=auth_headers)
    assert backfill.json()["message"] == "No assets to process"
