from typing import Any, Dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.exceptions import AivaError, NotFoundError, ProviderError
from aiva.db.models.asset import Asset
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.storage_service import StorageService
from aiva.utils.file_types import is_image
from aiva.utils.logger import get_logger, log_embedding_operation, log_database_operation
from aiva.utils import metrics

logger = get_logger("services.asset_embedding")


class AssetEmbeddingService:
    """Generates and stores caption embeddings for image assets."""

    def __init__(self, db: AsyncSession, storage: StorageService, embeddings: GeminiEmbeddingService):
        self.db = db
        self.storage = storage
        self.embeddings = embeddings

    async def _embed_asset(self, asset: Asset) -> None:
        data = await self.storage.download(asset.file_path)
        embedding = await self.embeddings.embed_image(data, asset.file_type)
        if not embedding:
            raise ProviderError("Failed to generate embedding", status_code=500)

        asset.embedding = embedding
        await self.db.commit()
        log_database_operation(logger, "UPDATE", "assets", asset.id)

    async def generate_for_asset(self, tenant_id: str, asset_id: str) -> Dict[str, Any]:
        result = await self.db.execute(
            select(Asset).where(Asset.id == asset_id, Asset.tenant_id == tenant_id)
        )
        asset = result.scalar_one_or_none()
        if not asset:
            raise NotFoundError("Asset not found")

        if not is_image(asset.file_type):
            metrics.embedding_generation_total.labels(status="skipped").inc()
            return {"success": False, "message": "Not an image"}

        log_embedding_operation(logger, "GENERATE", asset.id, tenant_id)
        try:
            await self._embed_asset(asset)
        except AivaError:
            metrics.embedding_generation_total.labels(status="failed").inc()
            raise

        metrics.embedding_generation_total.labels(status="success").inc()
        return {"success": True, "message": "Embedding generated successfully"}

    async def backfill(self, tenant_id: str) -> Dict[str, Any]:
        """Embed every image asset that has none yet, one at a time."""
        result = await self.db.execute(
            select(Asset)
            .where(
                Asset.tenant_id == tenant_id,
                Asset.embedding.is_(None),
                Asset.file_type.like("image/%"),
            )
            .order_by(Asset.created_at)
        )
        assets = result.scalars().all()

        if not assets:
            return {"success": True, "message": "No assets to process", "processed": 0}

        logger.info(f"Backfilling embeddings for {len(assets)} assets (tenant: {tenant_id})")
        processed = failed = 0
        for asset in assets:
            try:
                await self._embed_asset(asset)
            except AivaError as e:
                failed += 1
                metrics.embedding_generation_total.labels(status="failed").inc()
                log_embedding_operation(logger, "FAILED", asset.id, tenant_id, error=e.message)
                continue

            processed += 1
            metrics.embedding_generation_total.labels(status="success").inc()
            log_embedding_operation(logger, "GENERATE", asset.id, tenant_id)

        return {
            "success": True,
            "total": len(assets),
            "processed": processed,
            "failed": failed,
            "message": f"Processed {processed} assets, {failed} failed",
        }
