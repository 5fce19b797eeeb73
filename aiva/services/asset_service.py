from typing import Any, Dict, List, Optional, Tuple
import httpx
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.config import settings
from aiva.core.exceptions import (
    ContentValidationError,
    FolderValidationError,
    NotFoundError,
    PartialDeletionError,
    ProviderError,
    StorageError,
)
from aiva.db.models.analytics_event import EventType
from aiva.db.models.asset import Asset
from aiva.db.models.folder import Folder
from aiva.services.analytics_service import AnalyticsService
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.folder_service import FolderService
from aiva.services.storage_service import (
    StorageService,
    TEMP_PREFIX,
    key_belongs_to_tenant,
    object_key,
    temp_object_key,
)
from aiva.utils.file_types import (
    extension_for_content_type,
    extension_of,
    filename_from_url,
    is_image,
)
from aiva.utils.logger import get_logger, log_database_operation, log_embedding_operation
from aiva.utils import metrics

logger = get_logger("services.asset_service")

ACCESS_ACTIONS = {"view", "download", "thumbnail"}
URL_FETCH_TIMEOUT = 30.0


class AssetService:
    def __init__(
        self,
        db: AsyncSession,
        storage: StorageService,
        embeddings: Optional[GeminiEmbeddingService] = None,
    ):
        self.db = db
        self.storage = storage
        self.embeddings = embeddings
        self.folders = FolderService(db)
        self.analytics = AnalyticsService(db)

    async def _embed(self, tenant_id: str, label: str, data: bytes, content_type: str) -> Optional[List[float]]:
        if not self.embeddings or not is_image(content_type):
            return None
        embedding = await self.embeddings.embed_image(data, content_type)
        status = "success" if embedding else "failed"
        metrics.embedding_generation_total.labels(status=status).inc()
        log_embedding_operation(logger, "GENERATE", label, tenant_id, status=status)
        return embedding

    async def _insert(self, asset: Asset, restore_to: Optional[str] = None) -> Asset:
        """
        Insert the row with its upload event. If that fails the stored object
        is removed, or moved back to ``restore_to`` when it came from there.
        """
        key = asset.file_path
        self.db.add(asset)
        try:
            await self.db.flush()
            await self.analytics.record_event(
                asset.tenant_id, EventType.upload.value, asset.id, commit=False
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to insert asset row for {key}: {e}")
            if restore_to:
                await self.storage.move(key, restore_to)
            else:
                await self.storage.remove(key)
            raise StorageError(f"Failed to save asset: {e}") from e

        await self.db.refresh(asset)
        log_database_operation(logger, "INSERT", "assets", asset.id)
        return asset

    async def upload_asset(
        self,
        tenant_id: str,
        user_id: Optional[str],
        filename: str,
        content_type: Optional[str],
        data: bytes,
        folder_id: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Asset:
        if not data:
            raise ContentValidationError("Uploaded file is empty")
        if folder_id:
            await self.folders.get_folder(tenant_id, folder_id)

        content_type = content_type or "application/octet-stream"
        ext = extension_of(filename) or extension_for_content_type(content_type)
        key = await self.storage.upload(object_key(tenant_id, ext), data)

        asset = Asset(
            tenant_id=tenant_id,
            folder_id=folder_id,
            owner_id=user_id,
            name=filename or f"asset.{ext}",
            description=description,
            file_path=key,
            file_type=content_type,
            file_size=len(data),
            tags=tags or None,
        )
        asset = await self._insert(asset)
        logger.info(f"Uploaded asset {asset.id} ({asset.name}) for tenant {tenant_id}")
        return asset

    async def stage_upload(
        self,
        tenant_id: str,
        filename: str,
        content_type: Optional[str],
        data: bytes,
    ) -> Dict[str, Any]:
        """Park a file under the tenant's temp prefix until the assistant files it."""
        if not data:
            raise ContentValidationError("Uploaded file is empty")
        content_type = content_type or "application/octet-stream"
        ext = extension_of(filename) or extension_for_content_type(content_type)
        key = await self.storage.upload(temp_object_key(tenant_id, ext), data)
        return {
            "path": key,
            "name": filename or key.rsplit("/", 1)[-1],
            "type": content_type,
            "size": len(data),
        }

    async def discard_staged_upload(self, tenant_id: str, temp_file_path: str) -> bool:
        self._check_staged_key(tenant_id, temp_file_path)
        return await self.storage.remove(temp_file_path)

    def _check_staged_key(self, tenant_id: str, key: str) -> None:
        if not key_belongs_to_tenant(key, tenant_id) or f"/{TEMP_PREFIX}/" not in key:
            raise NotFoundError("Staged file not found")

    async def _destination_folder(
        self,
        tenant_id: str,
        user_id: Optional[str],
        folder_id: Optional[str],
        folder_name: Optional[str],
        create_missing: bool,
    ) -> Folder:
        folder = await self.folders.resolve_folder(tenant_id, folder_id, folder_name)
        if folder:
            return folder
        if folder_name and create_missing:
            return await self.folders.create_folder(tenant_id, user_id, folder_name)
        if folder_name:
            raise NotFoundError("Folder not found by name")
        if create_missing:
            raise FolderValidationError(
                "Please specify which folder to upload to (e.g., 'Documents', 'Images', etc.)"
            )
        raise FolderValidationError("Provide folder_id or folder_name")

    async def upload_from_url(
        self,
        tenant_id: str,
        user_id: Optional[str],
        url: str,
        folder_id: Optional[str] = None,
        folder_name: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Asset:
        url = (url or "").strip()
        if not url:
            raise ContentValidationError("Missing 'url' for upload")

        folder = await self._destination_folder(tenant_id, user_id, folder_id, folder_name, create_missing=False)

        try:
            async with httpx.AsyncClient(timeout=URL_FETCH_TIMEOUT, follow_redirects=True) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to fetch file: {e}", status_code=502) from e
        if response.status_code >= 400:
            raise ProviderError(f"Failed to fetch file: {response.status_code}", status_code=502)

        content_type = response.headers.get("content-type", "application/octet-stream").split(";")[0]
        data = response.content

        inferred = name or filename_from_url(url) or "asset"
        ext = extension_of(inferred) or extension_for_content_type(content_type)
        final_name = inferred if extension_of(inferred) else f"{inferred}.{ext}"

        key = await self.storage.upload(object_key(tenant_id, ext), data)
        embedding = await self._embed(tenant_id, key, data, content_type)

        asset = Asset(
            tenant_id=tenant_id,
            folder_id=folder.id,
            owner_id=user_id,
            name=final_name,
            description=description,
            file_path=key,
            file_type=content_type,
            file_size=len(data),
            tags=tags or None,
            embedding=embedding,
        )
        asset = await self._insert(asset)
        logger.info(f"Imported asset {asset.id} from {url} for tenant {tenant_id}")
        return asset

    async def place_staged_upload(
        self,
        tenant_id: str,
        user_id: Optional[str],
        temp_file_path: str,
        folder_id: Optional[str] = None,
        folder_name: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Asset:
        """Move a staged chat upload into a folder, creating the folder if needed."""
        temp_file_path = (temp_file_path or "").strip()
        if not temp_file_path:
            raise ContentValidationError("Missing 'temp_file_path' for upload")
        self._check_staged_key(tenant_id, temp_file_path)

        folder = await self._destination_folder(tenant_id, user_id, folder_id, folder_name, create_missing=True)

        data = await self.storage.download(temp_file_path)
        content_type = self.storage.content_type(temp_file_path)
        ext = extension_of(temp_file_path) or "bin"
        final_key = await self.storage.move(temp_file_path, object_key(tenant_id, ext))
        embedding = await self._embed(tenant_id, final_key, data, content_type)

        asset = Asset(
            tenant_id=tenant_id,
            folder_id=folder.id,
            owner_id=user_id,
            name=name or temp_file_path.rsplit("/", 1)[-1],
            description=description,
            file_path=final_key,
            file_type=content_type,
            file_size=len(data),
            tags=tags or None,
            embedding=embedding,
        )
        asset = await self._insert(asset, restore_to=temp_file_path)
        logger.info(f"Filed staged upload into folder '{folder.name}' as asset {asset.id}")
        return asset

    async def get_asset(self, tenant_id: str, asset_id: str) -> Asset:
        result = await self.db.execute(
            select(Asset).where(Asset.id == asset_id, Asset.tenant_id == tenant_id)
        )
        asset = result.scalar_one_or_none()
        if not asset:
            raise NotFoundError("Asset not found")
        return asset

    async def list_assets(
        self,
        tenant_id: str,
        folder_id: Optional[str] = None,
        folder_name: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[Asset, Optional[str]]]:
        """Assets newest first, each paired with its folder name."""
        stmt = (
            select(Asset, Folder.name)
            .outerjoin(Folder, Folder.id == Asset.folder_id)
            .where(Asset.tenant_id == tenant_id)
        )
        if folder_id:
            stmt = stmt.where(Asset.folder_id == folder_id)
        elif folder_name:
            stmt = stmt.where(func.lower(Folder.name) == folder_name.strip().lower())
        if search and search.strip():
            stmt = stmt.where(Asset.name.ilike(f"%{search.strip()}%"))

        stmt = stmt.order_by(Asset.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)

        log_database_operation(logger, "SELECT", "assets", tenant_id)
        result = await self.db.execute(stmt)
        return [(asset, name) for asset, name in result.all()]

    async def update_asset(self, tenant_id: str, asset_id: str, changes: Dict[str, Any]) -> Asset:
        asset = await self.get_asset(tenant_id, asset_id)

        if "folder_id" in changes and changes["folder_id"]:
            await self.folders.get_folder(tenant_id, changes["folder_id"])
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ContentValidationError("Asset name cannot be empty")
            changes["name"] = name

        for field_name in ("name", "description", "tags", "folder_id"):
            if field_name in changes:
                setattr(asset, field_name, changes[field_name] or None)

        await self.db.commit()
        await self.db.refresh(asset)
        log_database_operation(logger, "UPDATE", "assets", asset.id)
        return asset

    async def delete_asset(self, tenant_id: str, asset_id: str) -> None:
        """
        Remove the stored object, then the row. A storage failure leaves the
        row in place; a row failure after the object is gone raises
        ``PartialDeletionError``.
        """
        asset = await self.get_asset(tenant_id, asset_id)

        try:
            await self.storage.remove(asset.file_path)
        except StorageError:
            logger.error(f"Storage delete failed for asset {asset_id}, row kept")
            raise

        try:
            await self.db.execute(
                delete(Asset).where(Asset.id == asset.id, Asset.tenant_id == tenant_id)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Asset {asset_id} removed from storage but row delete failed: {e}")
            raise PartialDeletionError(
                "File deleted from storage but failed to remove database record"
            ) from e

        log_database_operation(logger, "DELETE", "assets", asset_id)
        logger.info(f"Deleted asset {asset_id} for tenant {tenant_id}")

    async def access_url(self, tenant_id: str, asset_id: str, action: str = "view") -> Dict[str, Any]:
        """Signed link to the asset's object; views and downloads are counted."""
        if action not in ACCESS_ACTIONS:
            raise ContentValidationError(f"Unknown action: {action}")

        asset = await self.get_asset(tenant_id, asset_id)
        url = self.storage.create_signed_url(asset.file_path)

        if action in (EventType.view.value, EventType.download.value):
            await self.analytics.record_event(tenant_id, action, asset.id)

        return {"url": url, "expires_in": settings.SIGNED_URL_EXPIRY_SECONDS, "action": action}
