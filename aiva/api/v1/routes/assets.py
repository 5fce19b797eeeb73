from typing import Literal, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.api.deps import get_content_analyzer, get_embedding_service, get_storage_service
from aiva.core.auth import CurrentUser, get_current_user
from aiva.core.config import settings
from aiva.core.exceptions import AivaError, NotConfiguredError, ProviderError, UploadBlockedError
from aiva.core.rate_limiter import rate_limit_dependency
from aiva.db.sessions import AsyncSessionLocal, get_db
from aiva.services.asset_embedding_service import AssetEmbeddingService
from aiva.services.asset_service import AssetService
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.gemini_service import GeminiContentAnalyzer
from aiva.services.search_service import SearchService
from aiva.services.storage_service import StorageService
from aiva.services.verification_service import VerificationService
from aiva.utils.dto.asset import (
    AssetFromUrl,
    AssetResponse,
    AssetSearchResponse,
    AssetSearchResult,
    AssetUpdate,
    AssetUploadResponse,
    AssetUrlResponse,
)
from aiva.utils.file_types import is_image
from aiva.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def embed_uploaded_asset(
    tenant_id: str,
    asset_id: str,
    storage: StorageService,
    embeddings: GeminiEmbeddingService,
):
    """Background task: runs after the response with its own database session."""
    async with AsyncSessionLocal() as db:
        try:
            await AssetEmbeddingService(db, storage, embeddings).generate_for_asset(tenant_id, asset_id)
        except AivaError as e:
            logger.warning(f"Embedding generation for asset {asset_id} failed: {e.message}")


def parse_tags(raw: Optional[str]) -> Optional[list]:
    if not raw:
        return None
    tags = [tag.strip() for tag in raw.split(",") if tag.strip()]
    return tags or None


@router.get("/", response_model=list[AssetResponse])
async def list_assets(
    folder_id: Optional[str] = None,
    folder_name: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    """List assets newest first; ``search`` matches names case-insensitively."""
    rows = await AssetService(db, storage).list_assets(
        user.tenant_id, folder_id=folder_id, folder_name=folder_name, search=search, limit=limit
    )
    return [AssetResponse.from_asset(asset, name) for asset, name in rows]


@router.post(
    "/",
    response_model=AssetUploadResponse,
    status_code=201,
    dependencies=[Depends(rate_limit_dependency(action="uploads", max_requests=settings.UPLOADS_PER_MINUTE, window_seconds=60))],
)
async def upload_asset(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    folder_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma separated tags"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
    analyzer: GeminiContentAnalyzer = Depends(get_content_analyzer),
):
    data = await file.read()
    content_type = file.content_type or "application/octet-stream"
    logger.info(f"Uploading file '{file.filename}' for tenant {user.tenant_id}")

    warnings = []
    if is_image(content_type) and settings.VERIFY_IMAGE_UPLOADS:
        try:
            decision = await VerificationService(db, analyzer).check_upload(
                user.user_id, user.tenant_id, data, content_type
            )
        except (NotConfiguredError, ProviderError) as e:
            logger.warning(f"Content verification unavailable, uploading anyway: {e.message}")
            warnings.append("Could not verify content. Upload will proceed with caution.")
        else:
            if decision.blocked:
                raise UploadBlockedError(decision.message, decision.detected_issues)
            warnings.extend(decision.warnings)

    asset = await AssetService(db, storage).upload_asset(
        user.tenant_id,
        user.user_id,
        file.filename,
        content_type,
        data,
        folder_id=folder_id or None,
        description=description,
        tags=parse_tags(tags),
    )

    scheduled = is_image(asset.file_type)
    if scheduled:
        background_tasks.add_task(embed_uploaded_asset, user.tenant_id, asset.id, storage, embeddings)

    return AssetUploadResponse(
        asset=AssetResponse.from_asset(asset),
        warnings=warnings,
        embedding_scheduled=scheduled,
    )


@router.post("/from-url", response_model=AssetResponse, status_code=201)
async def upload_asset_from_url(
    payload: AssetFromUrl,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
):
    asset = await AssetService(db, storage, embeddings).upload_from_url(
        user.tenant_id,
        user.user_id,
        payload.url,
        folder_id=payload.folder_id,
        folder_name=payload.folder_name,
        name=payload.name,
        description=payload.description,
        tags=payload.tags,
    )
    return AssetResponse.from_asset(asset)


@router.get("/search", response_model=AssetSearchResponse)
async def search_assets(
    q: str = Query(..., min_length=1),
    limit: Optional[int] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
):
    """Semantic search over image captions with keyword fallback."""
    outcome = await SearchService(db, embeddings).search_assets(user.tenant_id, q, limit)
    results = [
        AssetSearchResult(asset=AssetResponse.from_asset(match["asset"]), similarity=match["similarity"])
        for match in outcome["results"]
    ]
    return AssetSearchResponse(
        query=q,
        mode=outcome["mode"],
        message=outcome["message"],
        total_results=len(results),
        results=results,
    )


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return AssetResponse.from_asset(await AssetService(db, storage).get_asset(user.tenant_id, asset_id))


@router.patch("/{asset_id}", response_model=AssetResponse)
async def update_asset(
    asset_id: str,
    payload: AssetUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    asset = await AssetService(db, storage).update_asset(
        user.tenant_id, asset_id, payload.model_dump(exclude_unset=True)
    )
    return AssetResponse.from_asset(asset)


@router.delete("/{asset_id}", status_code=204)
async def delete_asset(
    asset_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    await AssetService(db, storage).delete_asset(user.tenant_id, asset_id)


@router.get("/{asset_id}/url", response_model=AssetUrlResponse, summary="Signed URL for viewing or downloading")
async def asset_url(
    asset_id: str,
    action: Literal["view", "download", "thumbnail"] = "view",
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    return await AssetService(db, storage).access_url(user.tenant_id, asset_id, action)
