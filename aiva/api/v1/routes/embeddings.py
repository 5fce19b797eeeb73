from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.api.deps import get_embedding_service, get_storage_service
from aiva.core.auth import CurrentUser, get_current_user
from aiva.db.sessions import get_db
from aiva.services.asset_embedding_service import AssetEmbeddingService
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.storage_service import StorageService
from aiva.utils.dto.embedding import BackfillResponse, EmbeddingRequest, EmbeddingResponse

router = APIRouter()


@router.post("/generate", response_model=EmbeddingResponse)
async def generate_embedding(
    payload: EmbeddingRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
):
    return await AssetEmbeddingService(db, storage, embeddings).generate_for_asset(user.tenant_id, payload.assetId)


@router.post("/backfill", response_model=BackfillResponse, summary="Embed every image asset that has none")
async def backfill_embeddings(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
):
    return await AssetEmbeddingService(db, storage, embeddings).backfill(user.tenant_id)
