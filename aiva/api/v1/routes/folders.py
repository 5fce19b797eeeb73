from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.auth import CurrentUser, get_current_user
from aiva.db.sessions import get_db
from aiva.services.asset_service import AssetService
from aiva.services.folder_service import FolderService
from aiva.services.storage_service import StorageService
from aiva.api.deps import get_storage_service
from aiva.utils.dto.asset import AssetResponse
from aiva.utils.dto.folder import (
    FolderCreate,
    FolderNameCheck,
    FolderNameCheckResponse,
    FolderResponse,
    FolderUpdate,
    FolderWithCount,
)
from aiva.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=list[FolderWithCount])
async def list_folders(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the tenant's folders, newest first, with asset counts."""
    rows = await FolderService(db).list_folders(user.tenant_id)
    return [
        FolderWithCount.model_validate(row["folder"]).model_copy(update={"asset_count": row["asset_count"]})
        for row in rows
    ]


@router.post("/", response_model=FolderResponse, status_code=201)
async def create_folder(
    payload: FolderCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FolderService(db).create_folder(
        user.tenant_id, user.user_id, payload.name, payload.description
    )


@router.post("/check-name", response_model=FolderNameCheckResponse, summary="Check a folder name for duplicates")
async def check_folder_name(
    payload: FolderNameCheck,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FolderService(db).check_name(user.tenant_id, payload.name)


@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FolderService(db).get_folder(user.tenant_id, folder_id)


@router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: str,
    payload: FolderUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FolderService(db).update_folder(
        user.tenant_id, folder_id, name=payload.name, description=payload.description
    )


@router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FolderService(db).delete_folder(user.tenant_id, folder_id)


@router.get("/{folder_id}/assets", response_model=list[AssetResponse])
async def list_folder_assets(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    folder = await FolderService(db).get_folder(user.tenant_id, folder_id)
    rows = await AssetService(db, storage).list_assets(user.tenant_id, folder_id=folder.id)
    return [AssetResponse.from_asset(asset, name) for asset, name in rows]
