from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from aiva.api.deps import get_storage_service
from aiva.core.exceptions import AccessDeniedError, NotFoundError
from aiva.services.storage_service import StorageService
from aiva.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/objects/{key:path}", summary="Serve a private object through a signed link")
async def read_object(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    storage: StorageService = Depends(get_storage_service),
):
    if not storage.verify_signature(key, expires, signature):
        logger.warning(f"Rejected storage link for {key}")
        raise AccessDeniedError("Invalid or expired link")

    if not storage.exists(key):
        raise NotFoundError("Object not found")

    return FileResponse(storage.local_path(key), media_type=storage.content_type(key))
