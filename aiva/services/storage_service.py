import mimetypes
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode
from uuid import uuid4

import aiofiles
import aiofiles.os

from aiva.core.config import settings
from aiva.core.exceptions import NotFoundError, StorageError
from aiva.core.security import sign_object_key, verify_object_signature
from aiva.utils.logger import get_logger, log_storage_operation
from aiva.utils import metrics

logger = get_logger("services.storage")

TEMP_PREFIX = "temp"


def object_key(tenant_id: str, extension: str) -> str:
    """Final key for a tenant object: ``{tenant}/{uuid}.{ext}``."""
    return f"{tenant_id}/{uuid4()}.{extension}"


def temp_object_key(tenant_id: str, extension: str) -> str:
    """Key for an upload staged for the assistant: ``{tenant}/temp/{uuid}.{ext}``."""
    return f"{tenant_id}/{TEMP_PREFIX}/{uuid4()}.{extension}"


def key_belongs_to_tenant(key: str, tenant_id: str) -> bool:
    return key.startswith(f"{tenant_id}/")


class StorageService:
    """Tenant-prefixed object storage on the local filesystem."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root or settings.STORAGE_DIR)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or key.startswith("/") or ".." in Path(key).parts:
            raise StorageError(f"Invalid storage key: {key}")
        return self.root / key

    async def upload(self, key: str, data: bytes) -> str:
        """Write an object and return its key."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(path, "wb") as buffer:
                await buffer.write(data)
        except OSError as e:
            metrics.storage_operations.labels(operation="upload", status="failed").inc()
            raise StorageError(f"Failed to store file: {e}") from e

        metrics.storage_operations.labels(operation="upload", status="success").inc()
        log_storage_operation(logger, "UPLOAD", key, size=len(data))
        return key

    async def download(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise NotFoundError(f"Object not found: {key}")
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def move(self, source: str, destination: str) -> str:
        src, dst = self._path(source), self._path(destination)
        if not src.exists():
            raise NotFoundError(f"Object not found: {source}")
        dst.parent.mkdir(parents=True, exist_ok=True)
        try:
            await aiofiles.os.rename(src, dst)
        except OSError as e:
            metrics.storage_operations.labels(operation="move", status="failed").inc()
            raise StorageError(f"Failed to move file: {e}") from e

        metrics.storage_operations.labels(operation="move", status="success").inc()
        log_storage_operation(logger, "MOVE", f"{source} -> {destination}")
        return destination

    async def remove(self, key: str) -> bool:
        """Delete an object. Returns False when it was already gone."""
        path = self._path(key)
        if not path.exists():
            logger.warning(f"Object {key} already absent from storage")
            return False
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            metrics.storage_operations.labels(operation="remove", status="failed").inc()
            raise StorageError(f"Failed to delete file from storage: {e}") from e

        metrics.storage_operations.labels(operation="remove", status="success").inc()
        log_storage_operation(logger, "REMOVE", key)
        return True

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def local_path(self, key: str) -> Path:
        return self._path(key)

    def content_type(self, key: str) -> str:
        guessed, _ = mimetypes.guess_type(key)
        return guessed or "application/octet-stream"

    def create_signed_url(self, key: str, expires_in: Optional[int] = None) -> str:
        """Time-limited read link for a private object."""
        expires = int(time.time()) + (expires_in or settings.SIGNED_URL_EXPIRY_SECONDS)
        query = urlencode({"expires": expires, "signature": sign_object_key(key, expires)})
        return f"{settings.PUBLIC_BASE_URL}/api/v1/storage/objects/{quote(key)}?{query}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        return verify_object_signature(key, expires, signature)
