from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.config import settings
from aiva.core.exceptions import DuplicateFolderError, FolderValidationError, NotFoundError
from aiva.db.base import as_utc, utcnow
from aiva.db.models.asset import Asset
from aiva.db.models.folder import Folder
from aiva.utils.logger import get_logger, log_database_operation

logger = get_logger("services.folder_service")


def validate_folder_name(name: Optional[str]) -> str:
    """Return the trimmed name or raise before anything touches the database."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise FolderValidationError("Folder name cannot be empty")
    if len(trimmed) > settings.FOLDER_NAME_MAX_LENGTH:
        raise FolderValidationError(
            f"Folder name is too long (max {settings.FOLDER_NAME_MAX_LENGTH} characters)"
        )
    return trimmed


def suggest_alternatives(name: str, year: Optional[int] = None) -> List[str]:
    year = year or datetime.now().year
    return [
        f"{name}_v2",
        f"{name}_new",
        f"{name}_{year}",
        f"{name}_projects",
        f"{name}_docs",
        f"Personal_{name}",
        f"Work_{name}",
    ]


class FolderService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_conflict(self, tenant_id: str, name: str, exclude_id: Optional[str] = None) -> Optional[str]:
        """Name of an existing folder equal to ``name`` ignoring case, if any."""
        stmt = select(Folder.name).where(
            Folder.tenant_id == tenant_id,
            func.lower(Folder.name) == name.strip().lower(),
        )
        if exclude_id:
            stmt = stmt.where(Folder.id != exclude_id)

        log_database_operation(logger, "SELECT", "folders", tenant_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def check_name(self, tenant_id: str, name: str) -> dict:
        trimmed = validate_folder_name(name)
        existing = await self.find_conflict(tenant_id, trimmed)
        if existing:
            return {
                "available": False,
                "name": trimmed,
                "existing_name": existing,
                "suggestions": suggest_alternatives(existing),
            }
        return {"available": True, "name": trimmed, "existing_name": None, "suggestions": []}

    async def create_folder(
        self,
        tenant_id: str,
        user_id: Optional[str],
        name: str,
        description: Optional[str] = None,
    ) -> Folder:
        trimmed = validate_folder_name(name)

        existing = await self.find_conflict(tenant_id, trimmed)
        if existing:
            raise DuplicateFolderError(trimmed, existing, suggest_alternatives(existing))

        folder = Folder(
            tenant_id=tenant_id,
            name=trimmed,
            description=description,
            created_by=user_id,
        )
        self.db.add(folder)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent create with the same name
            await self.db.rollback()
            existing = await self.find_conflict(tenant_id, trimmed) or trimmed
            logger.info(f"Unique index rejected folder '{trimmed}' for tenant {tenant_id}")
            raise DuplicateFolderError(trimmed, existing, suggest_alternatives(existing))

        await self.db.refresh(folder)
        log_database_operation(logger, "INSERT", "folders", folder.id)
        logger.info(f"Created folder '{folder.name}' for tenant {tenant_id}")
        return folder

    async def get_folder(self, tenant_id: str, folder_id: str) -> Folder:
        result = await self.db.execute(
            select(Folder).where(Folder.id == folder_id, Folder.tenant_id == tenant_id)
        )
        folder = result.scalar_one_or_none()
        if not folder:
            raise NotFoundError("Folder not found")
        return folder

    async def find_by_name(self, tenant_id: str, name: str) -> Optional[Folder]:
        result = await self.db.execute(
            select(Folder).where(
                Folder.tenant_id == tenant_id,
                func.lower(Folder.name) == name.strip().lower(),
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve_folder(
        self,
        tenant_id: str,
        folder_id: Optional[str] = None,
        folder_name: Optional[str] = None,
    ) -> Optional[Folder]:
        """Look a folder up by id, or by case-insensitive name when no id is given."""
        if folder_id:
            return await self.get_folder(tenant_id, folder_id)
        if folder_name:
            return await self.find_by_name(tenant_id, folder_name)
        return None

    async def list_folders(self, tenant_id: str) -> List[dict]:
        """Folders newest first, each paired with its asset count."""
        log_database_operation(logger, "SELECT", "folders", tenant_id)
        asset_counts = (
            select(Asset.folder_id, func.count(Asset.id).label("asset_count"))
            .where(Asset.tenant_id == tenant_id)
            .group_by(Asset.folder_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Folder, func.coalesce(asset_counts.c.asset_count, 0))
            .outerjoin(asset_counts, asset_counts.c.folder_id == Folder.id)
            .where(Folder.tenant_id == tenant_id)
            .order_by(Folder.created_at.desc())
        )
        return [
            {"folder": folder, "asset_count": int(count)}
            for folder, count in result.all()
        ]

    async def folder_summary(self, tenant_id: str) -> dict:
        """Folder listing with the totals the assistant reports back."""
        rows = await self.list_folders(tenant_id)
        if not rows:
            return {
                "message": "No folders found. You can create your first folder by saying "
                           "'Create folder called [FolderName]'.",
                "folders": [],
                "total_count": 0,
            }

        recent_cutoff = utcnow() - timedelta(days=7)
        folders = [
            {
                "id": row["folder"].id,
                "name": row["folder"].name,
                "description": row["folder"].description or "No description",
                "asset_count": row["asset_count"],
                "created_at": as_utc(row["folder"].created_at).date().isoformat(),
                "created_recently": as_utc(row["folder"].created_at) > recent_cutoff,
            }
            for row in rows
        ]
        total_folders = len(folders)
        total_assets = sum(f["asset_count"] for f in folders)
        recent = sum(1 for f in folders if f["created_recently"])

        message = (
            f"Found {total_folders} folder{'s' if total_folders != 1 else ''} containing "
            f"{total_assets} asset{'s' if total_assets != 1 else ''} total."
        )
        if recent:
            message += f" {recent} folder{'s' if recent != 1 else ''} created recently."

        return {
            "message": message,
            "folders": folders,
            "total_count": total_folders,
            "total_assets": total_assets,
        }

    async def update_folder(
        self,
        tenant_id: str,
        folder_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Folder:
        folder = await self.get_folder(tenant_id, folder_id)

        if name is not None:
            trimmed = validate_folder_name(name)
            existing = await self.find_conflict(tenant_id, trimmed, exclude_id=folder.id)
            if existing:
                raise DuplicateFolderError(trimmed, existing, suggest_alternatives(existing))
            folder.name = trimmed
        if description is not None:
            folder.description = description

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.find_conflict(tenant_id, name, exclude_id=folder_id) or name.strip()
            raise DuplicateFolderError(name.strip(), existing, suggest_alternatives(existing))

        await self.db.refresh(folder)
        log_database_operation(logger, "UPDATE", "folders", folder.id)
        return folder

    async def delete_folder(self, tenant_id: str, folder_id: str) -> None:
        """Delete a folder; its assets stay and become unfiled."""
        folder = await self.get_folder(tenant_id, folder_id)

        await self.db.execute(
            update(Asset)
            .where(Asset.tenant_id == tenant_id, Asset.folder_id == folder.id)
            .values(folder_id=None)
        )
        await self.db.execute(
            delete(Folder).where(Folder.id == folder.id, Folder.tenant_id == tenant_id)
        )
        await self.db.commit()
        log_database_operation(logger, "DELETE", "folders", folder_id)
        logger.info(f"Deleted folder {folder_id} for tenant {tenant_id}")
