"""
Tools the assistant model may call, and the toolbox that runs them.

Every tool runs with the identity and tenant of the caller; failures are
returned as ``{"error": ...}`` so the model sees them on the next round.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.auth import CurrentUser
from aiva.core.exceptions import AivaError, FolderValidationError
from aiva.db.models.asset import Asset
from aiva.services.asset_embedding_service import AssetEmbeddingService
from aiva.services.asset_service import AssetService
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.folder_service import FolderService
from aiva.services.search_service import SearchService, clamp_limit
from aiva.services.storage_service import StorageService
from aiva.utils.file_types import format_size_kb
from aiva.utils.logger import get_logger, log_tool_call
from aiva.utils import metrics

logger = get_logger("services.chat_tools")

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "create_folder",
        "description": "Create a new folder in the current user's tenant. Use this when user requests to create, "
                       "make, add, or set up a folder. If user says 'create a folder' without specifying a name, "
                       "ask them what they'd like to call it or suggest a name based on context.",
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Folder name - extract from user message or ask for clarification if not provided"},
                "description": {"type": "string", "description": "Optional description"},
            },
            "required": ["name"],
            "additionalProperties": False,
        },
    },
    {
        "name": "list_folders",
        "description": "List and view all folders in the current user's tenant. Use this when user asks to see, "
                       "list, view, or show all folders.",
        "parameters": {"type": "object", "properties": {}, "additionalProperties": False},
    },
    {
        "name": "upload_asset_from_url",
        "description": "Upload an asset into a folder from a public URL",
        "parameters": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "Public URL of the file"},
                "folder_id": {"type": "string", "description": "Destination folder id"},
                "folder_name": {"type": "string", "description": "Alternative to folder_id: destination folder name"},
                "name": {"type": "string", "description": "Optional desired file name, with or without extension"},
                "description": {"type": "string"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["url"],
            "additionalProperties": False,
        },
    },
    {
        "name": "upload_selected_asset",
        "description": "Use this whenever a file is attached and the user expresses ANY intent to organize, "
                       "handle, manage, save, store, keep, file, or do anything with the attached file. This "
                       "includes casual language, questions about what to do with it, or any organizational "
                       "intent. Be very liberal in interpretation.",
        "parameters": {
            "type": "object",
            "properties": {
                "temp_file_path": {"type": "string", "description": "Temporary file path in storage (provided in system prompt when file is attached)"},
                "folder_id": {"type": "string", "description": "Destination folder id"},
                "folder_name": {"type": "string", "description": "Destination folder name - infer from context or file type if user doesn't specify (e.g., 'Documents' for PDFs, 'Images' for photos)"},
                "name": {"type": "string", "description": "Optional desired file name"},
                "description": {"type": "string", "description": "Extract any description or context from user message"},
                "tags": {"type": "array", "items": {"type": "string"}, "description": "Extract any relevant tags from user message or file context"},
            },
            "required": ["temp_file_path"],
            "additionalProperties": False,
        },
    },
    {
        "name": "list_assets",
        "description": "List and view all assets or assets in a specific folder. Use this when user asks to see, "
                       "list, view, show all assets or assets in a folder.",
        "parameters": {
            "type": "object",
            "properties": {
                "folder_id": {"type": "string", "description": "Optional: Filter assets by folder ID"},
                "folder_name": {"type": "string", "description": "Optional: Filter assets by folder name"},
                "limit": {"type": "number", "description": "Maximum number of results to return (1-100, default: 20)"},
            },
            "additionalProperties": False,
        },
    },
    {
        "name": "search_assets",
        "description": "Search for assets using natural language queries. Searches across asset names, "
                       "descriptions, tags, and metadata.",
        "parameters": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query (e.g., 'logo', 'pdf documents', 'images from last month')"},
                "limit": {"type": "number", "description": "Maximum number of results to return (1-50, default: 10)"},
            },
            "required": ["query"],
            "additionalProperties": False,
        },
    },
    {
        "name": "backfill_embeddings",
        "description": "Generate embeddings for all existing images that don't have them yet. This enables "
                       "semantic search on image content. Call this when users want to search by image content "
                       "but results are empty.",
        "parameters": {"type": "object", "properties": {}, "additionalProperties": False},
    },
]

TOOL_NAMES = {tool["name"] for tool in TOOL_DEFINITIONS}


def _text(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _tags(args: Dict[str, Any]) -> Optional[List[str]]:
    tags = args.get("tags")
    if isinstance(tags, list):
        return [str(tag) for tag in tags]
    return None


def _asset_summary(asset: Asset) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "name": asset.name,
        "file_type": asset.file_type,
        "file_size": asset.file_size,
        "folder_id": asset.folder_id,
    }


class AssistantToolbox:
    """Runs tool calls on behalf of one authenticated user."""

    def __init__(
        self,
        db: AsyncSession,
        user: CurrentUser,
        storage: StorageService,
        embeddings: GeminiEmbeddingService,
    ):
        self.db = db
        self.user = user
        self.storage = storage
        self.embeddings = embeddings
        self.folders = FolderService(db)
        self.assets = AssetService(db, storage, embeddings)

    async def execute(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        handler = getattr(self, f"_tool_{name}", None) if name in TOOL_NAMES else None
        if handler is None:
            metrics.assistant_tool_calls.labels(tool="unknown", status="unknown").inc()
            log_tool_call(logger, name, self.user.tenant_id, "unknown")
            return {"error": f"Unknown tool: {name}"}

        try:
            result = await handler(args or {})
        except AivaError as e:
            metrics.assistant_tool_calls.labels(tool=name, status="error").inc()
            log_tool_call(logger, name, self.user.tenant_id, "failed", error=e.message)
            return {"error": f"Tool execution failed: {e.message}"}
        except Exception as e:
            await self.db.rollback()
            metrics.assistant_tool_calls.labels(tool=name, status="error").inc()
            logger.exception(f"Tool {name} raised unexpectedly")
            return {"error": f"Tool execution failed: {e}"}

        metrics.assistant_tool_calls.labels(tool=name, status="success").inc()
        log_tool_call(logger, name, self.user.tenant_id, "success")
        return result

    async def _tool_create_folder(self, args: Dict[str, Any]) -> Dict[str, Any]:
        name = _text(args, "name")
        if not name or not name.strip():
            raise FolderValidationError("Missing folder name")
        folder = await self.folders.create_folder(
            self.user.tenant_id, self.user.user_id, name, _text(args, "description")
        )
        return {"folder": {"id": folder.id, "name": folder.name, "description": folder.description}}

    async def _tool_list_folders(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return await self.folders.folder_summary(self.user.tenant_id)

    async def _tool_list_assets(self, args: Dict[str, Any]) -> Dict[str, Any]:
        limit = clamp_limit(args.get("limit"), default=20, maximum=100)
        rows = await self.assets.list_assets(
            self.user.tenant_id,
            folder_id=_text(args, "folder_id"),
            folder_name=_text(args, "folder_name"),
            limit=limit,
        )
        assets = [
            {
                "id": asset.id,
                "name": asset.name,
                "description": asset.description or "No description",
                "file_type": asset.file_type,
                "file_size": asset.file_size,
                "file_size_mb": f"{asset.file_size / (1024 * 1024):.2f}",
                "tags": asset.tags or [],
                "created_at": asset.created_at.isoformat() if asset.created_at else None,
                "folder": {"id": asset.folder_id, "name": folder_name},
            }
            for asset, folder_name in rows
        ]
        return {"assets": assets, "total_count": len(assets), "showing_limit": limit}

    async def _tool_search_assets(self, args: Dict[str, Any]) -> Dict[str, Any]:
        outcome = await SearchService(self.db, self.embeddings).search_assets(
            self.user.tenant_id, _text(args, "query") or "", args.get("limit")
        )
        assets = []
        for match in outcome["results"]:
            asset = match["asset"]
            entry = {
                "id": asset.id,
                "name": asset.name,
                "description": asset.description or "No description",
                "file_type": asset.file_type,
                "file_size": format_size_kb(asset.file_size),
                "tags": asset.tags or [],
                "created_at": asset.created_at.isoformat() if asset.created_at else None,
            }
            if match["similarity"] is not None:
                entry["similarity"] = f"{match['similarity']:.3f}"
            assets.append(entry)
        return {"message": outcome["message"], "assets": assets}

    async def _tool_upload_asset_from_url(self, args: Dict[str, Any]) -> Dict[str, Any]:
        asset = await self.assets.upload_from_url(
            self.user.tenant_id,
            self.user.user_id,
            _text(args, "url") or "",
            folder_id=_text(args, "folder_id"),
            folder_name=_text(args, "folder_name"),
            name=_text(args, "name"),
            description=_text(args, "description"),
            tags=_tags(args),
        )
        return {"asset": _asset_summary(asset)}

    async def _tool_upload_selected_asset(self, args: Dict[str, Any]) -> Dict[str, Any]:
        asset = await self.assets.place_staged_upload(
            self.user.tenant_id,
            self.user.user_id,
            _text(args, "temp_file_path") or "",
            folder_id=_text(args, "folder_id"),
            folder_name=_text(args, "folder_name"),
            name=_text(args, "name"),
            description=_text(args, "description"),
            tags=_tags(args),
        )
        return {"asset": _asset_summary(asset)}

    async def _tool_backfill_embeddings(self, args: Dict[str, Any]) -> Dict[str, Any]:
        details = await AssetEmbeddingService(self.db, self.storage, self.embeddings).backfill(self.user.tenant_id)
        return {
            "message": details.get("message") or "Embeddings generated successfully",
            "details": details,
        }
