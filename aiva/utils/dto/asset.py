from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class AssetResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    folder_id: Optional[str] = None
    folder_name: Optional[str] = None
    owner_id: Optional[str] = None
    file_path: str
    file_type: str
    file_size: int
    tags: List[str] = Field(default_factory=list)
    has_embedding: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_asset(cls, asset, folder_name: Optional[str] = None) -> "AssetResponse":
        return cls(
            id=asset.id,
            name=asset.name,
            description=asset.description,
            folder_id=asset.folder_id,
            folder_name=folder_name,
            owner_id=asset.owner_id,
            file_path=asset.file_path,
            file_type=asset.file_type,
            file_size=asset.file_size,
            tags=asset.tags or [],
            has_embedding=asset.embedding is not None,
            created_at=asset.created_at,
            updated_at=asset.updated_at,
        )


class AssetUploadResponse(BaseModel):
    asset: AssetResponse
    warnings: List[str] = Field(default_factory=list)
    embedding_scheduled: bool = False


class AssetUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    folder_id: Optional[str] = Field(None, description="Target folder; null moves the asset out of its folder")


class AssetFromUrl(BaseModel):
    url: str = Field(..., min_length=1)
    folder_id: Optional[str] = None
    folder_name: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class AssetUrlResponse(BaseModel):
    url: str
    expires_in: int
    action: Literal["view", "download", "thumbnail"]


class AssetSearchResult(BaseModel):
    asset: AssetResponse
    similarity: Optional[float] = Field(None, description="Cosine similarity for semantic matches")


class AssetSearchResponse(BaseModel):
    query: str
    mode: Literal["semantic", "keyword"]
    message: str
    total_results: int
    results: List[AssetSearchResult]
