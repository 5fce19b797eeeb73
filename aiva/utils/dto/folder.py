from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class FolderCreate(BaseModel):
    name: str = Field(..., description="Folder name, unique per tenant ignoring case")
    description: Optional[str] = None


class FolderUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class FolderResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FolderWithCount(FolderResponse):
    asset_count: int = 0


class FolderNameCheck(BaseModel):
    name: str


class FolderNameCheckResponse(BaseModel):
    available: bool
    name: str
    existing_name: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)
