from typing import Optional
from pydantic import BaseModel


class EmbeddingRequest(BaseModel):
    assetId: str


class EmbeddingResponse(BaseModel):
    success: bool
    message: str


class BackfillResponse(BaseModel):
    success: bool
    message: str
    processed: int = 0
    total: Optional[int] = None
    failed: Optional[int] = None
