from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class VerificationRequest(BaseModel):
    contentType: Literal["image", "text", "url"]
    contentUrl: Optional[str] = Field(None, description="Data URL for images, link for url checks")
    contentText: Optional[str] = None


class VerificationResultResponse(BaseModel):
    id: str
    user_id: str
    tenant_id: str
    content_type: str
    content_url: Optional[str] = None
    content_text: Optional[str] = None
    analysis_result: Dict[str, Any]
    confidence_score: float
    is_fake: bool
    detected_issues: List[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VerificationResponse(BaseModel):
    success: bool = True
    result: VerificationResultResponse


class UploadCheckResponse(BaseModel):
    blocked: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    detected_issues: List[str] = Field(default_factory=list)
