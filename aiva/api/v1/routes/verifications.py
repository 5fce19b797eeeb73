from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.api.deps import get_content_analyzer
from aiva.core.auth import CurrentUser, get_current_user
from aiva.core.config import settings
from aiva.core.exceptions import ContentValidationError
from aiva.core.rate_limiter import rate_limit_dependency
from aiva.db.sessions import get_db
from aiva.services.gemini_service import GeminiContentAnalyzer
from aiva.services.verification_service import VerificationService
from aiva.utils.dto.verification import (
    UploadCheckResponse,
    VerificationRequest,
    VerificationResponse,
    VerificationResultResponse,
)
from aiva.utils.file_types import is_image
from aiva.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

verification_rate_limit = Depends(
    rate_limit_dependency(action="verifications", max_requests=settings.VERIFICATIONS_PER_MINUTE, window_seconds=60)
)


@router.post("/", response_model=VerificationResponse, dependencies=[verification_rate_limit])
async def verify_content(
    payload: VerificationRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    analyzer: GeminiContentAnalyzer = Depends(get_content_analyzer),
):
    """Analyze an image, text or URL for manipulation and misinformation."""
    record = await VerificationService(db, analyzer).verify(
        user.user_id,
        user.tenant_id,
        payload.contentType,
        content_url=payload.contentUrl,
        content_text=payload.contentText,
    )
    return VerificationResponse(success=True, result=record)


@router.get("/", response_model=list[VerificationResultResponse])
async def list_verifications(
    limit: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    analyzer: GeminiContentAnalyzer = Depends(get_content_analyzer),
):
    return await VerificationService(db, analyzer).list_results(user.tenant_id, limit)


@router.post("/upload-check", response_model=UploadCheckResponse, dependencies=[verification_rate_limit])
async def check_upload(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    analyzer: GeminiContentAnalyzer = Depends(get_content_analyzer),
):
    """Run the pre-upload gate on an image without storing it."""
    if not is_image(file.content_type):
        raise ContentValidationError("Only images can be checked before upload")

    decision = await VerificationService(db, analyzer).check_upload(
        user.user_id, user.tenant_id, await file.read(), file.content_type
    )
    return UploadCheckResponse(
        blocked=decision.blocked,
        reason=decision.reason,
        message=decision.message,
        warnings=decision.warnings,
        detected_issues=decision.detected_issues,
    )
