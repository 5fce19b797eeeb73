from datetime import datetime, timezone
from fastapi import APIRouter
from aiva.services.gemini_service import is_configured
import os

router = APIRouter()

@router.get("/", summary="Health check")
async def health():
    return {
        "message": "Welcome to AIVA Digital Asset Management API",
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "git_commit": os.getenv("GIT_COMMIT"),
        "gemini_configured": is_configured(),
    }
