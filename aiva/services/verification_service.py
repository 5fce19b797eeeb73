"""
Content verification: safety and authenticity analysis of images, text and
URLs, and the upload gate that decides whether a verdict blocks an upload.
"""
import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.exceptions import ContentValidationError
from aiva.db.models.verification_result import VerificationResult
from aiva.services.gemini_service import GeminiContentAnalyzer
from aiva.utils.logger import get_logger, log_database_operation
from aiva.utils import metrics

logger = get_logger("services.verification")

CONTENT_TYPES = ("image", "text", "url")

RESTRICTED_KEYWORDS = (
    "violence", "protest", "blood", "gore", "racism", "hate", "weapon", "nsfw", "explicit",
)

FAKE_BLOCK_CONFIDENCE = 80

MODERATION_INSTRUCTION = """You are Content Moderation AI, an AI content safety and truth verification expert. Analyze content for:

CRITICAL - Content Restrictions (highest priority):
1. Violence, blood, gore, or graphic injuries
2. Protest imagery or civil unrest
3. Racism, hate speech, or discriminatory content
4. Weapons or threatening behavior
5. Any content that could incite violence or harm

Additional Analysis:
6. Content Moderation/AI-generated detection
7. Misinformation indicators
8. Source credibility (for URLs/text)
9. Metadata inconsistencies

Provide a detailed analysis with:
- is_fake: boolean (true if content appears fake/manipulated OR contains restricted content)
- confidence_score: 0-100 (how confident you are)
- detected_issues: array of ALL issues found (MUST include "Violence", "Protest Imagery", "Blood/Gore", "Racism", "Hate Speech", "Weapons" etc. when detected)
- analysis_summary: detailed explanation of ALL issues including safety concerns
- recommendations: Clear warning if content contains violence, protests, blood, racism, or other harmful material. State "CONTENT RESTRICTED" prominently.

Be thorough and prioritize safety. Flag ANY potentially harmful content."""

VERDICT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "is_fake": {"type": "BOOLEAN"},
        "confidence_score": {"type": "NUMBER"},
        "detected_issues": {"type": "ARRAY", "items": {"type": "STRING"}},
        "analysis_summary": {"type": "STRING"},
        "recommendations": {"type": "STRING"},
    },
    "required": ["is_fake", "confidence_score", "detected_issues", "analysis_summary", "recommendations"],
}


def parse_data_url(data_url: str):
    """Split ``data:<mime>;base64,<payload>`` into (mime, bytes)."""
    if not data_url or not data_url.startswith("data:") or "," not in data_url:
        raise ContentValidationError("Image content must be a base64 data URL")
    header, payload = data_url.split(",", 1)
    mime_type = header[len("data:"):].split(";")[0]
    if not mime_type.startswith("image/") or ";base64" not in header:
        raise ContentValidationError("Image content must be a base64 data URL")
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ContentValidationError("Image data is not valid base64")


def normalize_verdict(raw: Dict[str, Any]) -> Dict[str, Any]:
    try:
        confidence = float(raw.get("confidence_score") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    issues = raw.get("detected_issues") or []
    if not isinstance(issues, list):
        issues = [issues]
    return {
        "is_fake": bool(raw.get("is_fake", False)),
        "confidence_score": min(max(confidence, 0.0), 100.0),
        "detected_issues": [str(issue) for issue in issues],
        "analysis_summary": str(raw.get("analysis_summary") or ""),
        "recommendations": str(raw.get("recommendations") or ""),
    }


@dataclass
class UploadDecision:
    blocked: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    detected_issues: List[str] = field(default_factory=list)


def evaluate_upload(verdict: Dict[str, Any]) -> UploadDecision:
    """
    Restricted issues block regardless of confidence; a fake verdict blocks
    only above FAKE_BLOCK_CONFIDENCE and is otherwise a warning.
    """
    issues = [str(issue) for issue in verdict.get("detected_issues") or []]
    confidence = float(verdict.get("confidence_score") or 0)

    restricted = [
        issue for issue in issues
        if any(keyword in issue.lower() for keyword in RESTRICTED_KEYWORDS)
    ]
    if restricted:
        metrics.uploads_blocked.labels(reason="restricted").inc()
        return UploadDecision(
            blocked=True,
            reason="restricted",
            message="Content contains restricted material and cannot be uploaded",
            detected_issues=issues,
        )

    if verdict.get("is_fake"):
        if confidence > FAKE_BLOCK_CONFIDENCE:
            metrics.uploads_blocked.labels(reason="fake").inc()
            return UploadDecision(
                blocked=True,
                reason="fake",
                message="Content appears to be fake/manipulated and cannot be uploaded",
                detected_issues=issues,
            )
        return UploadDecision(
            blocked=False,
            warnings=["Content may be fake or manipulated. Please review before proceeding."],
            detected_issues=issues,
        )

    return UploadDecision(blocked=False, detected_issues=issues)


class VerificationService:
    def __init__(self, db: AsyncSession, analyzer: GeminiContentAnalyzer):
        self.db = db
        self.analyzer = analyzer

    def _build_parts(self, content_type: str, content_url: Optional[str], content_text: Optional[str]) -> List[Any]:
        if content_type not in CONTENT_TYPES:
            raise ContentValidationError(
                f"Unsupported content type: {content_type}. Use image, text or url"
            )

        if content_type == "image":
            mime_type, data = parse_data_url(content_url)
            return [
                "Analyze this image for authenticity, Content Moderation, violence, protests, and misinformation.",
                {"mime_type": mime_type, "data": data},
            ]

        body = content_text if content_type == "text" else (content_text or content_url)
        if not body or not body.strip():
            raise ContentValidationError(f"No {content_type} content provided")
        return [f"Analyze this {content_type} for misinformation and credibility:\n\n{body}"]

    async def analyze(
        self,
        content_type: str,
        content_url: Optional[str] = None,
        content_text: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Ask the analyzer for a verdict without persisting it."""
        parts = self._build_parts(content_type, content_url, content_text)
        try:
            raw = await self.analyzer.analyze(MODERATION_INSTRUCTION, parts, VERDICT_SCHEMA)
        except Exception:
            metrics.verifications_total.labels(content_type=content_type, status="error").inc()
            raise

        metrics.verifications_total.labels(content_type=content_type, status="success").inc()
        return normalize_verdict(raw)

    async def verify(
        self,
        user_id: str,
        tenant_id: str,
        content_type: str,
        content_url: Optional[str] = None,
        content_text: Optional[str] = None,
    ) -> VerificationResult:
        logger.info(f"Analyzing {content_type} content for tenant {tenant_id}")
        verdict = await self.analyze(content_type, content_url, content_text)

        record = VerificationResult(
            user_id=user_id,
            tenant_id=tenant_id,
            content_type=content_type,
            content_url=content_url,
            content_text=content_text,
            analysis_result=verdict,
            confidence_score=verdict["confidence_score"],
            is_fake=verdict["is_fake"],
            detected_issues=verdict["detected_issues"],
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        log_database_operation(logger, "INSERT", "verification_results", record.id)
        return record

    async def list_results(self, tenant_id: str, limit: int = 20) -> List[VerificationResult]:
        result = await self.db.execute(
            select(VerificationResult)
            .where(VerificationResult.tenant_id == tenant_id)
            .order_by(VerificationResult.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def check_upload(self, user_id: str, tenant_id: str, data: bytes, mime_type: str) -> UploadDecision:
        """Verify an image before upload and decide whether it may proceed."""
        data_url = f"data:{mime_type};base64,{base64.b64encode(data).decode()}"
        record = await self.verify(user_id, tenant_id, "image", content_url=data_url)
        decision = evaluate_upload(record.analysis_result)
        if decision.blocked:
            logger.warning(f"Blocked upload for tenant {tenant_id}: {decision.message}")
        return decision
