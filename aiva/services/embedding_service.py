import google.generativeai as genai
from aiva.core.config import settings
from aiva.core.exceptions import AivaError
from aiva.services.gemini_service import ensure_configured, response_text, run_blocking
from aiva.utils.logger import get_logger
from typing import List, Optional

logger = get_logger("services.embedding")

CAPTION_PROMPT = (
    "Describe the image in one short sentence with key objects, scene, and style. "
    "Return only the sentence."
)


class GeminiEmbeddingService:
    """
    Caption-then-embed vectors for images and plain text embeddings for
    search queries. Failures are logged and reported as ``None``.
    """

    def __init__(self, model: Optional[str] = None, vision_model: Optional[str] = None):
        self.model = model or settings.GEMINI_EMBEDDING_MODEL
        self.vision_model = vision_model or settings.GEMINI_VISION_MODEL

    async def embed_text(self, text: str, task_type: str = "retrieval_document") -> Optional[List[float]]:
        """Generate embedding for text using thread executor to avoid blocking."""
        if not text or not text.strip():
            return None

        try:
            ensure_configured()
            result = await run_blocking(
                "embed",
                genai.embed_content,
                model=self.model,
                content=text,
                task_type=task_type,
            )
            return result["embedding"] or None
        except AivaError as e:
            logger.warning(f"Error generating embedding: {e.message}")
            return None

    async def caption_image(self, data: bytes, mime_type: str) -> Optional[str]:
        try:
            ensure_configured()
            model = genai.GenerativeModel(self.vision_model)
            response = await run_blocking(
                "caption",
                model.generate_content,
                [CAPTION_PROMPT, {"mime_type": mime_type, "data": data}],
                generation_config=genai.GenerationConfig(
                    temperature=0.4,
                    top_k=32,
                    top_p=1,
                    max_output_tokens=100,
                ),
            )
        except AivaError as e:
            logger.warning(f"Image captioning failed: {e.message}")
            return None

        caption = response_text(response).strip()
        return caption or None

    async def embed_image(self, data: bytes, mime_type: str) -> Optional[List[float]]:
        """Caption the image, then embed the caption. Non-images yield None."""
        if not mime_type or not mime_type.startswith("image/"):
            return None

        caption = await self.caption_image(data, mime_type)
        if not caption:
            return None

        logger.debug(f"Image caption: {caption}")
        return await self.embed_text(caption)

    async def embed_query(self, query: str) -> Optional[List[float]]:
        return await self.embed_text(query, task_type="retrieval_query")
