import time
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.config import settings
from aiva.core.exceptions import ContentValidationError
from aiva.db.models.asset import Asset
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.utils.logger import get_logger, log_embedding_operation, log_database_operation

logger = get_logger("services.search")

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


def clamp_limit(limit: Optional[Any], default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    if limit is None or limit == "":
        return default
    try:
        value = int(float(limit))
    except (TypeError, ValueError):
        return default
    return min(max(value, 1), maximum)


def semantic_query(tenant_id: str, query_embedding: Sequence[float], limit: int, threshold: float) -> Select:
    """Tenant assets whose cosine similarity to the query clears ``threshold``, best first."""
    distance = Asset.embedding.cosine_distance(query_embedding)
    similarity = (1 - distance).label("similarity")
    return (
        select(Asset, similarity)
        .where(
            Asset.tenant_id == tenant_id,
            Asset.embedding.is_not(None),
            1 - distance >= threshold,
        )
        .order_by(distance.asc(), Asset.id.asc())
        .limit(limit)
    )


class SearchService:

    def __init__(self, db: AsyncSession, embeddings: Optional[GeminiEmbeddingService] = None):
        self.db = db
        self.embeddings = embeddings

    async def semantic_search(
        self,
        tenant_id: str,
        query_embedding: Sequence[float],
        limit: int = DEFAULT_LIMIT,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Rank the tenant's embedded assets by cosine similarity to the query.
        Distance is computed by pgvector; only the top ``limit`` rows come back.

        Args:
            tenant_id: Tenant to search within
            query_embedding: Embedding of the query text
            limit: Number of results to return
            threshold: Minimum similarity, defaults to SEMANTIC_MATCH_THRESHOLD

        Returns:
            List of ``{"asset", "similarity"}`` dicts, best match first
        """
        threshold = settings.SEMANTIC_MATCH_THRESHOLD if threshold is None else threshold
        if len(query_embedding) != settings.EMBEDDING_DIMENSIONS:
            logger.warning(
                f"Query embedding has {len(query_embedding)} dimensions, "
                f"expected {settings.EMBEDDING_DIMENSIONS}; skipping semantic search"
            )
            return []

        log_database_operation(logger, "SELECT", "assets", f"embedded_{tenant_id}")
        result = await self.db.execute(semantic_query(tenant_id, query_embedding, limit, threshold))
        return [
            {"asset": asset, "similarity": float(similarity)}
            for asset, similarity in result.all()
        ]

    async def keyword_search(self, tenant_id: str, query: str, limit: int = DEFAULT_LIMIT) -> List[Asset]:
        """Substring match on name or description, or an exact tag, newest first."""
        pattern = f"%{query}%"
        log_database_operation(logger, "SELECT", "assets", f"keyword_{tenant_id}")
        result = await self.db.execute(
            select(Asset)
            .where(
                Asset.tenant_id == tenant_id,
                or_(Asset.name.ilike(pattern), Asset.description.ilike(pattern)),
            )
            .order_by(Asset.created_at.desc())
        )
        matches = list(result.scalars().all())

        # Tags live in a JSON column; match them here so every dialect behaves alike
        needle = query.lower()
        seen = {asset.id for asset in matches}
        result = await self.db.execute(
            select(Asset)
            .where(Asset.tenant_id == tenant_id, Asset.tags.is_not(None))
            .order_by(Asset.created_at.desc())
        )
        for asset in result.scalars().all():
            if asset.id not in seen and any(str(tag).lower() == needle for tag in asset.tags or []):
                matches.append(asset)

        matches.sort(key=lambda a: a.created_at, reverse=True)
        return matches[:limit]

    async def search_assets(self, tenant_id: str, query: str, limit: Optional[Any] = None) -> Dict[str, Any]:
        """
        Semantic search first; keyword search when no query embedding could
        be produced or nothing cleared the similarity threshold.
        """
        query = (query or "").strip()
        if not query:
            raise ContentValidationError("Missing search query")
        limit = clamp_limit(limit)
        start_time = time.time()

        query_embedding = None
        if self.embeddings:
            log_embedding_operation(logger, "GENERATE", "query", tenant_id)
            query_embedding = await self.embeddings.embed_query(query)

        if query_embedding:
            matches = await self.semantic_search(tenant_id, query_embedding, limit)
            if matches:
                logger.info(
                    f"Semantic search returned {len(matches)} results in "
                    f"{(time.time() - start_time) * 1000:.2f}ms"
                )
                return {
                    "mode": "semantic",
                    "message": f'Found {len(matches)} asset{"s" if len(matches) > 1 else ""} '
                               f'matching "{query}" using semantic search.',
                    "results": matches,
                }

        assets = await self.keyword_search(tenant_id, query, limit)
        logger.info(
            f"Keyword search returned {len(assets)} results in {(time.time() - start_time) * 1000:.2f}ms"
        )
        if not assets:
            message = f'No assets found matching "{query}".'
        else:
            message = f'Found {len(assets)} asset{"s" if len(assets) > 1 else ""} matching "{query}".'
        return {
            "mode": "keyword",
            "message": message,
            "results": [{"asset": asset, "similarity": None} for asset in assets],
        }
