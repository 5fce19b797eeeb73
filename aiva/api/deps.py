from functools import lru_cache
from aiva.db.cache import redis_client
from aiva.services.chat_session import ChatSessionStore
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.gemini_service import GeminiChatModel, GeminiContentAnalyzer
from aiva.services.storage_service import StorageService


@lru_cache
def get_storage_service() -> StorageService:
    return StorageService()


@lru_cache
def get_embedding_service() -> GeminiEmbeddingService:
    return GeminiEmbeddingService()


@lru_cache
def get_chat_model() -> GeminiChatModel:
    return GeminiChatModel()


@lru_cache
def get_content_analyzer() -> GeminiContentAnalyzer:
    return GeminiContentAnalyzer()


def get_session_store() -> ChatSessionStore:
    return ChatSessionStore(redis_client)
