from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "AIVA-Digital-Asset-Management"
    SECRET_KEY: str = "your_secret_key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    RATE_LIMIT_ENABLED: bool = True
    UPLOADS_PER_MINUTE: int = 20
    CHAT_REQUESTS_PER_MINUTE: int = 30
    VERIFICATIONS_PER_MINUTE: int = 10

    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/aiva_dam"

    # Object storage
    STORAGE_DIR: str = "storage"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    SIGNED_URL_EXPIRY_SECONDS: int = 3600

    # Generative AI provider; absence degrades to "not configured" errors
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_CHAT_MODEL: str = "gemini-2.0-flash-exp"
    GEMINI_VISION_MODEL: str = "gemini-2.0-flash-exp"
    GEMINI_EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_DIMENSIONS: int = 768

    # Assistant
    CHAT_MAX_TOOL_ROUNDS: int = 3
    CHAT_SESSION_TIMEOUT_SECONDS: int = 24 * 60 * 60
    FOLDER_NAME_MAX_LENGTH: int = 100
    SEMANTIC_MATCH_THRESHOLD: float = 0.3
    VERIFY_IMAGE_UPLOADS: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_TO_FILE: bool = True

    class Config:
        env_file = ".env"

settings = Settings()
