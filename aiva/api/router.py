from fastapi import APIRouter
from aiva.api.v1.routes import analytics, assets, chat, embeddings, folders, health, storage, verifications

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(folders.router, prefix="/folders", tags=["Folders"])
api_router.include_router(assets.router, prefix="/assets", tags=["Assets"])
api_router.include_router(storage.router, prefix="/storage", tags=["Storage"])
api_router.include_router(chat.router, prefix="/chat", tags=["Chat"])
api_router.include_router(verifications.router, prefix="/verifications", tags=["Verifications"])
api_router.include_router(embeddings.router, prefix="/embeddings", tags=["Embeddings"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
