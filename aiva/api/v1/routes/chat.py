from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.api.deps import get_chat_model, get_embedding_service, get_session_store, get_storage_service
from aiva.core.auth import CurrentUser, get_current_user
from aiva.core.config import settings
from aiva.core.exceptions import ContentValidationError, NotFoundError
from aiva.core.rate_limiter import rate_limit_dependency
from aiva.db.sessions import get_db
from aiva.services.assistant_service import AssistantService
from aiva.services.chat_service import ChatService
from aiva.services.chat_session import ChatSessionStore
from aiva.services.chat_tools import AssistantToolbox
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.gemini_service import GeminiChatModel
from aiva.services.storage_service import StorageService
from aiva.utils.dto.chat import (
    AssistantRequest,
    AssistantResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    ChatSession,
    ChatSessionInfo,
    ChatUploadResponse,
)
from aiva.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

chat_rate_limit = Depends(
    rate_limit_dependency(action="chat", max_requests=settings.CHAT_REQUESTS_PER_MINUTE, window_seconds=60)
)


def get_chat_service(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: ChatSessionStore = Depends(get_session_store),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
    model: GeminiChatModel = Depends(get_chat_model),
) -> ChatService:
    return ChatService(db, user, store, storage, embeddings, model)


@router.post("/messages", response_model=ChatMessageResponse, dependencies=[chat_rate_limit])
async def send_message(
    payload: ChatMessageRequest,
    chat: ChatService = Depends(get_chat_service),
):
    """
    Send a chat message. Listing and duplicate-folder requests are answered
    directly; anything else goes through the assistant and its tools.
    """
    return await chat.handle_message(payload.message, payload.session_id)


@router.post("/uploads", response_model=ChatUploadResponse, status_code=201, dependencies=[chat_rate_limit])
async def attach_file(
    file: UploadFile = File(...),
    session_id: Optional[str] = Form(None),
    chat: ChatService = Depends(get_chat_service),
):
    data = await file.read()
    session = await chat.attach_upload(session_id or None, file.filename, file.content_type, data)
    logger.info(f"Staged '{file.filename}' for chat session {session.session_id}")
    return ChatUploadResponse(session_id=session.session_id, uploaded_file=session.uploaded_file)


@router.delete("/uploads", response_model=ChatSession)
async def detach_file(
    session_id: str = Query(...),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.detach_upload(session_id)


@router.get("/sessions/{session_id}", response_model=ChatSession)
async def get_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: ChatSessionStore = Depends(get_session_store),
):
    session = await store.load(user.tenant_id, user.user_id, session_id)
    if not session:
        raise NotFoundError("Chat session not found")
    return session


@router.get("/sessions/{session_id}/info", response_model=ChatSessionInfo)
async def session_info(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: ChatSessionStore = Depends(get_session_store),
):
    info = await store.info(user.tenant_id, user.user_id, session_id)
    if not info:
        raise NotFoundError("Chat session not found")
    return info


@router.delete("/sessions/{session_id}", status_code=204)
async def clear_session(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: ChatSessionStore = Depends(get_session_store),
):
    await store.clear(user.tenant_id, user.user_id, session_id)


@router.post("/assistant", response_model=AssistantResponse, dependencies=[chat_rate_limit])
async def assistant(
    payload: AssistantRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    embeddings: GeminiEmbeddingService = Depends(get_embedding_service),
    model: GeminiChatModel = Depends(get_chat_model),
):
    """Stateless assistant call: the client sends the whole transcript."""
    if not payload.messages and not payload.message:
        raise ContentValidationError("Provide messages or message")

    service = AssistantService(model, AssistantToolbox(db, user, storage, embeddings))
    reply = await service.respond(
        messages=[m.model_dump() for m in payload.messages] if payload.messages else None,
        message=payload.message,
        uploaded_file=payload.uploaded_file,
    )
    return AssistantResponse(response=reply)
