import random
import string
import time
from datetime import datetime, timezone
from typing import Optional
from pydantic import ValidationError
from aiva.core.config import settings
from aiva.utils.dto.chat import ChatSession, ChatSessionInfo, SessionMessage, UploadedFile
from aiva.utils.logger import get_logger

logger = get_logger("services.chat_session")

GREETING = (
    "Hello! I'm your AIVA Assistant. I can help you manage your digital assets through "
    "natural language commands.\n\n"
    "**What I can help you with:**\n"
    "• Create folders (I'll check for duplicates automatically)\n"
    "• List and view all your folders\n"
    "• List and search your assets\n"
    "• Upload and organize files\n"
    "• Show analytics and insights\n"
    "• Answer questions about your content\n\n"
    "**Try asking me:**\n"
    "• \"Create a new folder called 'Project Photos'\"\n"
    "• \"Show me all my folders\" or \"Get list of folders\"\n"
    "• \"List of assets\" or \"I want to see all assets\"\n"
    "• \"Find assets containing 'whatsapp'\"\n"
    "• \"Upload this file to the Marketing folder\"\n"
    "• \"What's in my Documents folder?\"\n\n"
    "Just tell me what you'd like to do in your own words!"
)


def now_ms() -> int:
    return int(time.time() * 1000)


def new_session_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{now_ms()}_{suffix}"


class ChatSessionStore:
    """
    Chat sessions kept in Redis, scoped to one user of one tenant.

    A session expires after CHAT_SESSION_TIMEOUT_SECONDS without activity;
    the key TTL enforces it and ``load`` double-checks ``last_activity``.
    """

    def __init__(self, client, timeout_seconds: Optional[int] = None):
        self.client = client
        self.timeout_seconds = timeout_seconds or settings.CHAT_SESSION_TIMEOUT_SECONDS

    @staticmethod
    def _key(tenant_id: str, user_id: str, session_id: str) -> str:
        return f"chat_session:{tenant_id}:{user_id}:{session_id}"

    def new_session(self, session_id: Optional[str] = None) -> ChatSession:
        timestamp = now_ms()
        return ChatSession(
            session_id=session_id or new_session_id(),
            messages=[SessionMessage(role="assistant", content=GREETING, timestamp=timestamp)],
            last_activity=timestamp,
        )

    async def load(self, tenant_id: str, user_id: str, session_id: str) -> Optional[ChatSession]:
        key = self._key(tenant_id, user_id, session_id)
        raw = await self.client.get(key)
        if not raw:
            return None

        try:
            session = ChatSession.model_validate_json(raw)
        except ValidationError:
            logger.error(f"Discarding unreadable chat session {session_id}")
            await self.client.delete(key)
            return None

        if now_ms() - session.last_activity > self.timeout_seconds * 1000:
            logger.info(f"Chat session {session_id} expired, starting fresh")
            await self.client.delete(key)
            return None

        if not session.messages:
            return None
        return session

    async def save(self, tenant_id: str, user_id: str, session: ChatSession) -> ChatSession:
        session.last_activity = now_ms()
        await self.client.set(
            self._key(tenant_id, user_id, session.session_id),
            session.model_dump_json(),
            ex=self.timeout_seconds,
        )
        return session

    async def get_or_create(self, tenant_id: str, user_id: str, session_id: Optional[str] = None) -> ChatSession:
        if session_id:
            session = await self.load(tenant_id, user_id, session_id)
            if session:
                return session
        session = self.new_session(session_id)
        logger.debug(f"Started chat session {session.session_id}")
        return session

    @staticmethod
    def add_message(session: ChatSession, role: str, content: str) -> SessionMessage:
        message = SessionMessage(role=role, content=content, timestamp=now_ms())
        session.messages.append(message)
        return message

    async def set_uploaded_file(
        self,
        tenant_id: str,
        user_id: str,
        session_id: Optional[str],
        uploaded_file: Optional[UploadedFile],
    ) -> ChatSession:
        session = await self.get_or_create(tenant_id, user_id, session_id)
        session.uploaded_file = uploaded_file
        return await self.save(tenant_id, user_id, session)

    async def clear(self, tenant_id: str, user_id: str, session_id: str) -> None:
        await self.client.delete(self._key(tenant_id, user_id, session_id))
        logger.info(f"Chat session {session_id} cleared")

    async def info(self, tenant_id: str, user_id: str, session_id: str) -> Optional[ChatSessionInfo]:
        session = await self.load(tenant_id, user_id, session_id)
        if not session:
            return None
        return ChatSessionInfo(
            session_id=session.session_id,
            message_count=len(session.messages),
            last_activity=datetime.fromtimestamp(session.last_activity / 1000, tz=timezone.utc),
            has_uploaded_file=session.uploaded_file is not None,
        )
