"""
Shared fixtures: a throwaway SQLite database, local object storage under a
temp dir, and in-memory stand-ins for Redis and the Gemini-backed services.
"""
import os
import tempfile

_workdir = tempfile.mkdtemp(prefix="aiva-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_workdir}/aiva.db"
os.environ["STORAGE_DIR"] = os.path.join(_workdir, "objects")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["GEMINI_API_KEY"] = ""

from typing import Any, Dict, List, Optional

import httpx
import pytest

from aiva.api.deps import (
    get_chat_model,
    get_content_analyzer,
    get_embedding_service,
    get_session_store,
    get_storage_service,
)
from aiva.core.auth import CurrentUser
from aiva.core.config import settings
from aiva.core.security import create_access_token
from aiva.db.base import Base, load_all_models
from aiva.db.models.profile import Profile
from aiva.db.models.tenant import Tenant
from aiva.db.sessions import AsyncSessionLocal, engine
from aiva.main import app
from aiva.services.chat_session import ChatSessionStore
from aiva.services.gemini_service import ModelReply
from aiva.services.storage_service import StorageService

load_all_models()


class FakeRedis:
    """The handful of redis.asyncio calls the session store makes."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class ScriptedChatModel:
    """Replays a fixed list of replies and records every history it was sent."""

    def __init__(self, replies: Optional[List[ModelReply]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[List[Dict[str, Any]]] = []

    async def complete(self, history, tools):
        self.calls.append([dict(message) for message in history])
        if self.error:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0] if self.replies else ModelReply(text="")


class FakeEmbeddings:
    """Deterministic vectors: one axis per keyword found in the text, zero-padded."""

    KEYWORDS = ("cat", "dog", "beach", "mountain")

    def __init__(self, captions: Optional[Dict[bytes, str]] = None, fail: bool = False):
        self.captions = captions or {}
        self.fail = fail

    def _vector(self, text: str) -> Optional[List[float]]:
        lowered = text.lower()
        vector = [1.0 if word in lowered else 0.0 for word in self.KEYWORDS]
        if not any(vector):
            vector = [0.0, 0.0, 0.0, 0.1]
        return vector + [0.0] * (settings.EMBEDDING_DIMENSIONS - len(vector))

    async def embed_text(self, text, task_type="retrieval_document"):
        return None if self.fail else self._vector(text)

    async def embed_image(self, data, mime_type):
        if self.fail or not mime_type.startswith("image/"):
            return None
        return self._vector(self.captions.get(data, "a photo"))

    async def embed_query(self, query):
        return None if self.fail else self._vector(query)


class FakeAnalyzer:
    def __init__(self, verdict: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.verdict = verdict or {
            "is_fake": False,
            "confidence_score": 12,
            "detected_issues": [],
            "analysis_summary": "Looks authentic.",
            "recommendations": "None.",
        }
        self.error = error
        self.calls = []

    async def analyze(self, system_instruction, parts, response_schema):
        self.calls.append(parts)
        if self.error:
            raise self.error
        return dict(self.verdict)


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


async def _create_user(name: str) -> CurrentUser:
    async with AsyncSessionLocal() as session:
        tenant = Tenant(name=name)
        session.add(tenant)
        await session.flush()
        profile = Profile(id=f"user-{name}", tenant_id=tenant.id, email=f"{name}@example.com")
        session.add(profile)
        await session.commit()
        return CurrentUser(user_id=profile.id, tenant_id=tenant.id)


@pytest.fixture
async def user() -> CurrentUser:
    return await _create_user("acme")


@pytest.fixture
async def other_user() -> CurrentUser:
    return await _create_user("globex")


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.user_id)}"}


@pytest.fixture
def storage(tmp_path):
    return StorageService(tmp_path / "objects")


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return ChatSessionStore(fake_redis, timeout_seconds=3600)


@pytest.fixture
def embeddings():
    return FakeEmbeddings()


@pytest.fixture
def chat_model():
    return ScriptedChatModel([ModelReply(text="Hello from the assistant.")])


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
async def client(storage, session_store, embeddings, chat_model, analyzer):
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_embedding_service] = lambda: embeddings
    app.dependency_overrides[get_chat_model] = lambda: chat_model
    app.dependency_overrides[get_content_analyzer] = lambda: analyzer

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
