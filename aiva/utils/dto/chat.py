from datetime import datetime
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field


class UploadedFile(BaseModel):
    """A file staged under the tenant's temp prefix, waiting to be filed."""
    path: str
    name: str
    type: str
    size: int


class SessionMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: int


class ChatSession(BaseModel):
    session_id: str
    messages: List[SessionMessage] = Field(default_factory=list)
    uploaded_file: Optional[UploadedFile] = None
    last_activity: int


class ChatSessionInfo(BaseModel):
    session_id: str
    message_count: int
    last_activity: datetime
    has_uploaded_file: bool


class ChatMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class ChatMessageResponse(BaseModel):
    session_id: str
    intent: str
    handled_by: Literal["local", "assistant"]
    reply: str
    messages: List[SessionMessage]
    uploaded_file: Optional[UploadedFile] = None


class ChatUploadResponse(BaseModel):
    session_id: str
    uploaded_file: UploadedFile


class AssistantMessage(BaseModel):
    role: str
    content: Any = ""


class AssistantRequest(BaseModel):
    messages: Optional[List[AssistantMessage]] = None
    message: Optional[str] = None
    uploaded_file: Optional[UploadedFile] = None


class AssistantResponse(BaseModel):
    response: str
