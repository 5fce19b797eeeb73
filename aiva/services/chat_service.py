"""
Chat orchestration: answers listing and duplicate-folder requests locally and
hands everything else to the assistant loop, keeping the session transcript.
"""
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.auth import CurrentUser
from aiva.core.exceptions import AivaError, FolderValidationError, NotConfiguredError, ProviderError
from aiva.db.base import as_utc
from aiva.services.assistant_service import AssistantService
from aiva.services.asset_service import AssetService
from aiva.services.chat_session import ChatSessionStore
from aiva.services.chat_tools import AssistantToolbox
from aiva.services.embedding_service import GeminiEmbeddingService
from aiva.services.folder_service import FolderService, suggest_alternatives
from aiva.services.gemini_service import GeminiChatModel
from aiva.services.intent_classifier import ClassifiedMessage, Intent, classify
from aiva.services.storage_service import StorageService
from aiva.utils.dto.chat import ChatMessageResponse, UploadedFile
from aiva.utils.file_types import format_size_kb
from aiva.utils.logger import get_logger
from aiva.utils import metrics

logger = get_logger("services.chat")

MANUAL_FALLBACK = "You can still use the Folders/Assets pages directly to manage your files."
DUPLICATE_MARKERS = ("folder already exists", "folder exists", "duplicate folder", "already exists")


def format_asset_listing(rows, search_query: Optional[str] = None) -> str:
    if not rows:
        if search_query:
            return (
                f"**No Assets Found**\n\nNo assets found containing \"{search_query}\".\n\n"
                "**Try:**\n"
                "• Check spelling and try different keywords\n"
                "• Search for partial names like \"photo\", \"doc\", etc.\n"
                "• Use \"list of assets\" to see all assets\n"
                "• Go to the **Assets** page to browse manually"
            )
        return (
            "**No Assets Found**\n\nYou don't have any assets yet in your workspace.\n\n"
            "**Get Started:**\n"
            "• Attach a file here and tell me where to put it\n"
            "• Or go to the **Upload** page to add files manually\n"
            "• Create folders first to organize your assets"
        )

    entries = []
    for index, (asset, folder_name) in enumerate(rows, start=1):
        created = as_utc(asset.created_at).date().isoformat() if asset.created_at else "Unknown date"
        size = format_size_kb(asset.file_size) if asset.file_size else "Unknown size"
        entries.append(
            f"{index}. **{asset.name}**\n"
            f"   Folder: {folder_name or 'No folder'}\n"
            f"   Type: {asset.file_type or 'Unknown type'}\n"
            f"   Size: {size}\n"
            f"   Created: {created}"
        )

    title = (
        f"**Search Results for \"{search_query}\" ({len(rows)} found)**"
        if search_query else f"**Your Assets ({len(rows)} total)**"
    )
    return f"{title}\n\n" + "\n\n".join(entries)


def format_folder_listing(rows) -> str:
    if not rows:
        return (
            "**No Folders Found**\n\nYou don't have any folders yet in your workspace.\n\n"
            "**Get Started:**\n"
            "• Create your first folder by saying: \"Create a new folder called My Documents\"\n"
            "• Or go to the **Folders** page to create folders manually"
        )

    entries = []
    for index, row in enumerate(rows, start=1):
        folder, count = row["folder"], row["asset_count"]
        created = as_utc(folder.created_at).date().isoformat() if folder.created_at else "Unknown date"
        entries.append(
            f"{index}. **{folder.name}** ({count} asset{'s' if count != 1 else ''})\n"
            f"   {folder.description or 'No description'}\n"
            f"   Created: {created}"
        )
    return f"**Your Folders ({len(rows)} total)**\n\n" + "\n\n".join(entries)


def format_duplicate_reply(existing_name: str, suggestions) -> str:
    bullets = "\n".join(f"• \"{suggestion}\"" for suggestion in suggestions)
    return (
        f"**Duplicate Folder Detected**\n\n"
        f"A folder named \"{existing_name}\" already exists in your workspace.\n\n"
        f"**Suggestions:**\n{bullets}\n\n"
        f"Say \"Create folder called '{suggestions[0]}'\" or tell me what you'd like to call "
        f"the new folder instead."
    )


def missing_folder_name_reply(message: str) -> str:
    return (
        "I detected a folder creation request but couldn't determine the exact folder name from:\n"
        f"\"{message}\"\n\n"
        "**Please try these formats:**\n"
        "• \"Create a folder called 'My Documents'\"\n"
        "• \"Make a new folder named Project Files\"\n"
        "• \"Add folder Marketing_2024\"\n"
        "• \"Please create a folder called Team Resources\""
    )


def assistant_error_reply(
    error: AivaError,
    classified: ClassifiedMessage,
    uploaded_file: Optional[UploadedFile],
) -> str:
    if isinstance(error, NotConfiguredError):
        if uploaded_file:
            return (
                f"I couldn't file \"{uploaded_file.name}\" because the AI assistant is not configured. "
                "Use the Upload page or open a folder and upload it there."
            )
        if classified.intent == Intent.folder_create:
            return (
                "The AI assistant is not configured. You can create folders manually on the "
                "**Folders** page."
            )
        return f"The AI assistant is not configured. {MANUAL_FALLBACK}"

    if isinstance(error, ProviderError) and error.status_code == 429:
        return f"The AI assistant is receiving too many requests. Please try again in a moment. {MANUAL_FALLBACK}"
    if isinstance(error, ProviderError) and error.status_code == 403:
        return f"The AI assistant's API key is invalid or out of quota. {MANUAL_FALLBACK}"
    return f"Failed to send message: {error.message}. {MANUAL_FALLBACK}"


def annotate_reply(
    reply: str,
    classified: ClassifiedMessage,
    uploaded_file: Optional[UploadedFile],
    today: Optional[date] = None,
) -> str:
    lowered = reply.lower()
    if any(marker in lowered for marker in DUPLICATE_MARKERS) and "folder" in lowered:
        name = classified.folder_name or "folder"
        stamp = (today or date.today()).isoformat()
        reply = (
            f"{reply}\n\n"
            f"**Try a different name**, for example \"{name}_{stamp}\" or \"{name}_backup\". "
            "Check the **Folders** page for recent additions."
        )
        lowered = reply.lower()

    if uploaded_file and "file" not in lowered and "upload" not in lowered:
        reply = (
            f"{reply}\n\nI notice you attached \"{uploaded_file.name}\". "
            "It was not filed; attach it again and tell me which folder it belongs in."
        )
    return reply


class ChatService:
    def __init__(
        self,
        db: AsyncSession,
        user: CurrentUser,
        store: ChatSessionStore,
        storage: StorageService,
        embeddings: GeminiEmbeddingService,
        model: GeminiChatModel,
    ):
        self.db = db
        self.user = user
        self.store = store
        self.storage = storage
        self.folders = FolderService(db)
        self.assets = AssetService(db, storage, embeddings)
        self.assistant = AssistantService(model, AssistantToolbox(db, user, storage, embeddings))

    async def handle_message(self, message: str, session_id: Optional[str] = None) -> ChatMessageResponse:
        tenant_id, user_id = self.user.tenant_id, self.user.user_id
        session = await self.store.get_or_create(tenant_id, user_id, session_id)

        uploaded_file = session.uploaded_file
        prior_messages = [m.model_dump(include={"role", "content"}) for m in session.messages]
        display = f"{message}\n[Attached: {uploaded_file.name}]" if uploaded_file else message
        self.store.add_message(session, "user", display)
        session.uploaded_file = None

        classified = classify(message)
        handled_by = "local"

        if classified.intent in (Intent.asset_list, Intent.asset_search):
            rows = await self.assets.list_assets(tenant_id, search=classified.search_query)
            reply = format_asset_listing(rows, classified.search_query)
        elif classified.intent == Intent.folder_list:
            reply = format_folder_listing(await self.folders.list_folders(tenant_id))
        elif classified.intent == Intent.folder_create and not classified.folder_name:
            reply = missing_folder_name_reply(message)
        else:
            reply = await self._folder_precheck(classified)
            if reply is None:
                handled_by = "assistant"
                history = prior_messages + [{"role": "user", "content": message}]
                reply = await self._ask_assistant(history, classified, uploaded_file)

        self.store.add_message(session, "assistant", reply)
        await self.store.save(tenant_id, user_id, session)
        if uploaded_file:
            await self._release_staged(uploaded_file)

        metrics.chat_messages.labels(intent=classified.intent.value, handled_by=handled_by).inc()
        logger.info(f"Chat message handled {handled_by} as {classified.intent.value} (session {session.session_id})")

        return ChatMessageResponse(
            session_id=session.session_id,
            intent=classified.intent.value,
            handled_by=handled_by,
            reply=reply,
            messages=session.messages,
            uploaded_file=session.uploaded_file,
        )

    async def _folder_precheck(self, classified: ClassifiedMessage) -> Optional[str]:
        """Reply without a model call when the requested folder name is invalid or taken."""
        if classified.intent != Intent.folder_create:
            return None
        try:
            result = await self.folders.check_name(self.user.tenant_id, classified.folder_name)
        except FolderValidationError as e:
            return f"{e.message}. Please choose another folder name."
        if not result["available"]:
            return format_duplicate_reply(result["existing_name"], result["suggestions"])
        return None

    async def _ask_assistant(self, history, classified: ClassifiedMessage, uploaded_file: Optional[UploadedFile]) -> str:
        try:
            reply = await self.assistant.respond(messages=history, uploaded_file=uploaded_file)
        except AivaError as e:
            logger.error(f"Assistant request failed: {e.message}")
            return assistant_error_reply(e, classified, uploaded_file)
        return annotate_reply(reply, classified, uploaded_file)

    async def attach_upload(self, session_id: Optional[str], filename: str, content_type: Optional[str], data: bytes):
        """Stage a file for the assistant; a pending file it replaces is deleted."""
        tenant_id, user_id = self.user.tenant_id, self.user.user_id
        session = await self.store.get_or_create(tenant_id, user_id, session_id)
        replaced = session.uploaded_file

        staged = await self.assets.stage_upload(tenant_id, filename, content_type, data)
        session = await self.store.set_uploaded_file(tenant_id, user_id, session.session_id, UploadedFile(**staged))
        if replaced:
            await self._release_staged(replaced)
        return session

    async def _release_staged(self, uploaded_file: UploadedFile) -> None:
        """Delete a staged object the session no longer points at, unless a tool already filed it."""
        try:
            if self.storage.exists(uploaded_file.path):
                await self.assets.discard_staged_upload(self.user.tenant_id, uploaded_file.path)
        except AivaError as e:
            logger.warning(f"Could not delete staged upload {uploaded_file.path}: {e.message}")

    async def detach_upload(self, session_id: str):
        """Drop the pending upload from the session and delete the staged file."""
        session = await self.store.get_or_create(self.user.tenant_id, self.user.user_id, session_id)
        if session.uploaded_file:
            await self.assets.discard_staged_upload(self.user.tenant_id, session.uploaded_file.path)
            session.uploaded_file = None
        return await self.store.save(self.user.tenant_id, self.user.user_id, session)
