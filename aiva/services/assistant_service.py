import json
from typing import Any, Dict, List, Optional
from aiva.core.config import settings
from aiva.services.chat_tools import TOOL_DEFINITIONS, AssistantToolbox
from aiva.services.gemini_service import GeminiChatModel
from aiva.utils.dto.chat import UploadedFile
from aiva.utils.logger import get_logger
from aiva.utils import metrics

logger = get_logger("services.assistant")

FALLBACK_REPLY = "Completed action."

SYSTEM_PROMPT = """You are a DAM (Digital Asset Management) assistant. Keep answers concise and helpful.
You can use tools to perform actions like creating folders, listing/viewing all folders, listing/viewing all assets, uploading assets from URLs or processing user-uploaded files, and searching for assets.

FOLDER CREATION HANDLING:
- When users say "create a folder" or "create a new folder" without specifying a name, politely ask what they'd like to call it
- Suggest logical folder names based on context (e.g., "Documents", "Images", "Projects")
- For requests like "make a marketing folder" or "create project folder", extract "marketing" or "project" as the folder name
- Always be helpful and guide users to successful folder creation

TOOL USAGE:
- When users ask to find, search, or look for assets, use the search_assets tool with their query
- When users ask to see, list, view, show, or get all folders, use the list_folders tool - this provides detailed folder information including asset counts
- When users ask to see, list, view, show, or get all assets or files, use the list_assets tool
- If semantic search returns no results for images, automatically use backfill_embeddings to generate embeddings first, then search again
- Only call tools when the user clearly asks to perform an action

Be conversational and helpful while being efficient with your responses."""

UPLOAD_PROMPT = """

IMPORTANT: The user has uploaded a file: {name} ({type}, {size_kb:.1f} KB).
The file is temporarily stored at path: {path}.

You should AUTOMATICALLY use the upload_selected_asset tool when the user expresses ANY intent to:
- Do something with the file (organize, handle, manage, etc.)
- Save or store it somewhere
- Put it in a location or folder
- Process or work with the file
- Mentions any organizational action
- References folders, directories, or storage locations
- Shows any intent to permanently keep the file
- Asks what to do with it or where it should go

Be very liberal in interpreting user intent. Even casual language like "what should I do with this?", "organize this", "keep this somewhere", "I need this filed", "where does this go?", "handle this file" should trigger the upload tool.

When calling upload_selected_asset, use temp_file_path: "{path}" and intelligently extract:
- Folder names from context (Documents, Images, Photos, Files, etc.)
- Descriptions from their message
- Any organizational intent
- If no folder is specified, suggest an appropriate one based on file type or ask"""


def build_system_prompt(uploaded_file: Optional[UploadedFile] = None) -> str:
    if not uploaded_file:
        return SYSTEM_PROMPT
    return SYSTEM_PROMPT + UPLOAD_PROMPT.format(
        name=uploaded_file.name,
        type=uploaded_file.type,
        size_kb=uploaded_file.size / 1024,
        path=uploaded_file.path,
    )


def build_history(
    messages: Optional[List[Dict[str, Any]]] = None,
    message: Optional[str] = None,
    uploaded_file: Optional[UploadedFile] = None,
) -> List[Dict[str, Any]]:
    """System prompt followed by the client turns; only assistant turns keep their role."""
    history: List[Dict[str, Any]] = [{"role": "system", "content": build_system_prompt(uploaded_file)}]
    if messages:
        history.extend(
            {
                "role": "assistant" if m.get("role") == "assistant" else "user",
                "content": "" if m.get("content") is None else str(m.get("content")),
            }
            for m in messages
        )
    elif message:
        history.append({"role": "user", "content": str(message)})
    return history


class AssistantService:
    """Alternates model calls and tool execution until the model stops asking for tools."""

    def __init__(self, model: GeminiChatModel, toolbox: AssistantToolbox, max_rounds: Optional[int] = None):
        self.model = model
        self.toolbox = toolbox
        self.max_rounds = settings.CHAT_MAX_TOOL_ROUNDS if max_rounds is None else max_rounds

    async def run(self, history: List[Dict[str, Any]]) -> str:
        reply = await self.model.complete(history, TOOL_DEFINITIONS)

        rounds = 0
        while reply.tool_calls and rounds < self.max_rounds:
            history.append({
                "role": "assistant",
                "content": reply.text or "",
                "tool_calls": [
                    {"id": call.id, "name": call.name, "args": call.args}
                    for call in reply.tool_calls
                ],
            })

            for call in reply.tool_calls:
                logger.info(f"Round {rounds + 1}: executing tool {call.name}")
                result = await self.toolbox.execute(call.name, call.args)
                history.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": json.dumps(result, default=str),
                })

            rounds += 1
            reply = await self.model.complete(history, TOOL_DEFINITIONS)

        metrics.assistant_rounds.observe(rounds)
        if reply.tool_calls:
            logger.warning(f"Tool round limit ({self.max_rounds}) reached with calls still pending")
        return reply.text or FALLBACK_REPLY

    async def respond(
        self,
        messages: Optional[List[Dict[str, Any]]] = None,
        message: Optional[str] = None,
        uploaded_file: Optional[UploadedFile] = None,
    ) -> str:
        return await self.run(build_history(messages, message, uploaded_file))
