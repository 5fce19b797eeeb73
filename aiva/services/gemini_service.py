"""
Gemini access for the chat assistant and the content verifier.

The SDK is synchronous, so every call is pushed to the default thread
executor. Provider failures are translated into ``ProviderError`` with the
status the API answers with; a missing API key surfaces as
``NotConfiguredError`` only when a call is actually attempted.
"""
import asyncio
import json
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from aiva.core.config import settings
from aiva.core.exceptions import NotConfiguredError, ProviderError
from aiva.utils.logger import get_logger
from aiva.utils import metrics

logger = get_logger("services.gemini")

_configured_key: Optional[str] = None


def ensure_configured() -> None:
    """Configure the SDK with the current key, or raise if there is none."""
    global _configured_key
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        raise NotConfiguredError("GEMINI_API_KEY is not configured")
    if api_key != _configured_key:
        genai.configure(api_key=api_key)
        _configured_key = api_key


def is_configured() -> bool:
    return bool(settings.GEMINI_API_KEY)


def map_provider_error(exc: Exception) -> ProviderError:
    if isinstance(exc, google_exceptions.ResourceExhausted):
        return ProviderError("Rate limits exceeded, please try again later.", status_code=429)
    if isinstance(exc, (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated)):
        return ProviderError(
            "API key invalid or quota exceeded. Please check your Google API key.",
            status_code=403,
        )
    return ProviderError("Google AI API error", status_code=502)


async def run_blocking(operation: str, func, *args, **kwargs):
    """Run a blocking SDK call in the thread executor with error mapping."""
    start_time = time.time()
    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(None, partial(func, *args, **kwargs))
    except Exception as e:
        metrics.provider_requests.labels(operation=operation, status="error").inc()
        logger.error(f"Gemini {operation} failed: {e}")
        raise map_provider_error(e) from e
    finally:
        metrics.provider_request_duration.labels(operation=operation).observe(time.time() - start_time)

    metrics.provider_requests.labels(operation=operation, status="success").inc()
    return result


def to_plain(value: Any) -> Any:
    """Convert proto map/list composites from function-call args into plain JSON types."""
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [to_plain(item) for item in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def response_text(response) -> str:
    """First text part of the first candidate, or an empty string."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    for part in candidates[0].content.parts:
        if part.text:
            return part.text
    return ""


@dataclass
class ToolCall:
    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelReply:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


def _gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    converted = {}
    for key, value in schema.items():
        if key == "additionalProperties":
            continue
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "properties":
            converted[key] = {name: _gemini_schema(prop) for name, prop in value.items()}
        elif key == "items":
            converted[key] = _gemini_schema(value)
        else:
            converted[key] = value
    return converted


def to_function_declarations(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Translate JSON-schema tool definitions into Gemini function declarations."""
    declarations = []
    for tool in tools:
        declaration = {"name": tool["name"], "description": tool["description"]}
        parameters = tool.get("parameters") or {}
        # Gemini rejects OBJECT schemas with no properties
        if parameters.get("properties"):
            declaration["parameters"] = _gemini_schema(parameters)
        declarations.append(declaration)
    return declarations


def to_gemini_contents(history: List[Dict[str, Any]]):
    """
    Split a role-tagged history into (system_instruction, contents).

    Consecutive tool turns are grouped into one ``user`` content holding
    their function responses.
    """
    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []

    for message in history:
        role = message.get("role")
        content = message.get("content") or ""

        if role == "system":
            system_parts.append(content)
            continue

        if role == "tool":
            try:
                payload = json.loads(content) if content else {}
            except ValueError:
                payload = {"result": content}
            if not isinstance(payload, dict):
                payload = {"result": payload}
            part = genai.protos.Part(
                function_response=genai.protos.FunctionResponse(
                    name=message.get("name") or "tool", response=payload
                )
            )
            if contents and contents[-1].get("tool_group"):
                contents[-1]["parts"].append(part)
            else:
                contents.append({"role": "user", "parts": [part], "tool_group": True})
            continue

        if role == "assistant":
            parts: List[Any] = [content] if content else []
            for call in message.get("tool_calls") or []:
                parts.append(genai.protos.Part(
                    function_call=genai.protos.FunctionCall(name=call["name"], args=call.get("args") or {})
                ))
            if parts:
                contents.append({"role": "model", "parts": parts})
            continue

        contents.append({"role": "user", "parts": [content]})

    for item in contents:
        item.pop("tool_group", None)

    system_instruction = "\n\n".join(system_parts) or None
    return system_instruction, contents


class GeminiChatModel:
    """Function-calling chat model used by the assistant loop."""

    def __init__(self, model: Optional[str] = None):
        self.model = model or settings.GEMINI_CHAT_MODEL
        self.generation_config = genai.GenerationConfig(
            temperature=0.7,
            top_k=32,
            top_p=1,
            max_output_tokens=2048,
        )

    async def complete(self, history: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> ModelReply:
        ensure_configured()
        system_instruction, contents = to_gemini_contents(history)

        model = genai.GenerativeModel(
            self.model,
            system_instruction=system_instruction,
            tools=[{"function_declarations": to_function_declarations(tools)}] if tools else None,
            generation_config=self.generation_config,
        )
        response = await run_blocking("chat", model.generate_content, contents)

        reply = ModelReply()
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            logger.warning("Gemini returned no candidates")
            return reply

        for part in candidates[0].content.parts:
            fn = part.function_call
            if fn and fn.name:
                reply.tool_calls.append(ToolCall(
                    id=f"call_{len(reply.tool_calls)}",
                    name=fn.name,
                    args=to_plain(fn.args) if fn.args else {},
                ))
            elif part.text and not reply.text:
                reply.text = part.text

        return reply


class GeminiContentAnalyzer:
    """Structured JSON analysis of text or image content."""

    def __init__(self, model: Optional[str] = None):
        self.model = model or settings.GEMINI_VISION_MODEL

    async def analyze(
        self,
        system_instruction: str,
        parts: List[Any],
        response_schema: Dict[str, Any],
    ) -> Dict[str, Any]:
        ensure_configured()
        model = genai.GenerativeModel(
            self.model,
            system_instruction=system_instruction,
            generation_config=genai.GenerationConfig(
                temperature=0.3,
                top_k=32,
                top_p=1,
                max_output_tokens=2048,
                response_mime_type="application/json",
                response_schema=response_schema,
            ),
        )
        response = await run_blocking("analyze", model.generate_content, parts)

        text = response_text(response)
        try:
            return json.loads(text)
        except ValueError as e:
            logger.error(f"Unparseable analysis response: {text[:200]}")
            raise ProviderError("Google AI API error", status_code=502) from e
