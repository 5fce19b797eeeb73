from datetime import date

import pytest
from conftest import ScriptedChatModel

from aiva.api.deps import get_chat_model
from aiva.core.exceptions import NotConfiguredError, ProviderError
from aiva.main import app
from aiva.services.chat_service import annotate_reply, assistant_error_reply, format_duplicate_reply
from aiva.services.chat_session import GREETING, ChatSessionStore
from aiva.services.gemini_service import ModelReply, ToolCall
from aiva.services.intent_classifier import ClassifiedMessage, Intent
from aiva.utils.dto.chat import UploadedFile


async def send(client, headers, message, session_id=None):
    response = await client.post(
        "/api/v1/chat/messages",
        json={"message": message, "session_id": session_id},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


async def test_folder_listing_is_answered_locally(client, auth_headers, chat_model):
    await client.post("/api/v1/folders/", json={"name": "Marketing"}, headers=auth_headers)

    body = await send(client, auth_headers, "show me all my folders")

    assert body["handled_by"] == "local"
    assert body["intent"] == "folder_list"
    assert "**Marketing** (0 assets)" in body["reply"]
    assert chat_model.calls == []
    assert [m["role"] for m in body["messages"]] == ["assistant", "user", "assistant"]
    assert body["messages"][0]["content"] == GREETING


async def test_duplicate_folder_is_caught_before_the_model(client, auth_headers, chat_model):
    await client.post("/api/v1/folders/", json={"name": "Marketing"}, headers=auth_headers)

    body = await send(client, auth_headers, "create a folder called 'marketing'")

    assert body["handled_by"] == "local"
    assert "Duplicate Folder Detected" in body["reply"]
    assert '"Marketing_v2"' in body["reply"]
    assert chat_model.calls == []


async def test_missing_folder_name_gets_format_help(client, auth_headers, chat_model):
    body = await send(client, auth_headers, "create a folder called")
    assert "couldn't determine the exact folder name" in body["reply"]
    assert chat_model.calls == []


async def test_session_history_is_sent_to_the_assistant(client, auth_headers, chat_model):
    first = await send(client, auth_headers, "hello")
    assert first["handled_by"] == "assistant"
    assert first["reply"] == "Hello from the assistant."

    second = await send(client, auth_headers, "what can you do?", session_id=first["session_id"])
    assert second["session_id"] == first["session_id"]
    assert len(second["messages"]) == 5

    history = chat_model.calls[-1]
    assert history[0]["role"] == "system"
    assert [m["content"] for m in history[1:]] == [
        GREETING,
        "hello",
        "Hello from the assistant.",
        "what can you do?",
    ]


async def test_assistant_creates_folder_through_tool(client, auth_headers):
    app.dependency_overrides[get_chat_model] = lambda: ScriptedChatModel([
        ModelReply(tool_calls=[ToolCall(id="call_0", name="create_folder", args={"name": "Campaigns"})]),
        ModelReply(text="Done! I created the Campaigns folder."),
    ])

    body = await send(client, auth_headers, "create folder Campaigns")

    assert body["handled_by"] == "assistant"
    listing = await client.get("/api/v1/folders/", headers=auth_headers)
    assert [f["name"] for f in listing.json()] == ["Campaigns"]


async def test_unconfigured_assistant_degrades_gracefully(client, auth_headers):
    app.dependency_overrides[get_chat_model] = lambda: ScriptedChatModel(
        error=NotConfiguredError("GEMINI_API_KEY is not configured")
    )
    body = await send(client, auth_headers, "tell me a joke")
    assert "not configured" in body["reply"]
    assert "Folders/Assets pages" in body["reply"]


async def test_attached_file_is_consumed_by_next_message(client, auth_headers, storage):
    app.dependency_overrides[get_chat_model] = lambda: ScriptedChatModel([
        ModelReply(text="Which folder should I use?"),
    ])
    upload = await client.post(
        "/api/v1/chat/uploads",
        files={"file": ("notes.txt", b"meeting notes", "text/plain")},
        headers=auth_headers,
    )
    assert upload.status_code == 201
    session_id = upload.json()["session_id"]
    staged = upload.json()["uploaded_file"]
    assert "/temp/" in staged["path"]
    assert storage.exists(staged["path"])

    body = await send(client, auth_headers, "keep this", session_id=session_id)

    assert body["uploaded_file"] is None
    assert body["messages"][-2]["content"] == "keep this\n[Attached: notes.txt]"
    assert "notes.txt" in body["reply"]
    assert not storage.exists(staged["path"])


async def test_new_attachment_replaces_and_deletes_the_pending_one(client, auth_headers, storage):
    first = await client.post(
        "/api/v1/chat/uploads",
        files={"file": ("old.txt", b"old", "text/plain")},
        headers=auth_headers,
    )
    session_id = first.json()["session_id"]
    old_path = first.json()["uploaded_file"]["path"]

    second = await client.post(
        "/api/v1/chat/uploads",
        files={"file": ("new.txt", b"new", "text/plain")},
        data={"session_id": session_id},
        headers=auth_headers,
    )

    assert second.json()["session_id"] == session_id
    assert second.json()["uploaded_file"]["name"] == "new.txt"
    assert storage.exists(second.json()["uploaded_file"]["path"])
    assert not storage.exists(old_path)


async def test_attachment_filed_by_assistant_is_kept(client, auth_headers, storage):
    upload = await client.post(
        "/api/v1/chat/uploads",
        files={"file": ("notes.txt", b"meeting notes", "text/plain")},
        headers=auth_headers,
    )
    session_id = upload.json()["session_id"]
    path = upload.json()["uploaded_file"]["path"]
    app.dependency_overrides[get_chat_model] = lambda: ScriptedChatModel([
        ModelReply(tool_calls=[ToolCall(
            id="call_0",
            name="upload_selected_asset",
            args={"temp_file_path": path, "folder_name": "Notes"},
        )]),
        ModelReply(text="Uploaded notes.txt to Notes."),
    ])

    body = await send(client, auth_headers, "save the attachment please", session_id=session_id)

    assert body["reply"] == "Uploaded notes.txt to Notes."
    listing = await client.get("/api/v1/assets/", params={"folder_name": "Notes"}, headers=auth_headers)
    [asset] = listing.json()
    assert storage.exists(asset["file_path"])
    assert not storage.exists(path)


async def test_detaching_removes_staged_file(client, auth_headers, storage):
    upload = await client.post(
        "/api/v1/chat/uploads",
        files={"file": ("a.png", b"png", "image/png")},
        headers=auth_headers,
    )
    session_id = upload.json()["session_id"]
    path = upload.json()["uploaded_file"]["path"]

    response = await client.delete("/api/v1/chat/uploads", params={"session_id": session_id}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["uploaded_file"] is None
    assert not storage.exists(path)


async def test_session_info_and_clear(client, auth_headers):
    body = await send(client, auth_headers, "list of assets")
    session_id = body["session_id"]
    assert "No Assets Found" in body["reply"]

    info = await client.get(f"/api/v1/chat/sessions/{session_id}/info", headers=auth_headers)
    assert info.json()["message_count"] == 3

    cleared = await client.delete(f"/api/v1/chat/sessions/{session_id}", headers=auth_headers)
    assert cleared.status_code == 204
    missing = await client.get(f"/api/v1/chat/sessions/{session_id}", headers=auth_headers)
    assert missing.status_code == 404


async def test_stateless_assistant_endpoint(client, auth_headers, chat_model):
    empty = await client.post("/api/v1/chat/assistant", json={}, headers=auth_headers)
    assert empty.status_code == 400

    response = await client.post(
        "/api/v1/chat/assistant",
        json={"messages": [{"role": "user", "content": "hi"}]},
        headers=auth_headers,
    )
    assert response.json() == {"response": "Hello from the assistant."}


async def test_expired_sessions_start_over(fake_redis):
    store = ChatSessionStore(fake_redis, timeout_seconds=60)
    session = store.new_session()
    await store.save("t1", "u1", session)

    raw = fake_redis.data[f"chat_session:t1:u1:{session.session_id}"]
    stale = raw.replace(str(session.last_activity), str(session.last_activity - 61_000))
    fake_redis.data[f"chat_session:t1:u1:{session.session_id}"] = stale

    assert await store.load("t1", "u1", session.session_id) is None
    assert fake_redis.data == {}


async def test_sessions_are_scoped_per_user(fake_redis):
    store = ChatSessionStore(fake_redis, timeout_seconds=60)
    session = await store.save("t1", "u1", store.new_session())
    assert await store.load("t1", "u2", session.session_id) is None
    assert fake_redis.expiry[f"chat_session:t1:u1:{session.session_id}"] == 60


def test_duplicate_reply_lists_suggestions():
    reply = format_duplicate_reply("Marketing", ["Marketing_v2", "Marketing_new"])
    assert 'A folder named "Marketing" already exists' in reply
    assert "Create folder called 'Marketing_v2'" in reply


@pytest.mark.parametrize("status, text", [
    (429, "too many requests"),
    (403, "invalid or out of quota"),
    (502, "Failed to send message"),
])
def test_provider_errors_become_friendly_replies(status, text):
    error = ProviderError("boom", status_code=status)
    reply = assistant_error_reply(error, ClassifiedMessage(Intent.general), None)
    assert text in reply


def test_annotation_adds_alternatives_for_duplicates():
    classified = ClassifiedMessage(Intent.folder_create, folder_name="Docs")
    reply = annotate_reply("That folder already exists.", classified, None, today=date(2026, 10, 19))
    assert '"Docs_2026-10-19"' in reply
    assert '"Docs_backup"' in reply


def test_annotation_mentions_unaddressed_attachment():
    uploaded = UploadedFile(path="t/temp/x.pdf", name="x.pdf", type="application/pdf", size=10)
    reply = annotate_reply("Sure.", ClassifiedMessage(Intent.general), uploaded)
    assert 'I notice you attached "x.pdf"' in reply
