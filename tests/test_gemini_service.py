import pytest
from google.api_core import exceptions as google_exceptions

from aiva.core.exceptions import NotConfiguredError
from aiva.services.chat_tools import TOOL_DEFINITIONS
from aiva.services.gemini_service import (
    ensure_configured,
    map_provider_error,
    to_function_declarations,
    to_gemini_contents,
    to_plain,
)


def test_missing_key_is_reported():
    with pytest.raises(NotConfiguredError, match="GEMINI_API_KEY is not configured"):
        ensure_configured()


@pytest.mark.parametrize("exc, status", [
    (google_exceptions.ResourceExhausted("quota"), 429),
    (google_exceptions.PermissionDenied("denied"), 403),
    (google_exceptions.Unauthenticated("bad key"), 403),
    (RuntimeError("socket closed"), 502),
])
def test_provider_errors_are_mapped(exc, status):
    assert map_provider_error(exc).status_code == status


def test_declarations_use_gemini_schema_types():
    declarations = {d["name"]: d for d in to_function_declarations(TOOL_DEFINITIONS)}

    create = declarations["create_folder"]["parameters"]
    assert create["type"] == "OBJECT"
    assert create["properties"]["name"]["type"] == "STRING"
    assert "additionalProperties" not in create

    tags = declarations["upload_asset_from_url"]["parameters"]["properties"]["tags"]
    assert tags == {"type": "ARRAY", "items": {"type": "STRING"}}

    # No properties: no parameters block at all
    assert "parameters" not in declarations["list_folders"]


def test_history_is_split_into_system_and_contents():
    system, contents = to_gemini_contents([
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "make folder X"},
        {"role": "assistant", "content": "", "tool_calls": [
            {"id": "call_0", "name": "create_folder", "args": {"name": "X"}},
            {"id": "call_1", "name": "list_folders", "args": {}},
        ]},
        {"role": "tool", "tool_call_id": "call_0", "name": "create_folder", "content": '{"folder": {"name": "X"}}'},
        {"role": "tool", "tool_call_id": "call_1", "name": "list_folders", "content": "not json"},
        {"role": "assistant", "content": "Done."},
    ])

    assert system == "be brief"
    assert [c["role"] for c in contents] == ["user", "model", "user", "model"]
    assert len(contents[1]["parts"]) == 2
    responses = contents[2]["parts"]
    assert [p.function_response.name for p in responses] == ["create_folder", "list_folders"]
    assert all("tool_group" not in c for c in contents)


def test_plain_conversion_of_call_args():
    assert to_plain({"limit": 5.0, "tags": ("a", "b"), "nested": {"x": 1.5}}) == {
        "limit": 5,
        "tags": ["a", "b"],
        "nested": {"x": 1.5},
    }
