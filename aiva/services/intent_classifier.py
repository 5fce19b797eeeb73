import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    asset_list = "asset_list"
    asset_search = "asset_search"
    folder_list = "folder_list"
    folder_create = "folder_create"
    general = "general"


@dataclass
class ClassifiedMessage:
    intent: Intent
    search_query: Optional[str] = None
    folder_name: Optional[str] = None


ASSET_LIST_PHRASES = (
    "list of assets", "show assets", "get assets", "all assets", "list assets",
    "show all assets", "what assets", "see all assets",
)

ASSET_QUERY_PATTERNS = [
    re.compile(r"assets?\s+(?:with\s+)?(?:name\s+)?(?:contains?\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"assets?\s+(?:named?\s+)?(?:called\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"search\s+(?:for\s+)?(?:assets?\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"find\s+(?:assets?\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"assets?\s+containing\s+[\"']?([^\"'\n]+?)[\"']?\s*[?.!]*$", re.I),
    re.compile(r"name\s+contains?\s+(\S+)", re.I),
]

FOLDER_LIST_PHRASES = (
    "list of folders", "show folders", "get folders", "all folders", "list folders",
    "show all folders", "what folders", "folders in the system",
)

FOLDER_LIST_PATTERNS = [
    re.compile(r"\b(?:show|list|get|see|view|display)\s+(?:me\s+)?(?:all\s+)?(?:of\s+)?(?:my\s+|the\s+)?folders\b", re.I),
]

FOLDER_CREATE_PHRASES = (
    "create folder", "new folder", "make folder", "add folder",
    "create a folder", "make a folder", "add a folder",
)

FOLDER_CREATE_PATTERNS = [
    re.compile(r"create.*folder", re.I),
    re.compile(r"folder\s+(?:called|named)", re.I),
    re.compile(r"\b(?:make|add)\s+(?:a\s+)?(?:new\s+)?[\w-]+\s+folder\b", re.I),
]

QUOTED_NAME_PATTERNS = [
    re.compile(r"(?:create|make|add)\s+(?:a\s+)?(?:new\s+)?folder\s+(?:called\s+|named\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"new\s+folder\s+(?:called\s+|named\s+)?[\"']([^\"']+)[\"']", re.I),
    re.compile(r"folder\s+(?:called\s+|named\s+)?[\"']([^\"']+)[\"']", re.I),
]

PLAIN_NAME_PATTERNS = [
    re.compile(r"(?:create|make|add)\s+(?:a\s+)?(?:new\s+)?folder\s+(?:called\s+|named\s+|for\s+)?(\w[\w\s-]*)", re.I),
    re.compile(r"new\s+folder\s+(?:called\s+|named\s+)?(\w[\w\s-]*)", re.I),
    # "make a marketing folder"
    re.compile(r"(?:create|make|add)\s+(?:a\s+)?(?:new\s+)?(?!(?:a|an|the|new)\b)([\w-]+)\s+folder\b", re.I),
    re.compile(r"folder\s+(?:called|named)\s+(\w[\w\s-]*)", re.I),
]

TRAILING_FILLER = re.compile(r"\s+(?:please|folder|to\s+it|for\s+me)$", re.I)
NOT_A_NAME = {"called", "named", "for", "please", "folder"}


def _contains_any(text: str, phrases) -> bool:
    lowered = text.lower()
    return any(phrase in lowered for phrase in phrases)


def extract_search_query(message: str) -> Optional[str]:
    for pattern in ASSET_QUERY_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def clean_folder_name(name: str) -> Optional[str]:
    cleaned = name.strip()
    while True:
        stripped = TRAILING_FILLER.sub("", cleaned).strip()
        if stripped == cleaned:
            break
        cleaned = stripped
    if not cleaned or cleaned.lower() in NOT_A_NAME:
        return None
    return cleaned


def extract_folder_name(message: str) -> Optional[str]:
    """Folder name from a creation request; quoted names win over bare words."""
    for pattern in QUOTED_NAME_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1).strip():
            return match.group(1).strip()

    for pattern in PLAIN_NAME_PATTERNS:
        match = pattern.search(message)
        if match:
            name = clean_folder_name(match.group(1))
            if name:
                return name
    return None


def is_asset_list_request(message: str) -> bool:
    return _contains_any(message, ASSET_LIST_PHRASES)


def is_folder_list_request(message: str) -> bool:
    return _contains_any(message, FOLDER_LIST_PHRASES) or any(
        pattern.search(message) for pattern in FOLDER_LIST_PATTERNS
    )


def is_folder_creation_request(message: str) -> bool:
    return _contains_any(message, FOLDER_CREATE_PHRASES) or any(
        pattern.search(message) for pattern in FOLDER_CREATE_PATTERNS
    )


def classify(message: str) -> ClassifiedMessage:
    search_query = extract_search_query(message)
    if search_query:
        return ClassifiedMessage(Intent.asset_search, search_query=search_query)
    if is_asset_list_request(message):
        return ClassifiedMessage(Intent.asset_list)
    if is_folder_list_request(message):
        return ClassifiedMessage(Intent.folder_list)
    if is_folder_creation_request(message):
        return ClassifiedMessage(Intent.folder_create, folder_name=extract_folder_name(message))
    return ClassifiedMessage(Intent.general)
