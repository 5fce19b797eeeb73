from typing import Optional
from urllib.parse import urlparse

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "video/mp4": "mp4",
    "application/pdf": "pdf",
}


def extension_for_content_type(content_type: Optional[str]) -> str:
    if not content_type:
        return "bin"
    content_type = content_type.split(";")[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(content_type) or content_type.split("/")[-1] or "bin"


def extension_of(filename: Optional[str]) -> Optional[str]:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1]
        return ext or None
    return None


def filename_from_url(url: str) -> Optional[str]:
    try:
        path = urlparse(url).path
    except ValueError:
        return None
    return path.rsplit("/", 1)[-1] or None


def is_image(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def format_size_kb(size: int) -> str:
    return f"{size / 1024:.1f} KB"
