from __future__ import annotations

from pathlib import PurePath

from adcheck.schemas.media import MediaKind


VIDEO_MIME_TYPES = frozenset({
    "video/mp4",
    "video/avi",
    "video/x-msvideo",
    "video/mov",
    "video/quicktime",
    "video/wmv",
    "video/x-ms-wmv",
    "video/flv",
    "video/x-flv",
    "video/webm",
    "video/mkv",
    "video/x-matroska",
})

IMAGE_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
})

# Non-standard spellings browsers still send
MIME_ALIASES = {"image/jpg": "image/jpeg"}

# Upload extension -> canonical mime type
EXTENSION_MIME_TYPES: dict[str, str] = {
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
}


def media_kind(mime_type: str | None) -> MediaKind | None:
    mt = (mime_type or "").split(";", 1)[0].strip().lower()
    if mt in VIDEO_MIME_TYPES:
        return "video"
    if mt in IMAGE_MIME_TYPES:
        return "image"
    return None


def extension_of(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")


def resolve_mime_type(filename: str, declared: str | None) -> str | None:
    """
    Prefer a declared content type we support; otherwise infer from the extension.
    Browsers often send application/octet-stream for video containers.
    """
    if media_kind(declared):
        mt = (declared or "").split(";", 1)[0].strip().lower()
        return MIME_ALIASES.get(mt, mt)
    return EXTENSION_MIME_TYPES.get(extension_of(filename))
