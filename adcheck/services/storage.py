from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from adcheck.core.errors import ValidationError
from adcheck.schemas.media import MediaAsset
from adcheck.services.media_types import EXTENSION_MIME_TYPES, extension_of, media_kind, resolve_mime_type


log = logging.getLogger(__name__)


class UploadRejected(ValidationError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class MediaStore:
    """
    Local directory holding uploaded media for the lifetime of a request.
    The pipeline only reads from it; removal is the caller's decision.
    """

    def __init__(self, base_dir: str | Path, *, max_bytes: int):
        self.base = Path(base_dir)
        self.base.mkdir(parents=True, exist_ok=True)
        self.max_bytes = max_bytes

    def check_upload(self, *, original_name: str, size: int) -> None:
        ext = extension_of(original_name)
        if ext not in EXTENSION_MIME_TYPES:
            allowed = ", ".join(EXTENSION_MIME_TYPES)
            raise UploadRejected("INVALID_FILE_TYPE", f"Invalid file type. Allowed types: {allowed}")
        if size > self.max_bytes:
            raise UploadRejected(
                "FILE_TOO_LARGE",
                f"File too large. Maximum size allowed is {self.max_bytes // (1024 * 1024)}MB.",
            )

    def save_upload(
        self,
        *,
        original_name: str,
        data: bytes,
        content_type: str | None,
        accept: Callable[[str], bool] | None = None,
    ) -> MediaAsset:
        """
        accept: optional predicate from the summarizer; a type it cannot take
        is rejected here, before anything is written.
        """
        self.check_upload(original_name=original_name, size=len(data))

        mime_type = resolve_mime_type(original_name, content_type)
        kind = media_kind(mime_type)
        if mime_type is None or kind is None:
            raise UploadRejected("INVALID_FILE_TYPE", f"Unsupported content type: {content_type}")
        if accept is not None and not accept(mime_type):
            raise UploadRejected("INVALID_FILE_TYPE", f"File type {mime_type} is not supported by the configured summarizer")

        ext = Path(original_name).suffix.lower()
        identifier = f"file-{uuid.uuid4().hex}{ext}"
        path = self.base / identifier
        path.write_bytes(data)
        log.info("storage: saved %s as %s (%d bytes, %s)", original_name, identifier, len(data), kind)

        return MediaAsset(
            identifier=identifier,
            original_name=original_name,
            path=path,
            size=len(data),
            mime_type=mime_type,
            kind=kind,
            uploaded_at=datetime.now(timezone.utc),
        )

    def remove(self, asset: MediaAsset) -> bool:
        try:
            asset.path.unlink()
        except FileNotFoundError:
            return False
        log.info("storage: removed %s", asset.identifier)
        return True
