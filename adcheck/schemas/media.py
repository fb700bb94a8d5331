from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from adcheck.schemas.common import CamelModel


MediaKind = Literal["video", "image"]

# Sentinel key point used when the model ignored the JSON instructions
RAW_RESPONSE_KEY_POINT = "Raw analysis response provided"
RAW_RESPONSE_NOTE = "Response was not in expected JSON format, using raw text"
NO_KEY_POINTS = "No key points provided"


class MediaAsset(BaseModel):
    """
    A stored upload. Created by the upload handler, read-only in the pipeline.
    """
    identifier: str = Field(min_length=1, description="Stored filename.")
    original_name: str
    path: Path
    size: int = Field(ge=0)
    mime_type: str
    kind: MediaKind
    uploaded_at: datetime


class FileMetadata(CamelModel):
    file_name: str
    file_size: int
    mime_type: str
    media_type: MediaKind
    analyzed_at: datetime


class AnalysisResult(CamelModel):
    summary: str = Field(min_length=1)
    key_points: list[str] = Field(min_length=1)
    file_metadata: FileMetadata
    note: str | None = None


class FileInfo(CamelModel):
    original_name: str
    filename: str
    file_size: int
    file_type: MediaKind
    upload_date: datetime

    @classmethod
    def from_asset(cls, asset: MediaAsset) -> "FileInfo":
        return cls(
            original_name=asset.original_name,
            filename=asset.identifier,
            file_size=asset.size,
            file_type=asset.kind,
            upload_date=asset.uploaded_at,
        )
