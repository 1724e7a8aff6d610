from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path as FilePath

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import FileTooLarge, TooManyFiles, UnsupportedFileType
from app.models.media import MEDIA_AUDIO, MEDIA_IMAGE, MEDIA_VIDEO

ALLOWED_CONTENT_PREFIXES = ("image/", "video/", "audio/")
UNSUPPORTED_TYPE_MESSAGE = "File type not supported. Please upload an image, video, or audio file."


@dataclass(frozen=True)
class UploadedPart:
    filename: str
    content_type: str
    data: bytes

    @property
    def media_kind(self) -> str:
        if self.content_type.startswith("video/"):
            return MEDIA_VIDEO
        if self.content_type.startswith("audio/"):
            return MEDIA_AUDIO
        return MEDIA_IMAGE

    @property
    def extension(self) -> str:
        suffix = FilePath(self.filename).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        guessed = mimetypes.guess_extension(self.content_type) or ""
        return guessed.lstrip(".") or "bin"


def check_content_type(content_type: str | None) -> str:
    normalized = (content_type or "").lower()
    if not normalized.startswith(ALLOWED_CONTENT_PREFIXES):
        raise UnsupportedFileType(UNSUPPORTED_TYPE_MESSAGE)
    return normalized


async def read_uploads(
    files: list[UploadFile] | None,
    max_count: int,
    field: str,
    max_size_bytes: int | None = None,
) -> list[UploadedPart]:
    """Buffer multipart file parts in memory after checking type, count and size."""
    files = [item for item in files or [] if item is not None and item.filename]
    if len(files) > max_count:
        raise TooManyFiles(f"Upload Error: Too many files for field '{field}' (max {max_count})")

    limit = max_size_bytes or settings.MAX_UPLOAD_SIZE_BYTES
    parts: list[UploadedPart] = []
    for file in files:
        content_type = check_content_type(file.content_type)
        data = await file.read(limit + 1)
        if len(data) > limit:
            raise FileTooLarge(f"Upload Error: File too large ({file.filename})")
        parts.append(UploadedPart(filename=file.filename or "upload", content_type=content_type, data=data))
    return parts
