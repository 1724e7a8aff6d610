from __future__ import annotations

import io
import re
import zipfile
from pathlib import PurePosixPath

_WHITESPACE = re.compile(r"\s+")
DEFAULT_ENTRY_EXTENSION = "jpg"


def underscore_whitespace(value: str) -> str:
    return _WHITESPACE.sub("_", value.strip())


def archive_filename(album_name: str | None) -> str:
    return f"{underscore_whitespace(album_name or '') or 'album'}.zip"


def archive_entry_name(title: str | None, memory_id: str, storage_path: str) -> str:
    stem = underscore_whitespace(title or "") or "photo"
    extension = PurePosixPath(storage_path).suffix.lstrip(".").lower() or DEFAULT_ENTRY_EXTENSION
    return f"{stem}_{memory_id[:5]}.{extension}"


class ArchiveBuilder:
    """Collects files into an in-memory ZIP, de-duplicating entry names."""

    def __init__(self) -> None:
        self.buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(self.buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=5)
        self._names: set[str] = set()

    def add(self, name: str, data: bytes) -> str:
        candidate = name
        counter = 1
        while candidate in self._names:
            path = PurePosixPath(name)
            candidate = f"{path.stem}_{counter}{path.suffix}"
            counter += 1
        self._names.add(candidate)
        self._zip.writestr(candidate, data)
        return candidate

    @property
    def entry_count(self) -> int:
        return len(self._names)

    def finalize(self) -> io.BytesIO:
        self._zip.close()
        self.buffer.seek(0)
        return self.buffer
