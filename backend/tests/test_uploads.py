import asyncio
import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.core.errors import FileTooLarge, TooManyFiles, UnsupportedFileType
from app.services.uploads import UploadedPart, read_uploads


def _upload(name, content_type, data=b"data"):
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


def test_reads_accepted_types():
    parts = asyncio.run(
        read_uploads(
            [_upload("a.jpg", "image/jpeg"), _upload("b.webm", "audio/webm", b"voice")],
            max_count=5,
            field="files",
        )
    )
    assert [part.media_kind for part in parts] == ["image", "audio"]
    assert parts[1].data == b"voice"


def test_rejects_unsupported_type():
    with pytest.raises(UnsupportedFileType) as excinfo:
        asyncio.run(read_uploads([_upload("doc.pdf", "application/pdf")], max_count=1, field="file"))
    assert "File type not supported" in excinfo.value.message


def test_rejects_too_many_files():
    files = [_upload(f"{index}.png", "image/png") for index in range(3)]
    with pytest.raises(TooManyFiles):
        asyncio.run(read_uploads(files, max_count=2, field="files"))


def test_rejects_oversized_file():
    with pytest.raises(FileTooLarge):
        asyncio.run(
            read_uploads([_upload("big.mp4", "video/mp4", b"x" * 11)], max_count=1, field="file", max_size_bytes=10)
        )


def test_extension_falls_back_to_content_type():
    assert UploadedPart("clip.MOV", "video/quicktime", b"").extension == "mov"
    assert UploadedPart("blob", "image/png", b"").extension == "png"
    assert UploadedPart("blob", "audio/x-unknown-kind", b"").extension == "bin"
