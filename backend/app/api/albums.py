import asyncio
import logging
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.datastructures import UploadFile as StarletteUploadFile

from app.api.auth import require_admin, require_current_user
from app.core.database import get_db
from app.core.errors import Forbidden, NotFound, ValidationError
from app.core.security import CurrentUser
from app.models.album import Album, AlbumMemory
from app.models.media import VISUAL_MEDIA_TYPES
from app.models.memory import Memory
from app.services import storage
from app.services.memory_service import insert_bulk, link_album, load_memories, parse_uuid
from app.services.serializers import album_columns, album_detail, album_summary, flatten_memory, memory_row
from app.services.uploads import read_uploads
from app.services.zip_utils import ArchiveBuilder, archive_entry_name, archive_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/albums", tags=["albums"])

MAX_ALBUM_UPLOAD_FILES = 10


class CreateAlbumPayload(BaseModel):
    name: str
    description: str | None = None


def _with_memories(stmt):
    return stmt.options(
        selectinload(Album.memory_links).selectinload(AlbumMemory.memory).selectinload(Memory.media)
    ).execution_options(populate_existing=True)


async def _album_for(db: AsyncSession, album_id: str, current_user: CurrentUser, allow_admin: bool) -> Album:
    album_uuid = parse_uuid(album_id, "album id")
    stmt = select(Album).where(Album.id == album_uuid)
    if not (allow_admin and current_user.is_admin):
        stmt = stmt.where(Album.user_id == current_user.id)
    album = (await db.execute(stmt)).scalar_one_or_none()
    if album is None:
        raise NotFound("Album not found")
    return album


@router.get("/{album_id}/download")
async def download_album_zip(
    album_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    album_uuid = parse_uuid(album_id, "album id")
    album = (await db.execute(_with_memories(select(Album).where(Album.id == album_uuid)))).scalar_one_or_none()
    if album is None:
        raise NotFound("Album not found")
    if not current_user.is_admin and album.user_id != current_user.id:
        raise Forbidden("Unauthorized")

    builder = ArchiveBuilder()
    for link in album.memory_links:
        memory = link.memory
        if memory is None or not memory.media:
            continue
        media = next((item for item in memory.media if item.file_type in VISUAL_MEDIA_TYPES), memory.media[0])
        path = storage.storage_path_from_url(media.file_url)
        if not path:
            logger.warning("Skipping media with unresolvable path album=%s memory=%s", album.id, memory.id)
            continue
        try:
            file_bytes = await asyncio.to_thread(storage.get_file, path)
        except Exception:
            logger.exception("Download failed for album=%s path=%s", album.id, path)
            continue
        builder.add(archive_entry_name(memory.title, str(memory.id), path), file_bytes)

    zip_buffer = builder.finalize()
    filename = archive_filename(album.name)
    ascii_name = filename.encode("ascii", "ignore").decode("ascii") or "album.zip"
    return StreamingResponse(
        zip_buffer,
        media_type="application/zip",
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}",
        },
    )


@router.get("/all")
async def list_all_albums(
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Album)
        .options(selectinload(Album.owner), selectinload(Album.memory_links))
        .order_by(Album.created_at.desc())
    )
    return [
        {
            "id": str(album.id),
            "name": album.name,
            "description": album.description,
            "creator": (album.owner.name if album.owner else None) or "Unknown",
            "total_memories": len(album.memory_links),
            "created_at": album.created_at.isoformat() if album.created_at else None,
        }
        for album in result.scalars().all()
    ]


@router.get("")
async def list_albums(
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        _with_memories(
            select(Album).where(Album.user_id == current_user.id).order_by(Album.created_at.desc())
        )
    )
    return [album_summary(album) for album in result.scalars().all()]


@router.post("", status_code=201)
async def create_album(
    payload: CreateAlbumPayload,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    name = payload.name.strip()
    if not name:
        raise ValidationError("Album name is required")
    if len(name) > 100:
        raise ValidationError("Album name must be 100 characters or fewer")

    album = Album(user_id=current_user.id, name=name, description=payload.description)
    db.add(album)
    await db.commit()
    await db.refresh(album)
    return album_columns(album)


@router.get("/{album_id}")
async def get_album(
    album_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    album_uuid = parse_uuid(album_id, "album id")
    result = await db.execute(
        _with_memories(select(Album).where(Album.id == album_uuid, Album.user_id == current_user.id))
    )
    album = result.scalar_one_or_none()
    if album is None:
        raise NotFound("Album not found")
    return album_detail(album)


async def _link_memory_ids(db: AsyncSession, album: Album, raw_ids: list) -> int:
    candidate_ids = []
    for raw_id in raw_ids:
        try:
            candidate_ids.append(UUID(str(raw_id)))
        except ValueError:
            continue
    candidate_ids = list(dict.fromkeys(candidate_ids))
    if not candidate_ids:
        return 0

    owned = (
        await db.execute(
            select(Memory.id).where(Memory.id.in_(candidate_ids), Memory.user_id == album.user_id)
        )
    ).scalars().all()
    owned_ids = set(owned)

    linked = 0
    for memory_id in candidate_ids:
        if memory_id in owned_ids and await link_album(db, album.id, memory_id):
            linked += 1
    await db.commit()
    return linked


@router.post("/{album_id}/memories")
async def add_memories_to_album(
    album_id: str,
    request: Request,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        raw_ids = form.getlist("memoryIds") or form.getlist("memory_ids")
        form_ids = [item for item in raw_ids if isinstance(item, str)]
        if form_ids:
            album = await _album_for(db, album_id, current_user, allow_admin=True)
            linked = await _link_memory_ids(db, album, form_ids)
            return {"message": "Memories linked successfully", "linked": linked}

        files = [item for item in form.getlist("files") if isinstance(item, StarletteUploadFile)]
        parts = await read_uploads(files, max_count=MAX_ALBUM_UPLOAD_FILES, field="files")
        if not parts:
            raise ValidationError("No files or memory IDs provided.")
        album = await _album_for(db, album_id, current_user, allow_admin=False)
        title = form.get("title")
        location = form.get("location")
        created_ids = await insert_bulk(
            db,
            current_user.id,
            parts,
            title if isinstance(title, str) else None,
            location if isinstance(location, str) else None,
            album.id,
        )
        memories = await load_memories(db, created_ids)
        return {
            "message": "Memories uploaded to album",
            "memories": [flatten_memory(memory_row(memory)) for memory in memories],
        }

    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("No files or memory IDs provided.") from exc
    ids = None
    if isinstance(body, dict):
        ids = body.get("memoryIds") or body.get("memory_ids")
    if not isinstance(ids, list) or not ids:
        raise ValidationError("No files or memory IDs provided.")

    album = await _album_for(db, album_id, current_user, allow_admin=True)
    linked = await _link_memory_ids(db, album, ids)
    return {"message": "Memories linked successfully", "linked": linked}


@router.delete("/{album_id}/memories/{memory_id}")
async def remove_memory_from_album(
    album_id: str,
    memory_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    album = await _album_for(db, album_id, current_user, allow_admin=True)
    memory_uuid = parse_uuid(memory_id, "memory id")
    link = await db.get(AlbumMemory, (album.id, memory_uuid))
    if link is None:
        raise NotFound("Memory not found in album")

    await db.delete(link)
    await db.commit()
    return {"message": "Memory removed from album"}


@router.delete("/{album_id}")
async def delete_album(
    album_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    album = await _album_for(db, album_id, current_user, allow_admin=True)
    album_uuid = album.id

    # Join rows first so the album delete never trips the foreign key.
    await db.execute(delete(AlbumMemory).where(AlbumMemory.album_id == album_uuid))
    await db.execute(delete(Album).where(Album.id == album_uuid))
    await db.commit()
    return {"message": "Album and its links deleted successfully"}
