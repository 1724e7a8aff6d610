from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID, uuid4

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import NotFound, StorageUnavailable, ValidationError
from app.models.album import Album, AlbumMemory
from app.models.media import MEDIA_AUDIO, Media
from app.models.memory import Memory
from app.models.tag import MemoryTag
from app.services import storage
from app.services.tags import SqlTagRepository, link_tags, resolve_tag_ids
from app.services.uploads import UploadedPart

logger = logging.getLogger(__name__)


@dataclass
class MemoryFields:
    title: str
    description: str
    memory_date: date
    location: str
    is_milestone: bool
    album_id: UUID | None = None


def parse_memory_date(raw: str | None) -> date:
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw.split("T", 1)[0].strip())
    except ValueError as exc:
        raise ValidationError("memory_date must be an ISO date (YYYY-MM-DD)") from exc


def parse_uuid(raw: str | None, label: str) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise ValidationError(f"Invalid {label}") from exc


def parse_flag(raw) -> bool:
    return str(raw).strip().lower() == "true"


def with_joins(stmt):
    return stmt.options(
        selectinload(Memory.media),
        selectinload(Memory.memory_tags).selectinload(MemoryTag.tag),
    ).execution_options(populate_existing=True)


async def load_memory(db: AsyncSession, memory_id: UUID, user_id: UUID | None = None) -> Memory | None:
    stmt = select(Memory).where(Memory.id == memory_id)
    if user_id is not None:
        stmt = stmt.where(Memory.user_id == user_id)
    result = await db.execute(with_joins(stmt))
    return result.scalar_one_or_none()


async def load_memories(db: AsyncSession, memory_ids: list[UUID]) -> list[Memory]:
    if not memory_ids:
        return []
    result = await db.execute(with_joins(select(Memory).where(Memory.id.in_(memory_ids))))
    by_id = {memory.id: memory for memory in result.scalars().all()}
    return [by_id[memory_id] for memory_id in memory_ids if memory_id in by_id]


async def ensure_album_owned(db: AsyncSession, album_id: UUID, user_id: UUID) -> None:
    result = await db.execute(select(Album.id).where(Album.id == album_id, Album.user_id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("Album not found")


async def upload_part(part: UploadedPart, key: str) -> None:
    try:
        await asyncio.to_thread(storage.upload_file, part.data, key, part.content_type)
    except ValueError as exc:
        raise StorageUnavailable(f"Upload storage is not configured: {exc}") from exc
    except ClientError as exc:
        error_code = exc.response.get("Error", {}).get("Code", "UnknownError")
        raise StorageUnavailable(f"Upload to storage failed: {error_code}") from exc
    except BotoCoreError as exc:
        raise StorageUnavailable(f"Upload to storage failed: {exc.__class__.__name__}") from exc


def media_key(user_id: UUID, memory_id: UUID, label: str, part: UploadedPart) -> str:
    return f"{user_id}/{memory_id}/{label}-{uuid4()}.{part.extension}"


async def link_album(db: AsyncSession, album_id: UUID, memory_id: UUID) -> bool:
    if await db.get(AlbumMemory, (album_id, memory_id)) is not None:
        return False
    db.add(AlbumMemory(album_id=album_id, memory_id=memory_id))
    return True


async def insert_memory(
    db: AsyncSession,
    user_id: UUID,
    fields: MemoryFields,
    visual: UploadedPart | None = None,
    audio: UploadedPart | None = None,
) -> UUID:
    """Insert the memory, upload its files and add media rows, then commit."""
    memory_id = uuid4()
    db.add(
        Memory(
            id=memory_id,
            user_id=user_id,
            title=fields.title,
            description=fields.description,
            memory_date=fields.memory_date,
            location=fields.location,
            is_milestone=fields.is_milestone,
            album_id=fields.album_id,
        )
    )
    await db.flush()

    if visual is not None:
        key = media_key(user_id, memory_id, "display", visual)
        await upload_part(visual, key)
        db.add(Media(memory_id=memory_id, file_url=key, file_type=visual.media_kind))
    if audio is not None:
        key = media_key(user_id, memory_id, "audio", audio)
        await upload_part(audio, key)
        db.add(Media(memory_id=memory_id, file_url=key, file_type=audio.media_kind))

    if fields.album_id is not None:
        await link_album(db, fields.album_id, memory_id)

    await db.commit()
    return memory_id


async def attach_tags(db: AsyncSession, memory_id: UUID, identifiers: list[str]) -> None:
    """Best effort: the memory is already saved, so failures are only logged."""
    if not identifiers:
        return
    try:
        tag_ids = await resolve_tag_ids(identifiers, SqlTagRepository(db))
        await link_tags(db, memory_id, tag_ids)
        await db.commit()
    except Exception:
        logger.exception("Tag processing failed but memory saved memory=%s", memory_id)
        await db.rollback()


async def insert_bulk(
    db: AsyncSession,
    user_id: UUID,
    parts: list[UploadedPart],
    title: str | None,
    location: str | None,
    album_id: UUID | None,
) -> list[UUID]:
    created: list[UUID] = []
    for part in parts:
        fields = MemoryFields(
            title=title or part.filename,
            description="",
            memory_date=date.today(),
            location=location or "",
            is_milestone=False,
            album_id=album_id,
        )
        try:
            if part.media_kind == MEDIA_AUDIO:
                memory_id = await insert_memory(db, user_id, fields, audio=part)
            else:
                memory_id = await insert_memory(db, user_id, fields, visual=part)
        except Exception:
            logger.exception("Bulk upload item failed user=%s file=%s", user_id, part.filename)
            await db.rollback()
            continue
        created.append(memory_id)
    return created


async def delete_memory(db: AsyncSession, memory_id: UUID, owner_id: UUID | None = None) -> None:
    """Best-effort blob cleanup, then the memory row and its dependents.

    ``owner_id`` scopes the delete to one user; None is the admin path.
    """
    stmt = select(Memory.id).where(Memory.id == memory_id)
    if owner_id is not None:
        stmt = stmt.where(Memory.user_id == owner_id)
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise NotFound("Memory not found")

    file_urls = (await db.execute(select(Media.file_url).where(Media.memory_id == memory_id))).scalars().all()
    paths: list[str] = []
    for file_url in file_urls:
        path = storage.storage_path_from_url(file_url)
        if path and path not in paths:
            paths.append(path)

    if paths:
        logger.info("Storage cleanup for memory=%s paths=%s", memory_id, paths)
        try:
            await asyncio.to_thread(storage.delete_files, paths)
        except Exception:
            logger.exception("Storage cleanup failed for memory=%s, deleting row anyway", memory_id)

    await db.execute(delete(MemoryTag).where(MemoryTag.memory_id == memory_id))
    await db.execute(delete(AlbumMemory).where(AlbumMemory.memory_id == memory_id))
    await db.execute(delete(Media).where(Media.memory_id == memory_id))
    delete_stmt = delete(Memory).where(Memory.id == memory_id)
    if owner_id is not None:
        delete_stmt = delete_stmt.where(Memory.user_id == owner_id)
    await db.execute(delete_stmt)
    await db.commit()
