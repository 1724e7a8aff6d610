import asyncio
import math
import random
import time
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.api.auth import require_admin, require_current_user
from app.core.database import count_rows, get_db, get_session_factory
from app.core.errors import NotFound, UnsupportedFileType, ValidationError
from app.core.security import CurrentUser
from app.models.album import Album
from app.models.media import VISUAL_MEDIA_TYPES, Media
from app.models.memory import Memory
from app.models.tag import MemoryTag, Tag
from app.services import storage
from app.services.memory_service import (
    MemoryFields,
    attach_tags,
    delete_memory as delete_memory_and_blobs,
    ensure_album_owned,
    insert_bulk,
    insert_memory,
    load_memories,
    load_memory,
    parse_flag,
    parse_memory_date,
    parse_uuid,
    upload_part,
    with_joins,
)
from app.services.serializers import flatten_memory, memory_row
from app.services.tags import parse_tag_payload
from app.services.uploads import read_uploads

router = APIRouter(prefix="/api/memories", tags=["memories"])

USER_PAGE_SIZE = 12
MAX_BULK_FILES = 20


def _filters(search: str | None, tag: str | None) -> list:
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Memory.title.ilike(pattern), Memory.description.ilike(pattern)))
    if tag and tag != "all":
        conditions.append(
            Memory.memory_tags.any(MemoryTag.tag.has(func.lower(Tag.name) == tag.lower()))
        )
    return conditions


def _flatten_all(memories) -> list[dict]:
    return [flatten_memory(memory_row(memory)) for memory in memories]


async def _page(db: AsyncSession, conditions: list, page: int, limit: int, with_owner: bool = False):
    total = (await db.execute(select(func.count(Memory.id)).where(*conditions))).scalar_one()
    stmt = (
        select(Memory)
        .where(*conditions)
        .order_by(desc(Memory.created_at), desc(Memory.id))
        .offset((page - 1) * limit)
        .limit(limit)
    )
    if with_owner:
        stmt = stmt.options(selectinload(Memory.owner))
    memories = (await db.execute(with_joins(stmt))).scalars().all()
    pagination = {
        "total": int(total or 0),
        "totalPages": math.ceil(int(total or 0) / limit),
        "currentPage": page,
    }
    return memories, pagination


@router.get("/all")
async def list_all_memories(
    search: str | None = Query(default=None),
    tag: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    memories, pagination = await _page(db, _filters(search, tag), page, limit, with_owner=True)
    data = []
    for memory in memories:
        flat = flatten_memory(memory_row(memory))
        owner = memory.owner
        flat["owner"] = {"id": str(owner.id), "name": owner.name, "role": owner.role} if owner else None
        data.append(flat)
    return {"data": data, "pagination": pagination}


async def _all_tags(db: AsyncSession) -> dict:
    result = await db.execute(select(Tag.id, Tag.name).order_by(Tag.name.asc()))
    return {"data": [{"id": str(tag_id), "name": name} for tag_id, name in result.all()]}


@router.get("/tags/admin")
async def list_tags_admin(
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _all_tags(db)


@router.get("/stats")
async def memory_stats(
    search: str | None = Query(default=None),
    user_id: str | None = Query(default=None, alias="userId"),
    current_user: CurrentUser = Depends(require_current_user),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    is_global = current_user.is_admin and (not user_id or user_id == "all")
    if current_user.is_admin and user_id and user_id != "all":
        effective_user_id = parse_uuid(user_id, "userId")
    else:
        effective_user_id = current_user.id

    memory_conditions = []
    album_conditions = []
    if not is_global:
        memory_conditions.append(Memory.user_id == effective_user_id)
        album_conditions.append(Album.user_id == effective_user_id)
    if search:
        memory_conditions.append(Memory.title.ilike(f"%{search}%"))

    total, milestones, albums = await asyncio.gather(
        count_rows(session_factory, select(func.count(Memory.id)).where(*memory_conditions)),
        count_rows(
            session_factory,
            select(func.count(Memory.id)).where(*memory_conditions, Memory.is_milestone.is_(True)),
        ),
        count_rows(session_factory, select(func.count(Album.id)).where(*album_conditions)),
    )
    return {"total": total, "milestones": milestones, "albums": albums}


@router.get("/tags")
async def list_tags(
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _all_tags(db)


@router.get("/milestones")
async def list_milestones(
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        with_joins(
            select(Memory)
            .where(Memory.user_id == current_user.id, Memory.is_milestone.is_(True))
            .order_by(desc(Memory.memory_date))
        )
    )
    return {"data": _flatten_all(result.scalars().all()), "message": "Milestones fetched"}


@router.get("/random")
async def random_memory(
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    ids = (await db.execute(select(Memory.id).where(Memory.user_id == current_user.id))).scalars().all()
    if not ids:
        raise NotFound("No memories found!")
    memory = await load_memory(db, random.choice(ids), current_user.id)
    if memory is None:
        raise NotFound("No memories found!")
    return flatten_memory(memory_row(memory))


@router.get("/tag/{tag_id}")
async def memories_by_tag(
    tag_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    tag_uuid = parse_uuid(tag_id, "tag id")
    result = await db.execute(
        with_joins(
            select(Memory)
            .where(Memory.user_id == current_user.id, Memory.memory_tags.any(MemoryTag.tag_id == tag_uuid))
            .order_by(desc(Memory.created_at))
        )
    )
    return {"data": _flatten_all(result.scalars().all()), "message": "Success"}


@router.get("")
async def list_memories(
    search: str | None = Query(default=None),
    tag: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [Memory.user_id == current_user.id, *_filters(search, tag)]
    memories, pagination = await _page(db, conditions, page, USER_PAGE_SIZE)
    data = _flatten_all(memories)
    return {"data": data, "memories": data, "pagination": pagination}


@router.post("", status_code=201)
async def create_memory(
    file: list[UploadFile] | None = File(default=None),
    audio: list[UploadFile] | None = File(default=None),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    memory_date: str | None = Form(default=None),
    location: str | None = Form(default=None),
    tags: str | None = Form(default=None),
    is_milestone: str | None = Form(default=None),
    album_id: str | None = Form(default=None),
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    visual_parts = await read_uploads(file, max_count=1, field="file")
    audio_parts = await read_uploads(audio, max_count=1, field="audio")
    tag_identifiers = parse_tag_payload(tags)
    fields = MemoryFields(
        title=title or "Untitled Memory",
        description=description or "",
        memory_date=parse_memory_date(memory_date),
        location=location or "",
        is_milestone=parse_flag(is_milestone),
        album_id=parse_uuid(album_id, "album_id"),
    )
    if fields.album_id is not None:
        await ensure_album_owned(db, fields.album_id, current_user.id)

    memory_id = await insert_memory(
        db,
        current_user.id,
        fields,
        visual=visual_parts[0] if visual_parts else None,
        audio=audio_parts[0] if audio_parts else None,
    )
    await attach_tags(db, memory_id, tag_identifiers)

    memory = await load_memory(db, memory_id)
    return {"message": "Memory created successfully!", "memory": flatten_memory(memory_row(memory))}


@router.post("/bulk")
async def bulk_upload_memories(
    files: list[UploadFile] | None = File(default=None),
    title: str | None = Form(default=None),
    album_id: str | None = Form(default=None),
    location: str | None = Form(default=None),
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    parts = await read_uploads(files, max_count=MAX_BULK_FILES, field="files")
    if not parts:
        raise ValidationError("No files received")
    album_uuid = parse_uuid(album_id, "album_id")
    if album_uuid is not None:
        await ensure_album_owned(db, album_uuid, current_user.id)

    created_ids = await insert_bulk(db, current_user.id, parts, title, location, album_uuid)
    memories = await load_memories(db, created_ids)
    return {"message": "Bulk upload processed", "memories": _flatten_all(memories)}


@router.put("/{memory_id}")
async def update_memory(
    memory_id: str,
    file: list[UploadFile] | None = File(default=None),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    location: str | None = Form(default=None),
    memory_date: str | None = Form(default=None),
    is_milestone: str | None = Form(default=None),
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    memory_uuid = parse_uuid(memory_id, "memory id")
    parts = await read_uploads(file, max_count=1, field="file")
    if parts and parts[0].media_kind not in VISUAL_MEDIA_TYPES:
        raise UnsupportedFileType("Only an image or video can replace the display file.")

    result = await db.execute(
        select(Memory).where(Memory.id == memory_uuid, Memory.user_id == current_user.id)
    )
    memory = result.scalar_one_or_none()
    if memory is None:
        raise NotFound("Memory not found")

    if title is not None:
        memory.title = title
    if description is not None:
        memory.description = description
    if location is not None:
        memory.location = location
    if memory_date is not None:
        memory.memory_date = parse_memory_date(memory_date)
    if is_milestone is not None:
        memory.is_milestone = parse_flag(is_milestone)

    if parts:
        part = parts[0]
        media_result = await db.execute(
            select(Media)
            .where(Media.memory_id == memory_uuid, Media.file_type.in_(VISUAL_MEDIA_TYPES))
            .order_by(Media.created_at)
            .limit(1)
        )
        media = media_result.scalar_one_or_none()
        # No visual row to point at, so nothing is uploaded.
        if media is not None:
            key = f"{current_user.id}/{memory_uuid}/display-{int(time.time() * 1000)}.{part.extension}"
            await upload_part(part, key)
            media.file_url = storage.public_url(key)
            media.file_type = part.media_kind

    await db.commit()
    return {"message": "Memory and Media updated successfully"}


@router.delete("/{memory_id}")
async def delete_memory(
    memory_id: str,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_memory_and_blobs(db, parse_uuid(memory_id, "memory id"), owner_id=current_user.id)
    return {"message": "Memory and associated files deleted successfully."}
