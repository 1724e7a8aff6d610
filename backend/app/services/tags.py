from __future__ import annotations

import json
from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.tag import MemoryTag, Tag


class TagRepository(Protocol):
    async def exists(self, tag_id: UUID) -> bool: ...

    async def find_by_name(self, name: str) -> UUID | None: ...

    async def create(self, name: str) -> UUID: ...


class SqlTagRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def exists(self, tag_id: UUID) -> bool:
        result = await self.db.execute(select(Tag.id).where(Tag.id == tag_id))
        return result.scalar_one_or_none() is not None

    async def find_by_name(self, name: str) -> UUID | None:
        result = await self.db.execute(
            select(Tag.id).where(func.lower(Tag.name) == name.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, name: str) -> UUID:
        tag = Tag(name=name)
        self.db.add(tag)
        await self.db.flush()
        return tag.id


def parse_tag_payload(raw) -> list[str]:
    """Accept a JSON array string, a comma separated string or a list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValidationError("Malformed tags payload") from exc
            if not isinstance(parsed, list):
                raise ValidationError("Malformed tags payload")
            items = parsed
        else:
            items = stripped.split(",")
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        raise ValidationError("Malformed tags payload")

    identifiers = []
    for item in items:
        if item is None:
            continue
        if not isinstance(item, (str, int, float)):
            raise ValidationError("Malformed tags payload")
        value = str(item).strip()
        if value:
            identifiers.append(value)
    return identifiers


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


async def resolve_tag_ids(identifiers: list[str], repo: TagRepository) -> list[UUID]:
    """Resolve UUIDs or names to tag ids, creating unknown names.

    Names match case-insensitively and the result holds each tag once, in
    first-seen order. UUIDs that do not name an existing tag are dropped.
    """
    resolved: list[UUID] = []
    seen_names: dict[str, UUID] = {}
    for identifier in identifiers:
        tag_id = _as_uuid(identifier)
        if tag_id is not None and len(identifier) == 36:
            if not await repo.exists(tag_id):
                continue
        else:
            key = identifier.lower()
            tag_id = seen_names.get(key)
            if tag_id is None:
                tag_id = await repo.find_by_name(identifier)
                if tag_id is None:
                    tag_id = await repo.create(identifier)
                seen_names[key] = tag_id
        if tag_id not in resolved:
            resolved.append(tag_id)
    return resolved


async def link_tags(db: AsyncSession, memory_id: UUID, tag_ids: list[UUID]) -> None:
    for tag_id in tag_ids:
        if await db.get(MemoryTag, (memory_id, tag_id)) is None:
            db.add(MemoryTag(memory_id=memory_id, tag_id=tag_id))
    await db.flush()
