"""Nested row builders and the pure flattening applied to every response."""

from __future__ import annotations

from typing import Any, Callable

from app.models.album import Album
from app.models.media import MEDIA_AUDIO, MEDIA_IMAGE, VISUAL_MEDIA_TYPES
from app.models.memory import Memory
from app.services import storage


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def memory_row(memory: Memory) -> dict[str, Any]:
    """Nested representation of a memory with its eagerly loaded joins."""
    return {
        "id": str(memory.id),
        "user_id": str(memory.user_id),
        "title": memory.title,
        "description": memory.description,
        "memory_date": _iso(memory.memory_date),
        "location": memory.location,
        "is_milestone": bool(memory.is_milestone),
        "album_id": str(memory.album_id) if memory.album_id else None,
        "created_at": _iso(memory.created_at),
        "media": [
            {"id": str(item.id), "file_url": item.file_url, "file_type": item.file_type}
            for item in memory.media
        ],
        "memory_tags": [
            {"tag": {"id": str(link.tag.id), "name": link.tag.name} if link.tag else None}
            for link in memory.memory_tags
        ],
    }


def memory_columns(memory: Memory) -> dict[str, Any]:
    """Memory columns only, for handlers that did not load joins."""
    return {
        "id": str(memory.id),
        "user_id": str(memory.user_id),
        "title": memory.title,
        "description": memory.description,
        "memory_date": _iso(memory.memory_date),
        "location": memory.location,
        "is_milestone": bool(memory.is_milestone),
        "album_id": str(memory.album_id) if memory.album_id else None,
        "created_at": _iso(memory.created_at),
    }


def flatten_memory(
    row: dict[str, Any] | None,
    url_for: Callable[[str | None], str | None] = storage.public_url,
) -> dict[str, Any] | None:
    if row is None:
        return None

    media = row.get("media") or []
    visual = next((item for item in media if item.get("file_type") in VISUAL_MEDIA_TYPES), None)
    audio = next((item for item in media if item.get("file_type") == MEDIA_AUDIO), None)

    flat = {key: value for key, value in row.items() if key != "memory_tags"}
    flat["display_url"] = url_for(visual.get("file_url")) if visual else None
    flat["media_type"] = visual.get("file_type") if visual else MEDIA_IMAGE
    flat["voice_url"] = url_for(audio.get("file_url")) if audio else None
    flat["tags"] = [
        {"id": link["tag"]["id"], "name": link["tag"]["name"]}
        for link in row.get("memory_tags") or []
        if link.get("tag")
    ]
    return flat


def album_columns(album: Album) -> dict[str, Any]:
    return {
        "id": str(album.id),
        "user_id": str(album.user_id),
        "name": album.name,
        "description": album.description,
        "created_at": _iso(album.created_at),
    }


def album_summary(
    album: Album,
    url_for: Callable[[str | None], str | None] = storage.public_url,
) -> dict[str, Any]:
    cover_path = None
    for link in album.memory_links:
        if link.memory is not None and link.memory.media:
            cover_path = link.memory.media[0].file_url
        break
    return {
        **album_columns(album),
        "total_memories": len(album.memory_links),
        "cover_url": url_for(cover_path),
    }


def album_detail(
    album: Album,
    url_for: Callable[[str | None], str | None] = storage.public_url,
) -> dict[str, Any]:
    memories = []
    for link in album.memory_links:
        if link.memory is None:
            continue
        media = [
            {"id": str(item.id), "file_url": item.file_url, "file_type": item.file_type}
            for item in link.memory.media
        ]
        memories.append(
            {
                **memory_columns(link.memory),
                "display_url": url_for(media[0]["file_url"]) if media else None,
                "media": media,
            }
        )
    return {**album_columns(album), "memories": memories}
