import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import require_current_user
from app.core.database import get_db
from app.core.errors import Forbidden, NotFound, UpstreamError, ValidationError
from app.core.security import CurrentUser
from app.models.memory import Memory
from app.services import gemini
from app.services.memory_service import parse_uuid
from app.services.serializers import memory_columns

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


class GeneratePayload(BaseModel):
    prompt: str | None = None
    # Accepted for client compatibility; the text model does not use it.
    image_url: str | None = Field(default=None, alias="imageUrl")
    user_id: str | None = None
    id: str | None = None


@router.post("/generate-video")
async def generate_memory_details(
    payload: GeneratePayload,
    current_user: CurrentUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not payload.user_id or not payload.id:
        raise ValidationError("user_id and memory id are required")
    owner_id = parse_uuid(payload.user_id, "user_id")
    memory_id = parse_uuid(payload.id, "memory id")
    if owner_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Cannot generate content for another user's memory")

    exists = await db.execute(select(Memory.id).where(Memory.id == memory_id, Memory.user_id == owner_id))
    if exists.scalar_one_or_none() is None:
        raise NotFound("Memory not found")

    try:
        text = await gemini.generate_with_fallback(gemini.build_memory_prompt(payload.prompt))
    except Exception as exc:
        logger.exception("Gemini generation failed memory=%s", memory_id)
        raise UpstreamError(f"AI generation failed: {exc}") from exc
    title, description = gemini.parse_title_description(text, payload.prompt)

    await db.execute(
        update(Memory)
        .where(Memory.id == memory_id, Memory.user_id == owner_id)
        .values(title=title, description=description)
    )
    await db.commit()

    memory = (
        await db.execute(
            select(Memory)
            .where(Memory.id == memory_id, Memory.user_id == owner_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    return {"success": True, "memory": memory_columns(memory)}
