import asyncio

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.api.auth import require_admin
from app.core.database import count_rows, get_db, get_session_factory
from app.core.security import CurrentUser
from app.models.memory import Memory
from app.models.user import Profile
from app.services.memory_service import delete_memory as delete_memory_and_blobs, parse_uuid
from app.services.serializers import memory_columns

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

RECENT_ACTIVITY_LIMIT = 20


@router.get("/stats")
async def admin_stats(
    user_id: str | None = Query(default=None, alias="userId"),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    memory_conditions = []
    if user_id and user_id != "all":
        # Only memory counts are scoped; the user count stays global.
        memory_conditions.append(Memory.user_id == parse_uuid(user_id, "userId"))

    total_users, total_memories, total_milestones = await asyncio.gather(
        count_rows(session_factory, select(func.count(Profile.id))),
        count_rows(session_factory, select(func.count(Memory.id)).where(*memory_conditions)),
        count_rows(
            session_factory,
            select(func.count(Memory.id)).where(*memory_conditions, Memory.is_milestone.is_(True)),
        ),
    )
    return {
        "totalUsers": total_users,
        "totalMemories": total_memories,
        "totalMilestones": total_milestones,
        "message": "Stats fetched successfully",
    }


@router.get("/users")
async def list_users(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Profile.id, Profile.name, Profile.email).order_by(Profile.name.asc()))
    return {"data": [{"id": str(pid), "name": name, "email": email} for pid, name, email in result.all()]}


@router.get("/memories")
async def recent_memories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Memory)
        .options(selectinload(Memory.owner))
        .order_by(desc(Memory.created_at))
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    data = []
    for memory in result.scalars().all():
        owner = memory.owner
        data.append(
            {
                **memory_columns(memory),
                "owner": {"id": str(owner.id), "name": owner.name} if owner else None,
            }
        )
    return {"data": data}


@router.delete("/memories/{memory_id}")
async def force_delete_memory(
    memory_id: str,
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_memory_and_blobs(db, parse_uuid(memory_id, "memory id"))
    return {"message": "Memory deleted successfully by Admin"}
