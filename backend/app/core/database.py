from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from app.core.config import settings

parsed_db_url = urlparse(settings.DATABASE_URL)
requires_ssl = parsed_db_url.hostname is not None and parsed_db_url.hostname.endswith("supabase.com")

connect_args = {}
if parsed_db_url.scheme.startswith("postgresql"):
    connect_args = {
        "statement_cache_size": 0,  # required for Supabase pooler compatibility
        "ssl": "require" if requires_ssl else False,
    }

engine = create_async_engine(settings.DATABASE_URL, echo=False, connect_args=connect_args)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

class Base(DeclarativeBase):
    pass

async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for handlers that fan out independent queries on separate sessions."""
    return AsyncSessionLocal


async def count_rows(session_factory: async_sessionmaker[AsyncSession], stmt) -> int:
    async with session_factory() as session:
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
