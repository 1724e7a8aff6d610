import asyncio
import os
import tempfile
import uuid
from datetime import date, datetime, timedelta, timezone

_TMP_DIR = tempfile.mkdtemp(prefix="memorylane-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/bootstrap.db"
os.environ["SUPABASE_URL"] = "https://example.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "anon-key"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "service-key"
os.environ["SUPABASE_S3_ACCESS_KEY_ID"] = "test-access"
os.environ["SUPABASE_S3_SECRET_ACCESS_KEY"] = "test-secret"
os.environ["GEMINI_API_KEY"] = "test-gemini"
os.environ["UPLOADS_DIR"] = f"{_TMP_DIR}/uploads"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database import Base, get_db, get_session_factory
from app.core.rate_limit import limiter
from app.main import app
from app.models import Album, AlbumMemory, Media, Memory, MemoryTag, Profile, Tag
from app.services import storage
from app.services.auth_service import IdentityError, get_identity_client

PUBLIC_PREFIX = "https://example.supabase.co/storage/v1/object/public/memories/"


class FakeIdentityClient:
    def __init__(self) -> None:
        self.tokens: dict[str, dict] = {}
        self.passwords: dict[str, tuple[str, dict]] = {}
        self.created: list[dict] = []

    def issue(self, user_id: uuid.UUID, email: str) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = {"id": str(user_id), "email": email}
        return token

    async def get_user(self, access_token: str) -> dict:
        if access_token not in self.tokens:
            raise IdentityError(401, "invalid JWT: unable to parse or verify signature")
        return self.tokens[access_token]

    async def sign_in_with_password(self, email: str, password: str) -> dict:
        stored = self.passwords.get(email)
        if stored is None or stored[0] != password:
            raise IdentityError(400, "Invalid login credentials")
        user = stored[1]
        return {"access_token": self.issue(uuid.UUID(user["id"]), email), "user": user}

    async def admin_create_user(self, email: str, password: str) -> dict:
        if email in self.passwords:
            raise IdentityError(422, "A user with this email address has already been registered")
        user = {"id": str(uuid.uuid4()), "email": email}
        self.passwords[email] = (password, user)
        self.created.append(user)
        return user


class FakeStorage:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.uploads: list[tuple[str, str]] = []
        self.delete_calls: list[list[str]] = []
        self.fail_deletes = False

    def upload_file(self, file_bytes: bytes, key: str, content_type: str) -> None:
        self.objects[key] = file_bytes
        self.uploads.append((key, content_type))

    def get_file(self, key: str) -> bytes:
        return self.objects[key]

    def delete_files(self, keys: list[str]) -> None:
        self.delete_calls.append(list(keys))
        if self.fail_deletes:
            raise RuntimeError("storage offline")
        for key in keys:
            self.objects.pop(key, None)


class Seeder:
    """Writes fixtures straight into the test database."""

    def __init__(self, session_factory, identity: FakeIdentityClient) -> None:
        self.session_factory = session_factory
        self.identity = identity

    def run(self, work):
        async def _inner():
            async with self.session_factory() as session:
                result = await work(session)
                await session.commit()
                return result

        return asyncio.run(_inner())

    def user(self, role: str = "user", name: str = "Test User") -> tuple[uuid.UUID, dict[str, str]]:
        user_id = uuid.uuid4()
        email = f"{user_id.hex[:8]}@example.com"

        async def work(session):
            session.add(Profile(id=user_id, name=name, email=email, role=role))

        self.run(work)
        token = self.identity.issue(user_id, email)
        return user_id, {"Authorization": f"Bearer {token}"}

    def memory(
        self,
        user_id: uuid.UUID,
        title: str = "A memory",
        description: str = "",
        media: list[tuple[str, str]] | None = None,
        tags: list[str] | None = None,
        is_milestone: bool = False,
        created_at: datetime | None = None,
        memory_date: date | None = None,
    ) -> uuid.UUID:
        memory_id = uuid.uuid4()

        async def work(session):
            session.add(
                Memory(
                    id=memory_id,
                    user_id=user_id,
                    title=title,
                    description=description,
                    memory_date=memory_date or date(2024, 5, 1),
                    location="",
                    is_milestone=is_milestone,
                    created_at=created_at or datetime.now(timezone.utc),
                )
            )
            await session.flush()
            base = datetime.now(timezone.utc)
            for offset, (file_url, file_type) in enumerate(media or []):
                session.add(
                    Media(
                        memory_id=memory_id,
                        file_url=file_url,
                        file_type=file_type,
                        created_at=base + timedelta(seconds=offset),
                    )
                )
            for name in tags or []:
                tag = (await session.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()
                if tag is None:
                    tag = Tag(name=name)
                    session.add(tag)
                    await session.flush()
                session.add(MemoryTag(memory_id=memory_id, tag_id=tag.id))

        self.run(work)
        return memory_id

    def tag(self, name: str) -> uuid.UUID:
        async def work(session):
            tag = Tag(name=name)
            session.add(tag)
            await session.flush()
            return tag.id

        return self.run(work)

    def album(self, user_id: uuid.UUID, name: str = "Summer", memory_ids: list[uuid.UUID] | None = None) -> uuid.UUID:
        album_id = uuid.uuid4()

        async def work(session):
            session.add(Album(id=album_id, user_id=user_id, name=name, description="trip"))
            await session.flush()
            base = datetime.now(timezone.utc)
            for offset, memory_id in enumerate(memory_ids or []):
                session.add(
                    AlbumMemory(album_id=album_id, memory_id=memory_id, created_at=base + timedelta(seconds=offset))
                )

        self.run(work)
        return album_id

    def count(self, model, *conditions) -> int:
        async def work(session):
            column = list(model.__table__.primary_key.columns)[0]
            result = await session.execute(select(func.count(column)).where(*conditions))
            return int(result.scalar_one())

        return self.run(work)

    def get_memory(self, memory_id: uuid.UUID) -> Memory | None:
        async def work(session):
            return await session.get(Memory, memory_id)

        return self.run(work)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", poolclass=NullPool)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture()
def identity() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture()
def fake_storage(monkeypatch) -> FakeStorage:
    fake = FakeStorage()
    monkeypatch.setattr(storage, "upload_file", fake.upload_file)
    monkeypatch.setattr(storage, "get_file", fake.get_file)
    monkeypatch.setattr(storage, "delete_files", fake.delete_files)
    return fake


@pytest.fixture()
def seed(session_factory, identity) -> Seeder:
    return Seeder(session_factory, identity)


@pytest.fixture()
def client(session_factory, identity, fake_storage):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_identity_client] = lambda: identity
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
