from __future__ import annotations

import logging
from functools import lru_cache
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.user import Profile

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """The identity service rejected a request."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"Identity service returned {response.status_code}"
    if isinstance(payload, dict):
        for key in ("msg", "error_description", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return f"Identity service returned {response.status_code}"


class SupabaseIdentityClient:
    """Thin async wrapper over the GoTrue REST API.

    The anonymous key is used for sign-in and token verification; the
    service-role key only for admin user creation.
    """

    def __init__(self, base_url: str, anon_key: str, service_key: str) -> None:
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.service_key = service_key

    async def get_user(self, access_token: str) -> dict:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.auth_url}/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"},
            )
        if response.status_code != 200:
            raise IdentityError(response.status_code, _error_message(response))
        return response.json()

    async def sign_in_with_password(self, email: str, password: str) -> dict:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.auth_url}/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers={"apikey": self.anon_key},
            )
        if response.status_code != 200:
            raise IdentityError(response.status_code, _error_message(response))
        return response.json()

    async def admin_create_user(self, email: str, password: str) -> dict:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.auth_url}/admin/users",
                json={"email": email, "password": password, "email_confirm": True},
                headers={"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"},
            )
        if response.status_code not in (200, 201):
            raise IdentityError(response.status_code, _error_message(response))
        return response.json()


@lru_cache
def get_identity_client() -> SupabaseIdentityClient:
    return SupabaseIdentityClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        settings.SUPABASE_SERVICE_ROLE_KEY,
    )


async def get_profile(db: AsyncSession, user_id: UUID) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    return result.scalar_one_or_none()
