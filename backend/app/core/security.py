from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from app.models.user import ROLE_ADMIN


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the caller, resolved once per request."""

    id: UUID
    email: str | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None
