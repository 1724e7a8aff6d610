from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def client_rate_limit_key(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        # Key on the token tail so the raw credential never lands in limiter storage.
        return f"token:{auth_header[-16:]}"
    return f"anon:{get_remote_address(request)}"


limiter = Limiter(key_func=client_rate_limit_key)
