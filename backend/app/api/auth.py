import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import Forbidden, Unauthorized, UpstreamError, ValidationError
from app.core.rate_limit import limiter
from app.core.security import CurrentUser, bearer_token
from app.models.user import ROLE_USER, Profile
from app.services.auth_service import IdentityError, SupabaseIdentityClient, get_identity_client, get_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterPayload(BaseModel):
    email: str
    password: str
    name: str | None = None


class LoginPayload(BaseModel):
    email: str
    password: str


async def require_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: SupabaseIdentityClient = Depends(get_identity_client),
) -> CurrentUser:
    token = bearer_token(request.headers.get("authorization"))
    if not token:
        raise Unauthorized("No token provided")

    try:
        user = await identity.get_user(token)
    except IdentityError as exc:
        raise Unauthorized(exc.message) from exc

    try:
        user_id = UUID(str(user.get("id")))
    except ValueError as exc:
        raise Unauthorized("Invalid token user not found") from exc

    profile = await get_profile(db, user_id)
    if profile is None:
        raise Forbidden("Profile not found")

    return CurrentUser(id=user_id, email=user.get("email"), role=profile.role or ROLE_USER)


async def require_admin(current_user: CurrentUser = Depends(require_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise Forbidden("Admin access only")
    return current_user


@router.post("/register", status_code=201)
async def register(
    payload: RegisterPayload,
    db: AsyncSession = Depends(get_db),
    identity: SupabaseIdentityClient = Depends(get_identity_client),
):
    try:
        created = await identity.admin_create_user(payload.email, payload.password)
    except IdentityError as exc:
        raise ValidationError(exc.message) from exc

    # GoTrue returns the user object itself, older versions wrap it in "user".
    user = created.get("user") or created
    try:
        user_id = UUID(str(user.get("id")))
    except ValueError as exc:
        raise UpstreamError("Identity service returned no user id") from exc

    db.add(Profile(id=user_id, name=payload.name, email=user.get("email") or payload.email, role=ROLE_USER))
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Profile insert failed for user id=%s", user_id)
        raise ValidationError("Could not create profile") from exc
    logger.info("Registered user id=%s", user_id)
    return {"message": "User registered successfully"}


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginPayload,
    db: AsyncSession = Depends(get_db),
    identity: SupabaseIdentityClient = Depends(get_identity_client),
):
    try:
        session = await identity.sign_in_with_password(payload.email, payload.password)
    except IdentityError as exc:
        raise Unauthorized(exc.message or "Login failed") from exc

    access_token = session.get("access_token")
    user = session.get("user") or {}
    if not access_token or not user.get("id"):
        raise Unauthorized("Login failed - no session")

    profile = await get_profile(db, UUID(str(user["id"])))
    logger.info("Login success for user id=%s", user["id"])
    return {
        "message": "Login successful",
        "access_token": access_token,
        "user": {
            "id": str(user["id"]),
            "email": user.get("email"),
            "name": (profile.name if profile else None) or "User",
            "role": (profile.role if profile else None) or ROLE_USER,
        },
    }


@router.get("/me")
async def get_me(current_user: CurrentUser = Depends(require_current_user)):
    return {"id": str(current_user.id), "email": current_user.email, "role": current_user.role}
