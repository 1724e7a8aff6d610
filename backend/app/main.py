import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.api.admin import router as admin_router
from app.api.ai import router as ai_router
from app.api.albums import router as albums_router
from app.api.auth import router as auth_router
from app.api.memories import router as memories_router
from app.core.config import settings
from app.core.errors import AppError
from app.core.rate_limit import limiter

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

LOCAL_DEV_ORIGIN = "http://localhost:5173"
HOSTED_ORIGIN_REGEX = r"^https://([a-z0-9-]+\.)*vercel\.app$"
UNEXPECTED_ERROR_MESSAGE = "An unexpected server error occurred."

app = FastAPI(title="MemoryLane API", version="1.0.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


def _allowed_origins() -> list[str]:
    origins = [LOCAL_DEV_ORIGIN]
    if settings.FRONTEND_URL:
        origins.append(settings.FRONTEND_URL.rstrip("/"))
    if settings.FRONTEND_URLS:
        extra = [item.strip().rstrip("/") for item in settings.FRONTEND_URLS.split(",") if item.strip()]
        origins.extend(extra)
    return list(dict.fromkeys(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_origin_regex=HOSTED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Internal Server Error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": UNEXPECTED_ERROR_MESSAGE})


class PublicStaticFiles(StaticFiles):
    """Static passthrough readable from any origin."""

    async def get_response(self, path, scope):
        response = await super().get_response(path, scope)
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
        return response


app.include_router(auth_router)
app.include_router(memories_router)
app.include_router(admin_router)
app.include_router(albums_router)
app.include_router(ai_router)
Path(settings.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", PublicStaticFiles(directory=settings.UPLOADS_DIR), name="uploads")


@app.get("/")
async def root():
    return {"message": "MemoryLane API Running"}


@app.get("/health")
async def health():
    return {"status": "ok"}


def run() -> None:
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
