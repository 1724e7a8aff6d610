from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_STORAGE_BUCKET: str = "memories"
    SUPABASE_S3_ENDPOINT_URL: str | None = None
    SUPABASE_S3_ACCESS_KEY_ID: str | None = None
    SUPABASE_S3_SECRET_ACCESS_KEY: str | None = None
    SUPABASE_S3_REGION: str = "us-east-1"
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_FALLBACK_MODEL: str = "gemini-2.5-pro"
    PORT: int = 5000
    FRONTEND_URL: str | None = None
    FRONTEND_URLS: str | None = None
    UPLOADS_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
