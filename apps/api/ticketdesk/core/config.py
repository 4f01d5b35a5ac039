from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    STORAGE_BACKEND: str = "sql"  # sql | memory
    DATABASE_URL: str = "sqlite:///./ticketdesk.db"
    # Create tables and seed the admin on startup.
    AUTO_DB_BOOTSTRAP: bool = True

    # Auth
    JWT_SECRET: str = "dev-secret"
    JWT_EXPIRES_MIN: int = 60 * 24
    PASSWORD_HASH_ROUNDS: int = 12
    RESET_TOKEN_TTL_MIN: int = 60

    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "admin123"
    ADMIN_NAME: str = "Admin"

    # Attachments
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024  # combined, per submission
    MAX_ATTACHMENTS: int = 5
    ALLOWED_CONTENT_TYPES: list[str] = ["image/jpeg", "image/png", "video/mp4"]

    # Read cache, 0 disables
    TICKET_CACHE_TTL_SECONDS: float = 30
    STATISTICS_CACHE_TTL_SECONDS: float = 30

    # Mail
    MAIL_BACKEND: str = "smtp"  # smtp | outbox
    SMTP_HOST: str = ""
    SMTP_PORT: int = 25
    SMTP_FROM: str = ""
    APP_BASE_URL: str = "http://localhost:5173"

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        frozen = True

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
