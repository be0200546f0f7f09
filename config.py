"""Application configuration."""

from functools import lru_cache
from typing import List

from fastapi import Request
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "Sokogo"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    MONGO_URL: str = Field(
        "mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGO_URL", "DATABASE_URL"),
    )
    DATABASE_NAME: str = "sokogo"

    # Security
    SECRET_KEY: SecretStr = SecretStr(DEFAULT_SECRET_KEY)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:3002",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:3001",
        "http://127.0.0.1:3002",
    ]
    FRONTEND_URL: str = ""

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, list):
            return v
        return []

    @property
    def cors_origins(self) -> List[str]:
        origins = list(self.BACKEND_CORS_ORIGINS)
        if self.FRONTEND_URL:
            origins.append(self.FRONTEND_URL)
        return origins

    # Uploads
    BASE_URL: str = "http://localhost:8000"
    UPLOAD_DIR: str = "uploads"
    UPLOAD_STORAGE: str = "local"  # local | inline
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    MAX_UPLOAD_FILES: int = 10

    # Email
    EMAIL_BACKEND: str = "disabled"  # smtp | console | disabled
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: SecretStr = SecretStr("")
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "Sokogo Classifieds <no-reply@sokogo.local>"
    ADMIN_EMAIL: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()


def check_environment(settings: Settings) -> List[str]:
    """Return human readable warnings about a risky configuration."""
    warnings = []
    if settings.SECRET_KEY.get_secret_value() == DEFAULT_SECRET_KEY:
        if settings.ENVIRONMENT == "production":
            warnings.append("SECRET_KEY is the default value in production")
        else:
            warnings.append("SECRET_KEY is the default value; set it before deploying")
    if settings.EMAIL_BACKEND == "smtp" and not settings.SMTP_HOST:
        warnings.append("EMAIL_BACKEND is smtp but SMTP_HOST is not set; emails will fail")
    if settings.EMAIL_BACKEND not in ("smtp", "console", "disabled"):
        warnings.append(f"Unknown EMAIL_BACKEND {settings.EMAIL_BACKEND!r}; emails are disabled")
    if settings.UPLOAD_STORAGE not in ("local", "inline"):
        warnings.append(f"Unknown UPLOAD_STORAGE {settings.UPLOAD_STORAGE!r}; using local storage")
    if not settings.ADMIN_EMAIL:
        warnings.append("ADMIN_EMAIL is not set; contact form messages go to EMAIL_FROM")
    return warnings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
