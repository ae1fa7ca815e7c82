# userhub/core/config.py
from pathlib import Path
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """Service settings, read from the environment (and `.env` when present)."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENVIRONMENT: str = "development"

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "userhub"

    # JWT
    JWT_SECRET_KEY: str = DEFAULT_JWT_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Password hashing
    BCRYPT_ROUNDS: int = 10

    # SMTP
    SMTP_SERVER: str = "smtp.office365.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_SSL: bool = False
    MAIL_FROM: Optional[str] = None

    # Base URL used in verification links
    BASE_URL: str = "http://localhost:3000"

    # Avatars
    AVATARS_DIR: Path = Path("public") / "avatars"
    TMP_DIR: Path = Path("tmp")
    AVATAR_SIZE: int = 250
    AVATAR_FETCH_TIMEOUT: float = 10.0
    AVATAR_MAX_BYTES: int = 5 * 1024 * 1024

    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @model_validator(mode="after")
    def check_production_secret(self) -> "Settings":
        if self.ENVIRONMENT == "production" and self.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET_KEY must be changed in production")
        return self

    @property
    def mail_sender(self) -> str:
        return self.MAIL_FROM or self.SMTP_USER


settings = Settings()
