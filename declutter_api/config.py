"""
Application Settings

Configuration is read from environment variables (or a local .env file)
through pydantic-settings. Environment variables take precedence.

    MONGO_URI      MongoDB connection string
    JWT_SECRET     signing key for access tokens
    PORT           listen port (default 3000)
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Declutter API"
    APP_VERSION: str = "0.1.0"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    MAX_BODY_BYTES: int = Field(
        default=5 * 1024 * 1024,
        description="Largest accepted request body; images arrive inline as base64",
    )

    # Database
    MONGO_URI: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
    )
    DATABASE_NAME: str = Field(
        default="declutter",
        description="Database used when MONGO_URI does not name one",
    )

    # Security
    JWT_SECRET: str = Field(
        default="change-me-in-production",
        description="Secret key for JWT token signing",
    )
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default=["https://iranai-frontend.onrender.com"],
        description="Allowed CORS origins",
    )

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
