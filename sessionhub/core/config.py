"""Application configuration management.

This module handles environment-specific configuration loading, parsing, and management
for the application. It includes environment detection, .env file loading, and
configuration value parsing.
"""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Application environment types.

    Defines the possible environments the application can run in:
    development, staging, production, and test.
    """

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Get the current environment.

    Returns:
        Environment: The current environment (development, staging, production, or test)
    """
    match os.getenv("APP_ENV", "development").lower():
        case "production" | "prod":
            return Environment.PRODUCTION
        case "staging" | "stage":
            return Environment.STAGING
        case "test":
            return Environment.TEST
        case _:
            return Environment.DEVELOPMENT


def load_env_file():
    """Load .env file."""
    if Path(".env").exists():
        load_dotenv(".env")

    # Provider credentials are often kept apart from the main file
    provider_env = ".env.zoom"
    if Path(provider_env).exists():
        load_dotenv(provider_env)


load_env_file()


class Settings(BaseSettings):
    """Application settings.

    This class defines all configuration settings for the application,
    including the document store, the meeting provider, recording storage
    and the external repair tools.
    """

    # Application Settings
    APP_ENV: Environment = Field(default=Environment.DEVELOPMENT, env="APP_ENV")
    PROJECT_NAME: str = Field(default="SessionHub API", env="PROJECT_NAME")
    VERSION: str = Field(default="1.0.0", env="VERSION")
    DESCRIPTION: str = Field(
        default="Live session scheduling and recording ingestion service",
        env="DESCRIPTION",
    )
    API_V1_STR: str = Field(default="/api/v1", env="API_V1_STR")
    APP_BASE_URL: str = Field(default="http://localhost:8000", env="APP_BASE_URL")
    DEBUG: bool = Field(default=False, env="DEBUG")

    # CORS Settings
    ALLOWED_ORIGINS: str = Field(
        default="http://localhost:3000,http://localhost:8080,http://127.0.0.1:3000",
        env="ALLOWED_ORIGINS",
    )

    @property
    def ALLOWED_ORIGINS_LIST(self) -> list[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        origins = [
            origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()
        ]
        if not origins:
            return ["*"]
        return origins

    # Logging Configuration
    LOG_DIR: Path = Field(default=Path("./logs"), env="LOG_DIR")
    LOG_LEVEL: str = Field(default="INFO", env="LOG_LEVEL")
    LOG_FORMAT: str = Field(default="console", env="LOG_FORMAT")

    # Rate Limiting
    RATE_LIMIT_DEFAULT: str = Field(
        default="1000 per day,200 per hour", env="RATE_LIMIT_DEFAULT"
    )
    RATE_LIMIT_REFRESH: str = Field(default="30 per minute", env="RATE_LIMIT_REFRESH")
    RATE_LIMIT_UPLOAD: str = Field(default="10 per minute", env="RATE_LIMIT_UPLOAD")
    RATE_LIMIT_WEBHOOK: str = Field(default="300 per minute", env="RATE_LIMIT_WEBHOOK")
    RATE_LIMIT_HEALTH: str = Field(default="100 per minute", env="RATE_LIMIT_HEALTH")

    # JWT Configuration
    JWT_SECRET_KEY: str = Field(
        default="your-super-secret-jwt-key-for-development-change-in-production",
        env="JWT_SECRET_KEY",
    )
    JWT_ALGORITHM: str = Field(default="HS256", env="JWT_ALGORITHM")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60, env="JWT_ACCESS_TOKEN_EXPIRE_MINUTES"
    )
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(
        default=30, env="JWT_REFRESH_TOKEN_EXPIRE_DAYS"
    )

    # Firebase Configuration
    FIREBASE_PROJECT_ID: str = Field(default="", env="FIREBASE_PROJECT_ID")
    FIREBASE_CREDENTIALS_PATH: str = Field(default="", env="FIREBASE_CREDENTIALS_PATH")

    # Meeting provider (Zoom server-to-server OAuth)
    ZOOM_ACCOUNT_ID: str = Field(default="", env="ZOOM_ACCOUNT_ID")
    ZOOM_CLIENT_ID: str = Field(default="", env="ZOOM_CLIENT_ID")
    ZOOM_CLIENT_SECRET: str = Field(default="", env="ZOOM_CLIENT_SECRET")
    ZOOM_API_BASE_URL: str = Field(default="https://api.zoom.us/v2", env="ZOOM_API_BASE_URL")
    ZOOM_TOKEN_URL: str = Field(default="https://zoom.us/oauth/token", env="ZOOM_TOKEN_URL")
    ZOOM_WEBHOOK_SECRET_TOKEN: str = Field(default="", env="ZOOM_WEBHOOK_SECRET_TOKEN")
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=15.0, env="PROVIDER_TIMEOUT_SECONDS")
    PROVIDER_MAX_RETRIES: int = Field(default=3, env="PROVIDER_MAX_RETRIES")
    PROVIDER_RETRY_BASE_DELAY: float = Field(default=0.5, env="PROVIDER_RETRY_BASE_DELAY")

    @property
    def ZOOM_CONFIGURED(self) -> bool:
        """Whether real provider credentials are present."""
        return bool(self.ZOOM_ACCOUNT_ID and self.ZOOM_CLIENT_ID and self.ZOOM_CLIENT_SECRET)

    # Session policy
    SESSION_START_GRACE_MINUTES: int = Field(default=15, env="SESSION_START_GRACE_MINUTES")
    SESSION_DEFAULT_TIMEZONE: str = Field(default="UTC", env="SESSION_DEFAULT_TIMEZONE")

    # Recording storage
    RECORDINGS_DIR: Path = Field(default=Path("./uploads/recordings"), env="RECORDINGS_DIR")
    RECORDINGS_PUBLIC_PATH: str = Field(default="/recordings", env="RECORDINGS_PUBLIC_PATH")
    MAX_UPLOAD_SIZE_MB: int = Field(default=500, env="MAX_UPLOAD_SIZE_MB")

    # Recording sync back-off after a session ends
    RECORDING_SYNC_MAX_ATTEMPTS: int = Field(default=6, env="RECORDING_SYNC_MAX_ATTEMPTS")
    RECORDING_SYNC_BASE_DELAY_SECONDS: float = Field(
        default=30.0, env="RECORDING_SYNC_BASE_DELAY_SECONDS"
    )

    # Container repair tools
    METADATA_TOOL_BINARY: str = Field(default="AtomicParsley", env="METADATA_TOOL_BINARY")
    REMUX_TOOL_BINARY: str = Field(default="ffmpeg", env="REMUX_TOOL_BINARY")
    REPAIR_TOOL_TIMEOUT_SECONDS: float = Field(default=300.0, env="REPAIR_TOOL_TIMEOUT_SECONDS")

    @property
    def RATE_LIMIT_ENDPOINTS(self) -> dict:
        """Get rate limit configuration for endpoints."""
        return {
            "default": [self.RATE_LIMIT_DEFAULT],
            "refresh": [self.RATE_LIMIT_REFRESH],
            "upload": [self.RATE_LIMIT_UPLOAD],
            "webhook": [self.RATE_LIMIT_WEBHOOK],
            "health": [self.RATE_LIMIT_HEALTH],
        }

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
