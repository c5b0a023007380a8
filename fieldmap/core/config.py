"""
🔧 Configuration management using Pydantic Settings
Centralized settings for the mapping engine
"""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings with environment variable support
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = Field(default="fieldmap")
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Storage backend
    STORAGE_BACKEND: str = Field(default="memory", description="Storage backend: memory or postgresql")

    # Database
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    POSTGRES_DB: str = Field(default="fieldmap")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="password")
    POSTGRES_URL: Optional[str] = Field(default=None)
    DB_POOL_MIN_SIZE: int = Field(default=1)
    DB_POOL_MAX_SIZE: int = Field(default=10)
    DB_COMMAND_TIMEOUT_SECONDS: float = Field(default=30.0)

    # Redis (configuration cache)
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: Optional[str] = Field(default=None)
    REDIS_URL: Optional[str] = Field(default=None)
    CONFIG_CACHE_ENABLED: bool = Field(default=False)
    CONFIG_CACHE_TTL_SECONDS: int = Field(default=300)  # 5 minutes

    # Logging
    LOG_FORMAT: str = Field(default="json")
    LOG_FILE_PATH: Optional[str] = Field(default=None)
    LOG_MAX_SIZE_MB: int = Field(default=100)
    LOG_BACKUP_COUNT: int = Field(default=5)

    @field_validator("STORAGE_BACKEND", mode="before")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Validate storage backend type"""
        allowed_types = ["memory", "postgresql"]
        if str(v).lower() not in allowed_types:
            raise ValueError(f"STORAGE_BACKEND must be one of: {allowed_types}")
        return str(v).lower()

    @field_validator("CONFIG_CACHE_TTL_SECONDS")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("CONFIG_CACHE_TTL_SECONDS must be positive")
        return v

    @model_validator(mode="after")
    def build_urls(self) -> "Settings":
        """Build PostgreSQL and Redis URLs if not provided"""
        if not self.POSTGRES_URL:
            self.POSTGRES_URL = (
                f"postgresql://{self.POSTGRES_USER}:"
                f"{self.POSTGRES_PASSWORD}@"
                f"{self.POSTGRES_HOST}:"
                f"{self.POSTGRES_PORT}/"
                f"{self.POSTGRES_DB}"
            )

        if not self.REDIS_URL:
            password_part = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
            self.REDIS_URL = (
                f"redis://{password_part}"
                f"{self.REDIS_HOST}:"
                f"{self.REDIS_PORT}/"
                f"{self.REDIS_DB}"
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT.lower() in ["production", "prod"]


# Global settings instance
settings = Settings()
