from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Drift API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # CORS - Allowed origins (comma-separated in env)
    CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006,http://localhost:3000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # PostgreSQL
    DATABASE_URL: str

    # Upstash Redis (optional - rate limiting disabled if not set)
    UPSTASH_REDIS_URL: str = ""
    UPSTASH_REDIS_TOKEN: str = ""

    # Firebase (optional - push delivery disabled if not set)
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_PRIVATE_KEY: str = ""
    FIREBASE_CLIENT_EMAIL: str = ""

    # JWT Settings
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    ALGORITHM: str = "HS256"

    # Rate Limiting
    SWIPE_LIMIT_PER_DAY: int = 100
    MESSAGE_RATE_LIMIT_PER_MINUTE: int = 30

    # Discovery
    DEFAULT_DISCOVERY_RADIUS_MILES: int = 50
    DISCOVERY_PAGE_SIZE: int = 40

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
