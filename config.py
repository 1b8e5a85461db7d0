from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    database_url: str = "sqlite:///./expenses.db"

    jwt_secret: str = Field(
        default="dev-only-secret-key-replace-in-production-0123456789",
        description="HMAC key used to sign access tokens",
    )
    jwt_algorithm: str = "HS256"
    access_token_expire_days: int = Field(default=1, ge=1)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    default_page_size: int = Field(default=10, ge=1)
    recent_expenses_limit: int = Field(default=5, ge=0)

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
