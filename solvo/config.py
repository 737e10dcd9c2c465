from functools import lru_cache
from typing import Optional
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists, for local development
# In production, environment variables should be set directly.
if os.path.exists(".env"):
    from dotenv import load_dotenv
    load_dotenv()


class DatabaseSettings(BaseSettings):
    url: str = "sqlite+aiosqlite:///./solvo.db"
    echo: bool = False
    pool_size: int = 10

    model_config = SettingsConfigDict(env_prefix='DATABASE_')


class RedisSettings(BaseSettings):
    url: str = "redis://localhost:6379/0"

    model_config = SettingsConfigDict(env_prefix='REDIS_')


class AuthSettings(BaseSettings):
    secret: str = "change-me"
    public_key_path: Optional[str] = None  # RS256 when set, otherwise HMAC with `secret`
    algorithm: str = "HS256"
    issuer: Optional[str] = None
    audience: Optional[str] = None
    cookie_name: str = "access_token"
    leeway_seconds: int = 30

    model_config = SettingsConfigDict(env_prefix='JWT_')


class SubmissionSettings(BaseSettings):
    idempotency_window_seconds: int = 60
    rate_limit_enabled: bool = False
    rate_limit_per_minute: int = 40
    premium_rate_limit_per_minute: int = 160

    model_config = SettingsConfigDict(env_prefix='SUBMISSION_')


class LoggingSettings(BaseSettings):
    level: str = "INFO"
    json_format: bool = True

    model_config = SettingsConfigDict(env_prefix='LOG_')


class Settings:
    """Bundle of the per-concern settings groups."""

    def __init__(self):
        self.database = DatabaseSettings()
        self.redis = RedisSettings()
        self.auth = AuthSettings()
        self.submission = SubmissionSettings()
        self.logging = LoggingSettings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
