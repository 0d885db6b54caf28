"""Application configuration."""
from typing import Any, List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator

def clean_int_value(v: Any) -> int:
    """Clean integer values from environment variables."""
    if isinstance(v, str):
        # Remove any comments and whitespace
        v = v.split('#')[0].strip()
    return int(v)

class Settings(BaseSettings):
    # Application settings
    PROJECT_NAME: str = "TuneMatch Backend"
    HOST: str = "0.0.0.0"
    PORT: int = 8888
    DEBUG: bool = False

    # Frontend origin, used for CORS and the post-login redirect
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_CORS_ORIGINS: List[str] = []

    # Logging settings
    LOG_LEVEL: str = "INFO"

    # Security settings
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./tunematch.db"

    # Spotify OAuth settings
    SPOTIFY_CLIENT_ID: str = ""
    SPOTIFY_CLIENT_SECRET: str = ""
    SPOTIFY_REDIRECT_URI: str = "http://localhost:8888/callback"
    SPOTIFY_SCOPES: str = "user-read-private user-top-read"
    SPOTIFY_TOP_ARTISTS_LIMIT: int = 20
    SPOTIFY_TOP_ARTISTS_TIME_RANGE: str = "medium_term"
    SPOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Chat settings
    CHAT_HISTORY_LIMIT: int = 200

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    _clean_ints = field_validator('PORT', 'ACCESS_TOKEN_EXPIRE_MINUTES',
                                  'SPOTIFY_TOP_ARTISTS_LIMIT', 'CHAT_HISTORY_LIMIT',
                                  mode='before')(clean_int_value)

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def use_async_driver(cls, v: Optional[str]) -> Optional[str]:
        """Point plain postgres URLs at the asyncpg driver."""
        if isinstance(v, str):
            if v.startswith("postgres://"):
                v = v.replace("postgres://", "postgresql://", 1)
            if v.startswith("postgresql://"):
                v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator('FRONTEND_URL')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode='after')
    def default_cors_origins(self) -> "Settings":
        if not self.BACKEND_CORS_ORIGINS:
            self.BACKEND_CORS_ORIGINS = [self.FRONTEND_URL]
        return self

settings = Settings()
