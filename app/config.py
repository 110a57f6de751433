"""Application settings loaded from environment variables and `.env`."""
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration.

    Every value can be overridden through an environment variable of the
    same name.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./reading_companion.db"
    LOG_LEVEL: str = "INFO"

    # Auth (Supabase-issued HS256 access tokens)
    AUTH_JWT_SECRET: str = "change-me"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = "authenticated"

    # Chat completion
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TIMEOUT: float = 30.0

    # External book search
    GOOGLE_BOOKS_URL: str = "https://www.googleapis.com/books/v1/volumes"
    GOOGLE_BOOKS_API_KEY: Optional[str] = None
    BOOK_SEARCH_TIMEOUT: float = 10.0

    # Quotas and catalog rules
    DAILY_MESSAGE_LIMIT: int = 100
    DAILY_LIMIT_WARNING: int = 90
    FREE_TIER_BOOK_LIMIT: int = 2
    MIN_SEARCH_LENGTH: int = 3
    SEARCH_RESULT_LIMIT: int = 5
    CATALOG_DEDUP_KEY: Literal["title_author", "isbn"] = "title_author"
    PLACEHOLDER_THUMBNAIL: str = "/placeholder.svg?height=200&width=150"


settings = Settings()
